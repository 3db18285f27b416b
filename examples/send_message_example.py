#!/usr/bin/env python3
"""WeCom Message Example.

This example demonstrates the WeComClient:
- Loading configuration from WECOM_* environment variables
- Sending text, markdown and text card messages
- Uploading a file and sending it by media_id
- Changing the default recipients

Set WECOM_CORP_ID, WECOM_CORP_SECRET and WECOM_AGENT_ID before running.
"""

import sys
from pathlib import Path

from wecom_message import (
    LoggingConfig,
    NewsArticle,
    WeComClient,
    WeComConfig,
    WeComError,
    get_logger,
    setup_logging,
)

# Setup logging
setup_logging(LoggingConfig(level="INFO"))
logger = get_logger(__name__)


# =============================================================================
# Demo 1: Plain messages
# =============================================================================
def demo_messages(client: WeComClient) -> None:
    """Send a few message types to the default recipients."""
    print("\n" + "=" * 60)
    print("Demo 1: Plain messages")
    print("=" * 60)

    result = client.send_text("Hello from wecom-message")
    print(f"text msgid={result.msgid}")

    client.send_markdown("**Deploy finished** in <font color=\"info\">42s</font>")
    client.send_textcard(
        title="Build #128",
        description="All checks passed",
        url="https://example.com/builds/128",
        btntxt="Details",
    )
    client.send_news(
        [
            NewsArticle(
                title="Weekly report",
                description="Numbers for this week",
                url="https://example.com/report",
            )
        ]
    )


# =============================================================================
# Demo 2: Media
# =============================================================================
def demo_media(client: WeComClient) -> None:
    """Upload this script and send it as a confidential file."""
    print("\n" + "=" * 60)
    print("Demo 2: Media")
    print("=" * 60)

    media_id = client.upload_media(Path(__file__), "file")
    print(f"uploaded media_id={media_id}")
    client.send_file(media_id, safe=True)


# =============================================================================
# Demo 3: Recipients
# =============================================================================
def demo_recipients(client: WeComClient) -> None:
    """Target a department instead of everyone."""
    print("\n" + "=" * 60)
    print("Demo 3: Recipients")
    print("=" * 60)

    client.update_defaults(to_user="", to_party="1")
    result = client.send_text("Only for department 1")
    if result.has_invalid_recipients:
        print(f"invalid party: {result.invalid_party}")


def main() -> int:
    try:
        config = WeComConfig.from_env()
    except ValueError as e:
        print(f"Missing configuration: {e}")
        return 1

    try:
        with WeComClient(config) as client:
            demo_messages(client)
            demo_media(client)
            demo_recipients(client)
    except WeComError as e:
        logger.error("Demo failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
