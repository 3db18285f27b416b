"""Command-line interface for the WeCom message client.

Examples:
    wecom-message init -o wecom.yaml
    wecom-message -c wecom.yaml text "Deploy finished" --safe
    wecom-message -c wecom.yaml file ./report.pdf --to-user zhangsan
    wecom-message upload ./logo.png --type image   # reads WECOM_* variables
"""

from __future__ import annotations

import argparse
from collections.abc import Callable, Sequence
from pathlib import Path

import yaml
from rich.console import Console
from rich.markup import escape

from . import __version__
from .api import MediaType, MessageSendResult, NewsArticle, WeComClient, WeComError
from .core import WeComConfig, get_logger, setup_logging

logger = get_logger("cli")

console = Console()


def load_config(args: argparse.Namespace) -> WeComConfig:
    """Load configuration from ``--config`` or the WECOM_* environment."""
    if args.config:
        config = WeComConfig.from_yaml(args.config)
    else:
        config = WeComConfig.from_env()
    if args.debug:
        config.logging.level = "DEBUG"
    return config


def _apply_recipients(client: WeComClient, args: argparse.Namespace) -> None:
    changes = {
        field: value
        for field, value in (
            ("to_user", args.to_user),
            ("to_party", args.to_party),
            ("to_tag", args.to_tag),
        )
        if value is not None
    }
    if changes:
        client.update_defaults(**changes)


def _print_result(result: MessageSendResult) -> None:
    console.print(f"[green]✓ Message sent[/] msgid={result.msgid or '-'}")
    if result.has_invalid_recipients:
        console.print(
            "[yellow]Invalid recipients:[/] "
            f"user={result.invalid_user or '-'} "
            f"party={result.invalid_party or '-'} "
            f"tag={result.invalid_tag or '-'}"
        )


def cmd_init(args: argparse.Namespace) -> int:
    """Write a template configuration file."""
    output_path = Path(args.output)
    if output_path.exists() and not args.force:
        console.print(f"[red]{output_path} already exists.[/] Use --force to overwrite.")
        return 1

    template = WeComConfig(
        corp_id="${WECOM_CORP_ID}",
        corp_secret="${WECOM_CORP_SECRET}",
        agent_id=1000002,
    ).to_dict()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(template, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    console.print(f"[green]✓ Configuration file created:[/] {output_path}")
    return 0


def cmd_text(client: WeComClient, args: argparse.Namespace) -> int:
    _print_result(client.send_text(args.content, safe=args.safe))
    return 0


def cmd_markdown(client: WeComClient, args: argparse.Namespace) -> int:
    _print_result(client.send_markdown(args.content))
    return 0


def cmd_textcard(client: WeComClient, args: argparse.Namespace) -> int:
    _print_result(client.send_textcard(args.title, args.description, args.url, args.button))
    return 0


def cmd_news(client: WeComClient, args: argparse.Namespace) -> int:
    article = NewsArticle(
        title=args.title,
        description=args.description,
        url=args.url,
        picurl=args.picurl,
    )
    _print_result(client.send_news([article], safe=args.safe))
    return 0


def cmd_image(client: WeComClient, args: argparse.Namespace) -> int:
    media_id = client.upload_media(args.path, MediaType.IMAGE)
    _print_result(client.send_image(media_id, safe=args.safe))
    return 0


def cmd_file(client: WeComClient, args: argparse.Namespace) -> int:
    media_id = client.upload_media(args.path, MediaType.FILE)
    _print_result(client.send_file(media_id, safe=args.safe))
    return 0


def cmd_upload(client: WeComClient, args: argparse.Namespace) -> int:
    media_id = client.upload_media(args.path, args.type)
    console.print(media_id)
    return 0


CLIENT_COMMANDS: dict[str, Callable[[WeComClient, argparse.Namespace], int]] = {
    "text": cmd_text,
    "markdown": cmd_markdown,
    "textcard": cmd_textcard,
    "news": cmd_news,
    "image": cmd_image,
    "file": cmd_file,
    "upload": cmd_upload,
}


def _add_recipient_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--to-user", help="Recipient user IDs separated by '|'")
    parser.add_argument("--to-party", help="Recipient department IDs separated by '|'")
    parser.add_argument("--to-tag", help="Recipient tag IDs separated by '|'")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Returns:
        ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="wecom-message",
        description="Send WeCom application messages",
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s v{__version__}",
    )
    parser.add_argument(
        "-c",
        "--config",
        help="Path to YAML configuration file (default: WECOM_* environment variables)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init", help="Generate a configuration template")
    init_parser.add_argument("-o", "--output", default="wecom.yaml", help="Output path")
    init_parser.add_argument("-f", "--force", action="store_true", help="Overwrite existing file")

    text_parser = subparsers.add_parser("text", help="Send a text message")
    text_parser.add_argument("content", help="Message text")
    text_parser.add_argument("--safe", action="store_true", help="Mark as confidential")
    _add_recipient_options(text_parser)

    markdown_parser = subparsers.add_parser("markdown", help="Send a markdown message")
    markdown_parser.add_argument("content", help="Markdown content")
    _add_recipient_options(markdown_parser)

    card_parser = subparsers.add_parser("textcard", help="Send a text card message")
    card_parser.add_argument("--title", required=True, help="Card title")
    card_parser.add_argument("--description", required=True, help="Card description")
    card_parser.add_argument("--url", required=True, help="Link opened by the card")
    card_parser.add_argument("--button", help="Button text")
    _add_recipient_options(card_parser)

    news_parser = subparsers.add_parser("news", help="Send a single-article news message")
    news_parser.add_argument("--title", required=True, help="Article title")
    news_parser.add_argument("--description", default="", help="Article description")
    news_parser.add_argument("--url", default="", help="Article link")
    news_parser.add_argument("--picurl", default="", help="Article picture URL")
    news_parser.add_argument("--safe", action="store_true", help="Mark as confidential")
    _add_recipient_options(news_parser)

    for kind in ("image", "file"):
        media_parser = subparsers.add_parser(kind, help=f"Upload and send a {kind}")
        media_parser.add_argument("path", help=f"Local {kind} path")
        media_parser.add_argument("--safe", action="store_true", help="Mark as confidential")
        _add_recipient_options(media_parser)

    upload_parser = subparsers.add_parser("upload", help="Upload media and print its media_id")
    upload_parser.add_argument("path", help="Local file path")
    upload_parser.add_argument(
        "-t",
        "--type",
        default=MediaType.FILE.value,
        choices=[media_type.value for media_type in MediaType],
        help="Media type (default: file)",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Args:
        argv: Optional sequence of CLI arguments (without the program name).

    Returns:
        Process exit code. 0 for success.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "init":
        return cmd_init(args)

    try:
        config = load_config(args)
    except (OSError, ValueError) as e:
        console.print(f"[red]✗ Invalid configuration:[/] {escape(str(e))}")
        return 1

    setup_logging(config.logging)

    try:
        with WeComClient(config) as client:
            if args.command != "upload":
                _apply_recipients(client, args)
            return CLIENT_COMMANDS[args.command](client, args)
    except (WeComError, OSError, ValueError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        console.print(f"[red]✗ {args.command} failed:[/] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
