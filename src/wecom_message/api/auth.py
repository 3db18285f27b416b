"""Access token retrieval for the WeCom API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..core.logger import get_logger

if TYPE_CHECKING:
    from ..core.config import WeComConfig

logger = get_logger("auth")


class WeComAuthMixin:
    """Mixin providing access token retrieval.

    This mixin should be used with a class that has:
    - self.config: WeComConfig
    - self._request(...) -> dict
    """

    GET_TOKEN_URL = "/cgi-bin/gettoken"

    config: WeComConfig

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Perform an API call with retry. To be implemented by main class."""
        raise NotImplementedError

    def fetch_access_token(self) -> str:
        """Fetch a new access token with the corp ID and secret.

        Returns:
            Access token string.

        Raises:
            WeComAPIError: If the platform rejects the credentials.
            RetryExhaustedError: If the token endpoint stays unreachable or keeps
                answering without an access_token.
        """
        logger.debug("Requesting new access_token")
        data = self._request(
            "GET",
            self.GET_TOKEN_URL,
            params={"corpid": self.config.corp_id, "corpsecret": self.config.corp_secret},
            authenticated=False,
            required="access_token",
        )
        token = data["access_token"]

        logger.info("Obtained access_token (expires in %s seconds)", data.get("expires_in", "?"))
        return token
