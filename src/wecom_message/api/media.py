"""Media upload for WeCom.

Uploaded media is referenced by the returned ``media_id`` in image and file
messages. The platform keeps temporary media for three days.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..core.logger import get_logger
from .models import MediaType

logger = get_logger("media")


class WeComMediaMixin:
    """Mixin providing media upload for WeCom.

    This mixin should be used with a class that has:
    - self._request(...) -> dict
    """

    UPLOAD_MEDIA_URL = "/cgi-bin/media/upload"

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Perform an API call with retry. To be implemented by main class."""
        raise NotImplementedError

    def upload_media(self, path: str | Path, media_type: MediaType | str) -> str:
        """Upload a local file as temporary media.

        Args:
            path: File to upload.
            media_type: Media category (image, voice, video, file).

        Returns:
            Media ID for use with ``send_image`` / ``send_file``.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the media type is unknown.
            WeComAPIError: If the platform rejects the upload.
            RetryExhaustedError: If the API stays unreachable.
        """
        media_type = MediaType(media_type)
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"Media file not found: {file_path}")

        data = self._request(
            "POST",
            self.UPLOAD_MEDIA_URL,
            params={"type": media_type.value},
            upload=file_path,
            required="media_id",
        )
        media_id = data["media_id"]

        logger.info("Uploaded %s %s: %s", media_type.value, file_path.name, media_id)
        return media_id
