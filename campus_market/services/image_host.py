"""Cloudinary client used to host listing images."""

from __future__ import annotations

import io
import logging
from typing import Any, Dict, Optional

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from ..domain.errors import UpstreamUploadError
from ..domain.ports.media import ImageUpload

logger = logging.getLogger(__name__)


class CloudinaryImageHost:
    """Uploads listing images with the Cloudinary SDK."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        if not (cloud_name and api_key and api_secret):
            raise RuntimeError("Cloudinary credentials are incomplete.")
        # Credentials travel with each call instead of the SDK's process-wide config.
        self._options: Dict[str, Any] = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
            "resource_type": "image",
            "timeout": timeout,
        }
        if folder:
            self._options["folder"] = folder

    def upload(self, image: ImageUpload) -> str:
        try:
            result = cloudinary.uploader.upload(io.BytesIO(image.data), **self._options)
        except (CloudinaryError, OSError) as exc:
            raise UpstreamUploadError(f"Image upload failed: {exc}") from exc

        url = (result or {}).get("secure_url")
        if not url:
            raise UpstreamUploadError("Image host response did not include a URL")
        logger.debug("Uploaded %s (%d bytes) to %s", image.filename, image.size, url)
        return url
