from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True, frozen=True)
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class ImageHost(Protocol):
    """External image hosting; returns the public URL of the stored image."""

    def upload(self, image: ImageUpload) -> str:
        """Raise ``UpstreamUploadError`` when the host cannot store the image."""
        ...
