"""Base provider interface for image generation."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, List, Any, Tuple
import io

from PIL import Image, UnidentifiedImageError


class ImageFormat(Enum):
    """Supported image formats."""
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    GIF = "gif"
    UNKNOWN = "unknown"

    @property
    def extension(self) -> str:
        """Get file extension for this format (without dot)."""
        return {
            ImageFormat.JPEG: "jpg",
            ImageFormat.PNG: "png",
            ImageFormat.WEBP: "webp",
            ImageFormat.GIF: "gif",
            ImageFormat.UNKNOWN: "png",
        }[self]

    @property
    def mime_type(self) -> str:
        """Get MIME type for this format."""
        return {
            ImageFormat.JPEG: "image/jpeg",
            ImageFormat.PNG: "image/png",
            ImageFormat.WEBP: "image/webp",
            ImageFormat.GIF: "image/gif",
            ImageFormat.UNKNOWN: "application/octet-stream",
        }[self]

    @classmethod
    def from_mime_type(cls, mime_type: Optional[str]) -> "ImageFormat":
        """Map a MIME type such as ``image/jpeg`` to a format."""
        if not mime_type:
            return cls.UNKNOWN
        subtype = mime_type.split(";")[0].strip().lower()
        return {
            "image/png": cls.PNG,
            "image/jpeg": cls.JPEG,
            "image/jpg": cls.JPEG,
            "image/webp": cls.WEBP,
            "image/gif": cls.GIF,
        }.get(subtype, cls.UNKNOWN)


def detect_image_format(data: bytes) -> ImageFormat:
    """Detect image format from magic bytes."""
    if len(data) < 4:
        return ImageFormat.UNKNOWN

    # JPEG: FFD8FF
    if data[:3] == b'\xff\xd8\xff':
        return ImageFormat.JPEG
    # PNG: 89504E47 0D0A1A0A
    if data[:8] == b'\x89PNG\r\n\x1a\n':
        return ImageFormat.PNG
    # WebP: RIFF....WEBP
    if data[:4] == b'RIFF' and len(data) >= 12 and data[8:12] == b'WEBP':
        return ImageFormat.WEBP
    # GIF: GIF87a or GIF89a
    if data[:6] in (b'GIF87a', b'GIF89a'):
        return ImageFormat.GIF

    return ImageFormat.UNKNOWN


def resolve_image_format(data: bytes, mime_type: Optional[str]) -> ImageFormat:
    """Prefer the format the bytes actually have over the declared MIME type."""
    detected = detect_image_format(data)
    if detected != ImageFormat.UNKNOWN:
        return detected
    return ImageFormat.from_mime_type(mime_type)


def read_dimensions(data: bytes) -> Optional[Tuple[int, int]]:
    """Read (width, height) of image data using Pillow."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, ValueError):
        # Not decodable; callers fall back to the requested size
        return None


@dataclass
class GenerationOutcome:
    """Result of one provider call.

    Either ``ok`` with image bytes and their MIME type, or not ``ok`` with the
    provider's reason for producing no image.
    """
    ok: bool
    mime_type: Optional[str] = None
    data: Optional[bytes] = None
    reason: Optional[str] = None

    # Text the model returned alongside (or instead of) the image
    text: Optional[str] = None

    @classmethod
    def success(cls, data: bytes, mime_type: str, text: Optional[str] = None) -> "GenerationOutcome":
        return cls(ok=True, mime_type=mime_type, data=data, text=text)

    @classmethod
    def failure(cls, reason: str, text: Optional[str] = None) -> "GenerationOutcome":
        return cls(ok=False, reason=reason, text=text)


@dataclass
class ProviderModel:
    """Information about an available model."""
    id: str
    name: str
    description: str
    context_window: int = 4096

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.name,
            "description": self.description,
            "contextWindow": self.context_window,
        }


class ImageProvider(ABC):
    """Abstract base class for image generation providers."""

    name: str = "base"
    display_name: str = "Base Provider"
    requires_api_key: bool = False

    def __init__(self, api_key: Optional[str] = None, config: Optional[Dict] = None):
        self.api_key = api_key
        self.config = config or {}
        self._last_error: Optional[str] = None
        self._request_count = 0

    @property
    def configured(self) -> bool:
        return bool(self.api_key) if self.requires_api_key else True

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model: str,
        width: int = 1024,
        height: int = 1024,
    ) -> GenerationOutcome:
        """Generate an image from a text prompt."""
        pass

    @abstractmethod
    def list_models(self) -> List[ProviderModel]:
        """List available models for this provider."""
        pass

    async def check_health(self) -> Dict[str, Any]:
        """Report provider configuration and usage."""
        return {
            "provider": self.name,
            "configured": self.configured,
            "request_count": self._request_count,
            "last_error": self._last_error,
        }

    def _record_request(self):
        """Record a request for tracking."""
        self._request_count += 1
