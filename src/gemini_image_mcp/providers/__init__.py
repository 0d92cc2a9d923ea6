"""Image generation providers."""

from .base import (
    ImageProvider,
    GenerationOutcome,
    ImageFormat,
    ProviderModel,
    detect_image_format,
    resolve_image_format,
    read_dimensions,
)
from .gemini import GeminiProvider

__all__ = [
    "ImageProvider",
    "GenerationOutcome",
    "ImageFormat",
    "ProviderModel",
    "detect_image_format",
    "resolve_image_format",
    "read_dimensions",
    "GeminiProvider",
]
