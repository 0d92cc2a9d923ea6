"""
Google Gemini Provider
======================

Image generation through the Gemini ``generateContent`` REST endpoint.

The request asks for both TEXT and IMAGE response modalities; the first
inline image part is the result. When the model answers with text only
(for example a safety refusal) that text is returned as the failure reason.

Endpoint: https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent
"""

import asyncio
import base64
import binascii
import logging
from typing import Optional, List, Dict, Any

import aiohttp

from .base import (
    ImageProvider,
    GenerationOutcome,
    ProviderModel,
)


logger = logging.getLogger("gemini-image-mcp.gemini")


class GeminiProvider(ImageProvider):
    """Google Gemini image generation."""

    name = "gemini"
    display_name = "Google Gemini"
    requires_api_key = True

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    MODELS = {
        "gemini-2.0-flash-preview-image-generation": ProviderModel(
            id="gemini-2.0-flash-preview-image-generation",
            name="Gemini 2.0 Flash",
            description="Fast image generation model",
        ),
        "gemini-2.0-pro-001": ProviderModel(
            id="gemini-2.0-pro-001",
            name="Gemini 2.0 Pro",
            description="High quality image generation model",
        ),
        "gemini-1.5-pro-latest": ProviderModel(
            id="gemini-1.5-pro-latest",
            name="Gemini 1.5 Pro",
            description="Gemini 1.5 Pro image generation capability",
        ),
    }

    def __init__(self, api_key: Optional[str] = None, config: Optional[Dict] = None):
        super().__init__(api_key, config)
        self.timeout = int(self.config.get("timeout", 120))

    def _build_payload(self, prompt: str, width: int, height: int) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": f"Create an image of {prompt}. Make it {width}x{height} pixels."}],
                }
            ],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
            },
        }

    async def generate(
        self,
        prompt: str,
        model: str,
        width: int = 1024,
        height: int = 1024,
    ) -> GenerationOutcome:
        """Generate an image using Gemini."""
        if not self.api_key:
            return GenerationOutcome.failure(
                "Gemini API key required. Set GEMINI_API_KEY env var."
            )

        url = f"{self.BASE_URL}/{model}:generateContent"
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        payload = self._build_payload(prompt, width, height)

        logger.info(f"Requesting image from {model} ({width}x{height})")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    headers=headers,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    self._record_request()
                    if response.status == 200:
                        data = await response.json()
                        outcome = self.parse_response(data)
                    else:
                        outcome = GenerationOutcome.failure(
                            f"HTTP {response.status}: {await self._error_message(response)}"
                        )

        except asyncio.TimeoutError:
            outcome = GenerationOutcome.failure(f"Request timed out ({self.timeout}s)")
        except aiohttp.ClientError as e:
            outcome = GenerationOutcome.failure(f"Connection error: {e}")

        if not outcome.ok:
            self._last_error = outcome.reason
        return outcome

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        try:
            error_data = await response.json(content_type=None)
            return error_data.get("error", {}).get("message") or str(error_data)
        except (ValueError, aiohttp.ContentTypeError, AttributeError):
            return await response.text()

    @staticmethod
    def parse_response(data: Dict[str, Any]) -> GenerationOutcome:
        """Extract the first inline image from a generateContent response."""
        candidates = data.get("candidates") or []
        parts = []
        finish_reason = None
        if candidates:
            first = candidates[0] or {}
            parts = (first.get("content") or {}).get("parts") or []
            finish_reason = first.get("finishReason")

        texts = [part["text"] for part in parts if part.get("text")]
        text = "\n".join(texts) or None

        for part in parts:
            inline = part.get("inlineData") or part.get("inline_data")
            if not inline or not inline.get("data"):
                continue
            mime_type = inline.get("mimeType") or inline.get("mime_type") or ""
            if not mime_type.startswith("image/"):
                continue
            try:
                image_bytes = base64.b64decode(inline["data"], validate=True)
            except (binascii.Error, ValueError) as e:
                return GenerationOutcome.failure(f"Invalid image data in API response: {e}", text=text)
            return GenerationOutcome.success(image_bytes, mime_type, text=text)

        # No image: keep whatever explanation the API gave
        if text:
            return GenerationOutcome.failure(text, text=text)
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            return GenerationOutcome.failure(f"Prompt blocked: {block_reason}")
        if not candidates:
            return GenerationOutcome.failure("No candidates returned from API")
        if finish_reason and finish_reason != "STOP":
            return GenerationOutcome.failure(f"Generation stopped: {finish_reason}")
        return GenerationOutcome.failure("No image data found in API response")

    def list_models(self) -> List[ProviderModel]:
        """List available Gemini models."""
        return list(self.MODELS.values())
