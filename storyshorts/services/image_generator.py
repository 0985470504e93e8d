"""
Image Generator - Google Gemini image generation for scene backgrounds.

Returns raw image bytes with their detected MIME type. Any failure is
reported as AssetFailure so the visuals stage can substitute a placeholder.
"""
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from storyshorts.config import AIConfig, config
from storyshorts.exceptions import AssetFailure

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG"
JPEG_SIGNATURE = b"\xff\xd8\xff"
RIFF_SIGNATURE = b"RIFF"
WEBP_MARKER = b"WEBP"


def detect_image_mime(data: bytes) -> str:
    """
    Detect image format from magic bytes.

    PNG ``89 50 4E 47``, JPEG ``FF D8 FF``, WebP ``RIFF....WEBP``.
    Anything else is assumed to be JPEG.
    """
    if data.startswith(PNG_SIGNATURE):
        return "image/png"
    if data.startswith(JPEG_SIGNATURE):
        return "image/jpeg"
    if data.startswith(RIFF_SIGNATURE) and data[8:12] == WEBP_MARKER:
        return "image/webp"
    return "image/jpeg"


def _find_inline_data(candidate) -> Optional[dict]:
    """Return the first inlineData part of a candidate, or None for any other shape."""
    if not isinstance(candidate, dict):
        return None
    content = candidate.get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list):
        return None
    for part in parts:
        if isinstance(part, dict) and isinstance(part.get("inlineData"), dict):
            return part["inlineData"]
    return None


@dataclass
class GeneratedImage:
    """Raw generated image."""
    data: bytes
    mime_type: str
    prompt: str


class ImageGenerator:
    """Gemini image generation client."""

    def __init__(
        self,
        ai_config: Optional[AIConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.ai = ai_config or config.ai
        self.client = client or httpx.AsyncClient(timeout=self.ai.request_timeout)

        if not self.ai.has_google:
            logger.warning("[IMAGES] No Google API key - every scene will use a placeholder")

    async def generate(self, scene_id: int, prompt: str) -> GeneratedImage:
        """
        Generate one image for a scene prompt.

        Raises:
            AssetFailure: service error, blocked prompt or empty payload.
        """
        if not self.ai.has_google:
            raise AssetFailure(scene_id, "Google API key is not configured")

        url = f"{self.ai.api_base_url}/{self.ai.image_model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": f"Generate an image: {prompt}"}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }

        logger.info(f"[IMAGES] Scene {scene_id}: {prompt[:80]}...")

        try:
            response = await self.client.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self.ai.google_api_key},
            )
        except httpx.HTTPError as e:
            raise AssetFailure(scene_id, f"request failed: {e}") from e

        if response.status_code != 200:
            raise AssetFailure(scene_id, f"API error {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise AssetFailure(scene_id, f"invalid JSON response: {e}") from e

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates or not isinstance(candidates, list):
            raise AssetFailure(scene_id, "no candidates in response")

        inline = _find_inline_data(candidates[0])
        if not inline or not isinstance(inline.get("data"), str) or not inline["data"]:
            raise AssetFailure(scene_id, "no image data in response")

        try:
            image_bytes = base64.b64decode(inline["data"], validate=True)
        except (binascii.Error, ValueError) as e:
            raise AssetFailure(scene_id, f"invalid base64 payload: {e}") from e

        if not image_bytes:
            raise AssetFailure(scene_id, "empty image payload")

        # Declared mimeType is unreliable; trust the bytes
        mime_type = detect_image_mime(image_bytes)
        declared = inline.get("mimeType")
        if declared and declared != mime_type:
            logger.debug(f"[IMAGES] Scene {scene_id}: declared {declared}, detected {mime_type}")
        return GeneratedImage(data=image_bytes, mime_type=mime_type, prompt=prompt)

    async def close(self):
        await self.client.aclose()
