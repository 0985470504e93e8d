"""
Manifest Generator - turns article text into a scene breakdown.

One request to the Gemini generateContent endpoint in JSON mode. The reply
is validated against the Manifest schema; anything malformed is rejected
with GenerationFailure. There is no retry here: generation is billed and
not idempotent, so retrying is left to the caller.
"""
import json
import logging
import re
from typing import Optional

import httpx
from pydantic import ValidationError

from storyshorts.config import AIConfig, config
from storyshorts.exceptions import GenerationFailure
from storyshorts.models import Manifest

logger = logging.getLogger(__name__)

MAX_ARTICLE_CHARS = 4000

MANIFEST_PROMPT = """You are a top screenwriter of viral vertical short videos.
Turn the article below into a 30-second dramatic short that makes the viewer
open the full story.

═══════════════════════════════════════════════════════════════
ARTICLE:
═══════════════════════════════════════════════════════════════
"{article}"

═══════════════════════════════════════════════════════════════
STRUCTURE:
═══════════════════════════════════════════════════════════════
1. 0-5s HOOK: one punchy sentence, no introductions.
2. 5-20s CONFLICT: emotions only, short sentences.
3. 20-25s CLIMAX: the most tense moment.
4. 25-30s CALL TO ACTION: stop at the peak and send the viewer to read
   the full story on the channel.

RULES:
- At most 60 words of narration in total.
- Narration and screen_text in the language of the article.
- screen_text: 2-4 words, large, emotional triggers.
- image_prompt in English, "Cinematic vertical 9:16 shot. ...".
- duration_estimate: seconds of narration for the scene (positive number).
- effect: one of zoom_in, zoom_out, pan_left, pan_right, static.
- transition: one of fade, cut, slide.
- Scene ids start at 1 and increase by one.

RESPONSE FORMAT (JSON only):
{{
    "title": "Clickbait title of the story",
    "cover_text": "COVER TEXT, 3-4 WORDS",
    "hook": "Hook sentence",
    "music_mood": "dark_suspense_drama",
    "voice_gender": "female",
    "character_description": "Woman, 40s, teary eyes, wearing hoodie",
    "scenes": [
        {{
            "id": 1,
            "text": "Narration for the scene.",
            "screen_text": "HE WAS HOME",
            "image_prompt": "Cinematic vertical 9:16 shot. Woman looking out of a window, shocked.",
            "duration_estimate": 5,
            "effect": "zoom_in",
            "transition": "fade"
        }}
    ],
    "total_duration_estimate": 30
}}"""

_FENCE_RE = re.compile(r"```(?:json)?\s*|```")


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fences a model may wrap around JSON."""
    return _FENCE_RE.sub("", text).strip()


def parse_manifest(payload: str) -> Manifest:
    """
    Parse and validate a manifest JSON payload.

    Raises:
        GenerationFailure: on malformed JSON, schema violations or
            non-positive scene duration estimates.
    """
    try:
        data = json.loads(strip_code_fences(payload))
    except json.JSONDecodeError as e:
        raise GenerationFailure(f"response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise GenerationFailure("response JSON is not an object")

    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        raise GenerationFailure(f"manifest failed validation: {e.error_count()} error(s): {e}") from e

    bad = [scene.id for scene in manifest.scenes if scene.duration_estimate <= 0]
    if bad:
        raise GenerationFailure(f"scenes without positive duration estimate: {bad}")

    return manifest


class ManifestGenerator:
    """Gemini-backed scene breakdown generator."""

    def __init__(
        self,
        ai_config: Optional[AIConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.ai = ai_config or config.ai
        self.client = client or httpx.AsyncClient(timeout=self.ai.request_timeout)

        if not self.ai.has_google:
            logger.warning("[MANIFEST] No Google API key - manifest generation disabled")

    def build_prompt(self, article_text: str) -> str:
        article = article_text.strip()
        if len(article) > MAX_ARTICLE_CHARS:
            article = article[:MAX_ARTICLE_CHARS] + "..."
        return MANIFEST_PROMPT.format(article=article)

    async def generate_manifest(self, article_text: str) -> Manifest:
        """
        Generate a validated Manifest for the article.

        Raises:
            GenerationFailure: service error or invalid payload.
        """
        if not article_text or not article_text.strip():
            raise GenerationFailure("article text is empty")
        if not self.ai.has_google:
            raise GenerationFailure("Google API key is not configured")

        url = f"{self.ai.api_base_url}/{self.ai.manifest_model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": self.build_prompt(article_text)}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }

        logger.info(f"[MANIFEST] Requesting scene breakdown ({len(article_text)} chars) from {self.ai.manifest_model}")

        try:
            response = await self.client.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self.ai.google_api_key},
            )
        except httpx.HTTPError as e:
            raise GenerationFailure(f"request failed: {e}") from e

        if response.status_code != 200:
            raise GenerationFailure(f"API error {response.status_code}: {response.text[:300]}")

        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationFailure(f"unexpected response shape: {e}") from e

        if not isinstance(text, str):
            raise GenerationFailure(f"unexpected text part type: {type(text).__name__}")
        if not text:
            raise GenerationFailure("empty response from model")

        manifest = parse_manifest(text)
        logger.info(f"[MANIFEST] '{manifest.title}': {len(manifest.scenes)} scenes")
        return manifest

    async def close(self):
        await self.client.aclose()
