"""
Audio Synthesizer - single-pass narration with Gemini native TTS.

The whole manifest narration goes out in one request so the voice stays
continuous. The service returns bare little-endian PCM; build_wav_header
wraps it in a RIFF/WAVE container.
"""
import base64
import logging
import os
import re
import struct
import wave
from pathlib import Path
from typing import Optional

import httpx

from storyshorts.config import AIConfig, config
from storyshorts.exceptions import SynthesisFailure
from storyshorts.models import Manifest, VoiceGender

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44
AUDIO_FILENAME = "full_audio.wav"

_RATE_RE = re.compile(r"rate=(\d+)")


def build_wav_header(
    samples: bytes,
    sample_rate: int,
    channels: int,
    bits_per_sample: int = 16,
) -> bytes:
    """
    Build the 44-byte canonical WAV header for a linear PCM payload.

    The RIFF size field is 36 + data length and the data chunk length is
    the exact byte count of ``samples``.
    """
    if sample_rate <= 0 or channels <= 0:
        raise ValueError("sample_rate and channels must be positive")
    if bits_per_sample % 8:
        raise ValueError("bits_per_sample must be a multiple of 8")

    bytes_per_sample = bits_per_sample // 8
    data_size = len(samples)
    byte_rate = sample_rate * channels * bytes_per_sample
    block_align = channels * bytes_per_sample

    return (
        b"RIFF"
        + struct.pack("<I", 36 + data_size)
        + b"WAVE"
        + b"fmt "
        + struct.pack("<IHHIIHH", 16, 1, channels, sample_rate, byte_rate, block_align, bits_per_sample)
        + b"data"
        + struct.pack("<I", data_size)
    )


def wrap_pcm(samples: bytes, sample_rate: int, channels: int, bits_per_sample: int = 16) -> bytes:
    """Return a complete WAV file image for raw PCM samples."""
    return build_wav_header(samples, sample_rate, channels, bits_per_sample) + samples


def wav_duration(path: Path) -> float:
    """Duration in seconds read from a WAV header."""
    with wave.open(str(path), "rb") as wav:
        frames = wav.getnframes()
        rate = wav.getframerate()
    if rate <= 0:
        return 0.0
    return frames / float(rate)


def sample_rate_from_mime(mime_type: Optional[str], default: int) -> int:
    """Extract the sample rate from e.g. 'audio/L16;codec=pcm;rate=24000'."""
    if mime_type:
        match = _RATE_RE.search(mime_type)
        if match:
            return int(match.group(1))
    return default


class AudioSynthesizer:
    """Gemini TTS client that produces one WAV narration track per article."""

    def __init__(
        self,
        ai_config: Optional[AIConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.ai = ai_config or config.ai
        self.client = client or httpx.AsyncClient(timeout=self.ai.request_timeout)

    def voice_for(self, gender: VoiceGender) -> str:
        return self.ai.male_voice if gender == VoiceGender.MALE else self.ai.female_voice

    async def synthesize(self, manifest: Manifest, output_dir: Path) -> Path:
        """
        Synthesize the full narration and write ``full_audio.wav``.

        Raises:
            SynthesisFailure: any service or decoding error.
        """
        if not self.ai.has_google:
            raise SynthesisFailure("Google API key is not configured")

        text = manifest.narration
        voice = self.voice_for(manifest.voice_gender)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / AUDIO_FILENAME

        logger.info(f"[TTS] Generating full narration ({len(text)} chars) with voice '{voice}'")

        url = f"{self.ai.api_base_url}/{self.ai.tts_model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}},
                },
            },
        }

        try:
            response = await self.client.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self.ai.google_api_key},
            )
        except httpx.HTTPError as e:
            raise SynthesisFailure(f"request failed: {e}") from e

        if response.status_code != 200:
            raise SynthesisFailure(f"API error {response.status_code}: {response.text[:300]}")

        try:
            inline = response.json()["candidates"][0]["content"]["parts"][0]["inlineData"]
            samples = base64.b64decode(inline["data"], validate=True)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise SynthesisFailure(f"no audio data in response: {e}") from e

        if not samples:
            raise SynthesisFailure("empty audio payload")

        sample_rate = sample_rate_from_mime(inline.get("mimeType"), self.ai.sample_rate)
        wav_bytes = wrap_pcm(samples, sample_rate, self.ai.channels)

        tmp_path = output_path.with_suffix(".wav.part")
        tmp_path.write_bytes(wav_bytes)
        os.replace(tmp_path, output_path)

        logger.info(
            f"[TTS] Audio saved: {output_path.name} ({len(wav_bytes)} bytes, "
            f"{len(samples) / (sample_rate * self.ai.channels * 2):.2f}s)"
        )
        return output_path

    async def close(self):
        await self.client.aclose()
