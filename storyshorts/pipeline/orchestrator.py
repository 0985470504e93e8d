"""
Article Orchestrator.

Runs the four production stages for one article, strictly in sequence:
1. Manifest (AI scene breakdown)      -> manifest.json
2. Narration (single TTS call)        -> full_audio.wav
3. Visuals (per-scene images)         -> image_<id>.png, text_<id>.png
4. Render (FFmpeg)                    -> final video

Each stage writes its artifact before the next starts. Artifacts already on
disk are reused, so an interrupted article resumes without repeating paid
generation calls.
"""
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from storyshorts.models import ArticleResult, Manifest
from storyshorts.services.audio_synthesizer import AUDIO_FILENAME, AudioSynthesizer
from storyshorts.services.manifest_generator import ManifestGenerator
from storyshorts.services.video_assembler import VideoAssembler
from storyshorts.services.visual_assets import COVER_FILENAME, VisualAssetPreparer

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
VIDEO_FILENAME = "final_video.mp4"


class VideoOrchestrator:
    """
    Article -> video pipeline.

    Collaborators are injectable so tests can replace the paid services.
    """

    def __init__(
        self,
        manifest_generator: Optional[ManifestGenerator] = None,
        audio_synthesizer: Optional[AudioSynthesizer] = None,
        visual_preparer: Optional[VisualAssetPreparer] = None,
        video_assembler: Optional[VideoAssembler] = None,
    ):
        self.manifest_generator = manifest_generator or ManifestGenerator()
        self.audio_synthesizer = audio_synthesizer or AudioSynthesizer()
        self.visual_preparer = visual_preparer or VisualAssetPreparer()
        self.video_assembler = video_assembler or VideoAssembler()

    async def process_article(
        self,
        text: str,
        out_dir: Path,
        video_path: Optional[Path] = None,
    ) -> ArticleResult:
        """
        Produce the final video for one article.

        Args:
            text: Plain narrative text
            out_dir: Checkpoint directory for intermediate artifacts
            video_path: Final video location (default: out_dir/final_video.mp4)

        Raises:
            PipelineError subclass of the failing stage. Artifacts from
            earlier stages stay on disk.
        """
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        video_path = Path(video_path) if video_path else out_dir / VIDEO_FILENAME

        logger.info(f"[PIPELINE] Processing article ({len(text)} chars) in {out_dir}")

        # Stage 1: manifest
        manifest = self._load_manifest(out_dir)
        if manifest is None:
            manifest = await self.manifest_generator.generate_manifest(text)
            self._save_manifest(manifest, out_dir)
        logger.info(f"[PIPELINE] Manifest: '{manifest.title}', {len(manifest.scenes)} scenes")

        # Stage 2: narration
        audio_path = out_dir / AUDIO_FILENAME
        if audio_path.exists() and audio_path.stat().st_size > 0:
            logger.info(f"[PIPELINE] Reusing narration {audio_path.name}")
        else:
            audio_path = await self.audio_synthesizer.synthesize(manifest, out_dir)

        # Stage 3: visuals (skips scenes whose image already exists)
        image_map = await self.visual_preparer.prepare_visuals(manifest, out_dir)

        # Stage 4: render
        if video_path.exists() and video_path.stat().st_size > 0:
            logger.info(f"[PIPELINE] Reusing rendered video {video_path}")
        else:
            await self.video_assembler.render(manifest, out_dir, audio_path, video_path)

        cover_path = out_dir / COVER_FILENAME
        logger.info(f"[PIPELINE] Done: {video_path}")

        return ArticleResult(
            manifest=manifest,
            audio_path=audio_path,
            image_map=image_map,
            video_path=video_path,
            output_dir=out_dir,
            cover_path=cover_path if cover_path.exists() else None,
        )

    def _load_manifest(self, out_dir: Path) -> Optional[Manifest]:
        manifest_path = out_dir / MANIFEST_FILENAME
        if not manifest_path.exists():
            return None
        try:
            manifest = Manifest.model_validate_json(manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"[PIPELINE] Ignoring unreadable {MANIFEST_FILENAME}: {e}")
            return None
        logger.info(f"[PIPELINE] Reusing {MANIFEST_FILENAME}")
        return manifest

    def _save_manifest(self, manifest: Manifest, out_dir: Path) -> Path:
        manifest_path = out_dir / MANIFEST_FILENAME
        tmp_path = manifest_path.with_suffix(".json.part")
        tmp_path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, manifest_path)
        return manifest_path

    async def close(self):
        await self.manifest_generator.close()
        await self.audio_synthesizer.close()
        await self.visual_preparer.close()
