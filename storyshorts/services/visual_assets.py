"""
Visual Asset Preparer - one normalized image per scene.

Each scene prompt goes to the image generator. A failed scene gets a
placeholder instead, so every scene id always maps to a usable PNG at the
output resolution. Files that already exist are reused.
"""
import io
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from storyshorts.config import RenderConfig, config
from storyshorts.exceptions import AssetFailure
from storyshorts.models import Manifest, Scene
from storyshorts.services.captions import CaptionRenderer
from storyshorts.services.image_generator import ImageGenerator

logger = logging.getLogger(__name__)

COVER_FILENAME = "cover.png"


def scene_image_path(asset_dir: Path, scene_id: int) -> Path:
    return Path(asset_dir) / f"image_{scene_id}.png"


def scene_caption_path(asset_dir: Path, scene_id: int) -> Path:
    return Path(asset_dir) / f"text_{scene_id}.png"


def normalize_image(data: bytes, width: int, height: int) -> Image.Image:
    """Decode image bytes and center-crop/scale to exactly width x height."""
    with Image.open(io.BytesIO(data)) as source:
        return ImageOps.fit(source.convert("RGB"), (width, height), method=Image.Resampling.LANCZOS)


class VisualAssetPreparer:
    """Builds the per-scene image map for a manifest."""

    def __init__(
        self,
        generator: Optional[ImageGenerator] = None,
        render_config: Optional[RenderConfig] = None,
        captions: Optional[CaptionRenderer] = None,
    ):
        self.render = render_config or config.render
        self.generator = generator or ImageGenerator()
        self.captions = captions or CaptionRenderer(self.render.width, self.render.height)

    async def prepare_visuals(self, manifest: Manifest, output_dir: Path) -> dict[int, Path]:
        """
        Resolve an image for every scene.

        Returns:
            Mapping scene id -> PNG path; always one entry per scene.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"[VISUALS] Preparing visuals for {len(manifest.scenes)} scenes")

        image_map: dict[int, Path] = {}
        placeholders = 0

        for scene in manifest.scenes:
            image_path = scene_image_path(output_dir, scene.id)
            caption_path = scene_caption_path(output_dir, scene.id)

            if not caption_path.exists():
                self.captions.render_overlay(scene.screen_text, caption_path)

            if image_path.exists():
                logger.info(f"[VISUALS] Scene {scene.id}: reusing {image_path.name}")
                image_map[scene.id] = image_path
                continue

            if not await self._generate_scene_image(scene, image_path):
                self.captions.render_placeholder(scene, image_path)
                placeholders += 1
                logger.warning(f"[VISUALS] Scene {scene.id}: using placeholder")

            image_map[scene.id] = image_path

        self._prepare_cover(manifest, output_dir, image_map)

        logger.info(
            f"[VISUALS] Images ready for {len(image_map)} scenes "
            f"({placeholders} placeholder{'s' if placeholders != 1 else ''})"
        )
        return image_map

    async def _generate_scene_image(self, scene: Scene, image_path: Path) -> bool:
        try:
            generated = await self.generator.generate(scene.id, scene.image_prompt)
        except AssetFailure as e:
            logger.warning(f"[VISUALS] {e}")
            return False

        try:
            image = normalize_image(generated.data, self.render.width, self.render.height)
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f"[VISUALS] Scene {scene.id}: undecodable {generated.mime_type} payload: {e}")
            return False

        tmp_path = image_path.with_suffix(".png.part")
        image.save(tmp_path, format="PNG")
        tmp_path.replace(image_path)
        logger.info(f"[VISUALS] Scene {scene.id}: saved {image_path.name} (source {generated.mime_type})")
        return True

    def _prepare_cover(self, manifest: Manifest, output_dir: Path, image_map: dict[int, Path]) -> Optional[Path]:
        """Cover for the publisher; best effort."""
        cover_path = output_dir / COVER_FILENAME
        if cover_path.exists():
            return cover_path

        first = image_map.get(manifest.scenes[0].id)
        try:
            return self.captions.render_cover(manifest.cover_text or manifest.title, cover_path, first)
        except OSError as e:
            logger.warning(f"[VISUALS] Cover generation failed: {e}")
            return None

    async def close(self):
        await self.generator.close()
