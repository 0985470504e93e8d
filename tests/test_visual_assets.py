"""
Tests for visual asset preparation and caption rendering.
"""
import io
from unittest.mock import AsyncMock

import httpx
import pytest
from PIL import Image

from storyshorts.config import RenderConfig
from storyshorts.exceptions import AssetFailure
from storyshorts.models import Manifest
from storyshorts.services.captions import PLACEHOLDER_COLOR, CaptionRenderer
from storyshorts.services.image_generator import GeneratedImage, ImageGenerator
from storyshorts.services.visual_assets import (
    COVER_FILENAME,
    VisualAssetPreparer,
    normalize_image,
    scene_caption_path,
    scene_image_path,
)

WIDTH, HEIGHT = 108, 192


def _png_bytes(size=(300, 200), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def _preparer(generator) -> VisualAssetPreparer:
    return VisualAssetPreparer(
        generator=generator,
        render_config=RenderConfig(width=WIDTH, height=HEIGHT),
        captions=CaptionRenderer(WIDTH, HEIGHT),
    )


class TestNormalizeImage:
    """Tests for normalize_image()."""

    def test_crops_to_target_size(self):
        image = normalize_image(_png_bytes((500, 300)), WIDTH, HEIGHT)
        assert image.size == (WIDTH, HEIGHT)
        assert image.mode == "RGB"


class TestVisualAssetPreparer:
    """Tests for VisualAssetPreparer."""

    @pytest.mark.asyncio
    async def test_all_scenes_generated(self, sample_manifest, temp_dir):
        generator = AsyncMock()
        generator.generate.return_value = GeneratedImage(_png_bytes(), "image/png", "p")

        image_map = await _preparer(generator).prepare_visuals(sample_manifest, temp_dir)

        assert set(image_map) == {1, 2}
        for scene_id, path in image_map.items():
            assert path == scene_image_path(temp_dir, scene_id)
            with Image.open(path) as image:
                assert image.size == (WIDTH, HEIGHT)
            assert scene_caption_path(temp_dir, scene_id).exists()
        assert generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_scene_gets_placeholder(self, sample_manifest, temp_dir):
        generator = AsyncMock()
        generator.generate.side_effect = [
            GeneratedImage(_png_bytes(), "image/png", "p"),
            AssetFailure(2, "blocked"),
        ]

        image_map = await _preparer(generator).prepare_visuals(sample_manifest, temp_dir)

        assert len(image_map) == len(sample_manifest.scenes)
        assert image_map[2].exists()
        with Image.open(image_map[2]) as image:
            assert image.size == (WIDTH, HEIGHT)

    @pytest.mark.asyncio
    async def test_undecodable_payload_gets_placeholder(self, sample_manifest, temp_dir):
        generator = AsyncMock()
        generator.generate.return_value = GeneratedImage(b"\xff\xd8\xffgarbage", "image/jpeg", "p")

        image_map = await _preparer(generator).prepare_visuals(sample_manifest, temp_dir)

        assert sorted(image_map) == [1, 2]
        assert all(path.exists() for path in image_map.values())

    @pytest.mark.asyncio
    async def test_unexpected_response_shape_gets_placeholder(self, sample_manifest, temp_dir, ai_config):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])))
        generator = ImageGenerator(ai_config=ai_config, client=client)

        image_map = await _preparer(generator).prepare_visuals(sample_manifest, temp_dir)
        await generator.close()

        assert sorted(image_map) == [1, 2]
        for path in image_map.values():
            with Image.open(path) as image:
                assert image.size == (WIDTH, HEIGHT)

    @pytest.mark.asyncio
    async def test_every_scene_failing_still_maps_every_id(self, temp_dir):
        manifest = Manifest.model_validate({
            "title": "t",
            "scenes": [{"id": i, "text": "x", "image_prompt": "p"} for i in range(5)],
        })
        generator = AsyncMock()
        generator.generate.side_effect = AssetFailure(0, "down")

        image_map = await _preparer(generator).prepare_visuals(manifest, temp_dir)

        assert sorted(image_map) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_existing_images_reused(self, sample_manifest, temp_dir):
        Image.new("RGB", (WIDTH, HEIGHT)).save(scene_image_path(temp_dir, 1))
        generator = AsyncMock()
        generator.generate.return_value = GeneratedImage(_png_bytes(), "image/png", "p")

        await _preparer(generator).prepare_visuals(sample_manifest, temp_dir)

        assert generator.generate.await_count == 1
        assert generator.generate.await_args.args[0] == 2

    @pytest.mark.asyncio
    async def test_cover_created(self, sample_manifest, temp_dir):
        generator = AsyncMock()
        generator.generate.return_value = GeneratedImage(_png_bytes(), "image/png", "p")

        await _preparer(generator).prepare_visuals(sample_manifest, temp_dir)

        assert (temp_dir / COVER_FILENAME).exists()


class TestCaptionRenderer:
    """Tests for CaptionRenderer."""

    def test_overlay_is_transparent_outside_text(self, temp_dir):
        path = CaptionRenderer(WIDTH, HEIGHT).render_overlay("Hello", temp_dir / "t.png")
        with Image.open(path) as image:
            assert image.mode == "RGBA"
            assert image.size == (WIDTH, HEIGHT)
            assert image.getpixel((0, 0))[3] == 0

    def test_empty_overlay(self, temp_dir):
        path = CaptionRenderer(WIDTH, HEIGHT).render_overlay("", temp_dir / "t.png")
        with Image.open(path) as image:
            assert image.getbbox() is None

    def test_placeholder_is_deterministic(self, sample_manifest, temp_dir):
        renderer = CaptionRenderer(WIDTH, HEIGHT)
        scene = sample_manifest.scenes[0]
        first = renderer.render_placeholder(scene, temp_dir / "a.png").read_bytes()
        second = renderer.render_placeholder(scene, temp_dir / "b.png").read_bytes()
        assert first == second

    def test_placeholder_background_is_flat(self, sample_manifest, temp_dir):
        renderer = CaptionRenderer(1080, 1920)
        path = renderer.render_placeholder(sample_manifest.scenes[0], temp_dir / "p.png")
        with Image.open(path) as image:
            assert image.getpixel((0, 0)) == PLACEHOLDER_COLOR
            assert image.getpixel((1079, 0)) == PLACEHOLDER_COLOR
            assert image.getpixel((0, 1919)) == PLACEHOLDER_COLOR
            assert image.getpixel((1079, 1919)) == PLACEHOLDER_COLOR
