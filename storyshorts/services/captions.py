"""
Caption rendering with Pillow.

Produces the transparent caption overlays burned into each scene, the
placeholder backgrounds used when image generation fails, and the cover
image handed to the publisher.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont, ImageOps

from storyshorts.models import Scene

logger = logging.getLogger(__name__)

FONT_CANDIDATES = [
    "DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "Arial Bold.ttf",
    "arialbd.ttf",
]

PLACEHOLDER_COLOR = (44, 62, 80)


@dataclass
class CaptionStyle:
    font_path: Optional[str] = None
    font_size: int = 90
    color: tuple = (255, 255, 255, 255)
    stroke_color: tuple = (0, 0, 0, 255)
    stroke_width: int = 6
    line_spacing: int = 10
    margin_x: int = 75
    position_y: float = 0.75


def load_font(size: int, font_path: Optional[str] = None) -> ImageFont.ImageFont:
    candidates = [font_path] if font_path else []
    for candidate in candidates + FONT_CANDIDATES:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue

    logger.warning("Using default PIL font, text quality may be reduced")
    return ImageFont.load_default(size=size)


def wrap_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> list[str]:
    """Greedy word wrap by rendered width."""
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}".strip()
        if current and draw.textlength(candidate, font=font) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


class CaptionRenderer:
    """Renders text layers at the output video resolution."""

    def __init__(self, width: int = 1080, height: int = 1920, style: Optional[CaptionStyle] = None):
        self.width = width
        self.height = height
        self.style = style or CaptionStyle()

    def _draw_lines(
        self,
        draw: ImageDraw.ImageDraw,
        lines: list[str],
        font,
        center_y: float,
        fill,
        stroke_width: int,
    ) -> None:
        line_height = font.size + self.style.line_spacing if hasattr(font, "size") else 40
        y = center_y - (len(lines) - 1) * line_height / 2
        for line in lines:
            draw.text(
                (self.width / 2, y),
                line,
                font=font,
                fill=fill,
                anchor="mm",
                stroke_width=stroke_width,
                stroke_fill=self.style.stroke_color,
            )
            y += line_height

    def render_overlay(self, text: str, output_path: Path) -> Path:
        """Transparent full-frame PNG with the caption in the lower third."""
        image = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        if text and text.strip():
            draw = ImageDraw.Draw(image)
            font = load_font(self.style.font_size, self.style.font_path)
            lines = wrap_text(draw, text.strip(), font, self.width - 2 * self.style.margin_x)
            self._draw_lines(
                draw, lines, font,
                self.height * self.style.position_y,
                self.style.color,
                self.style.stroke_width,
            )
        image.save(output_path, format="PNG")
        return output_path

    def render_placeholder(self, scene: Scene, output_path: Path) -> Path:
        """Deterministic stand-in background: flat fill, scene number, caption."""
        image = Image.new("RGB", (self.width, self.height), PLACEHOLDER_COLOR)
        draw = ImageDraw.Draw(image)

        watermark = load_font(400, self.style.font_path)
        draw.text(
            (self.width / 2, self.height / 2),
            str(scene.id),
            font=watermark,
            fill=(70, 80, 95),
            anchor="mm",
        )

        if scene.screen_text:
            font = load_font(80, self.style.font_path)
            lines = wrap_text(draw, scene.screen_text, font, self.width - 2 * self.style.margin_x)
            self._draw_lines(draw, lines, font, self.height / 3, (255, 255, 255), 4)

        small = load_font(24, self.style.font_path)
        prompt_lines = wrap_text(draw, scene.image_prompt, small, self.width - 100)
        y = self.height - 300
        for line in prompt_lines[:6]:
            draw.text((self.width / 2, y), line, font=small, fill=(140, 140, 140), anchor="mm")
            y += 30

        image.save(output_path, format="PNG")
        return output_path

    def render_cover(self, text: str, output_path: Path, background: Optional[Path] = None) -> Path:
        """Cover frame: darkened background with large centered title."""
        if background and background.exists():
            with Image.open(background) as source:
                image = ImageOps.fit(source.convert("RGB"), (self.width, self.height))
        else:
            image = Image.new("RGB", (self.width, self.height), (26, 26, 26))

        shade = Image.new("RGB", image.size, (0, 0, 0))
        image = Image.blend(image, shade, 0.4)
        draw = ImageDraw.Draw(image)

        text = text.upper()
        max_width = self.width - 120
        font_size = 120
        while True:
            font = load_font(font_size, self.style.font_path)
            lines = wrap_text(draw, text, font, max_width)
            fits = all(draw.textlength(line, font=font) <= max_width for line in lines)
            if fits or font_size <= 60:
                break
            font_size -= 10

        self._draw_lines(draw, lines, font, self.height / 2, (255, 255, 255), 12)
        image.save(output_path, format="PNG")
        return output_path
