"""
Ken Burns and transition filters for FFmpeg.

Zoom/pan amplitudes are kept small (5%) and interpolated linearly over the
clip's frame count to avoid visible jitter.
"""
from typing import Optional

from storyshorts.models import SceneEffect, SceneTransition

ZOOM_AMOUNT = 0.05
PAN_AMOUNT = 0.025

XFADE_TRANSITIONS = {
    SceneTransition.FADE: "fade",
    SceneTransition.SLIDE: "slideleft",
}


def zoompan_filter(effect: SceneEffect, frames: int, width: int, height: int, fps: int) -> str:
    """
    Build a zoompan filter that turns one still frame into ``frames`` frames.
    """
    frames = max(1, frames)
    center_x = "iw/2-(iw/zoom/2)"
    center_y = "ih/2-(ih/zoom/2)"

    if effect == SceneEffect.ZOOM_IN:
        zoom_expr = f"min({1 + ZOOM_AMOUNT},1+on/{frames}*{ZOOM_AMOUNT})"
        x_expr, y_expr = center_x, center_y

    elif effect == SceneEffect.ZOOM_OUT:
        zoom_expr = f"max(1,{1 + ZOOM_AMOUNT}-on/{frames}*{ZOOM_AMOUNT})"
        x_expr, y_expr = center_x, center_y

    elif effect == SceneEffect.PAN_LEFT:
        zoom_expr = f"{1 + ZOOM_AMOUNT}"
        x_expr = f"iw*{PAN_AMOUNT}-on/{frames}*iw*{PAN_AMOUNT}"
        y_expr = center_y

    elif effect == SceneEffect.PAN_RIGHT:
        zoom_expr = f"{1 + ZOOM_AMOUNT}"
        x_expr = f"on/{frames}*iw*{PAN_AMOUNT}"
        y_expr = center_y

    else:
        zoom_expr = "1"
        x_expr, y_expr = "0", "0"

    return (
        f"zoompan=z='{zoom_expr}':x='{x_expr}':y='{y_expr}':"
        f"d={frames}:s={width}x{height}:fps={fps}"
    )


def xfade_name(transition: SceneTransition) -> Optional[str]:
    """FFmpeg xfade transition name, or None for a hard cut."""
    return XFADE_TRANSITIONS.get(transition)
