"""
Video Assembler - scene images + captions + single narration track -> MP4.

Screen time is taken from the measured audio duration and split across
scenes using their duration estimates as weights. Everything is quantized
to whole frames so the per-scene frame counts add up to the audio length
exactly. The whole render is a single FFmpeg invocation built from a
declarative timeline.
"""
import asyncio
import json
import logging
import os
import subprocess
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from storyshorts.config import PathsConfig, RenderConfig, config
from storyshorts.exceptions import RenderFailure
from storyshorts.models import Manifest, SceneEffect, SceneTransition
from storyshorts.services.audio_synthesizer import wav_duration
from storyshorts.services.effects import xfade_name, zoompan_filter
from storyshorts.services.visual_assets import scene_caption_path, scene_image_path

logger = logging.getLogger(__name__)


@dataclass
class ScenePlan:
    """Timeline entry for one scene."""
    scene_id: int
    frames: int
    start_frame: int
    effect: SceneEffect
    transition: SceneTransition
    # Frames appended to the clip and overlapped by the next scene's xfade
    overlap_frames: int = 0

    @property
    def render_frames(self) -> int:
        return self.frames + self.overlap_frames


def normalize_weights(weights: Sequence[Optional[float]]) -> List[float]:
    """
    Replace zero/missing weights.

    If any weight is positive, non-positive ones get the mean of the
    positive weights. If none is positive, all weights become equal.
    """
    positive = [w for w in weights if w is not None and w > 0]
    if not positive:
        return [1.0] * len(weights)
    mean = sum(positive) / len(positive)
    return [w if w is not None and w > 0 else mean for w in weights]


def distribute_frames(weights: Sequence[Optional[float]], total_frames: int) -> List[int]:
    """
    Split ``total_frames`` proportionally to ``weights`` (largest remainder).

    The result always sums to ``total_frames``; every scene gets at least
    one frame when there are enough frames to go around.
    """
    if not weights:
        return []
    normalized = normalize_weights(weights)
    total_weight = sum(normalized)

    exact = [total_frames * w / total_weight for w in normalized]
    frames = [int(x) for x in exact]
    leftover = total_frames - sum(frames)
    by_remainder = sorted(range(len(exact)), key=lambda i: (-(exact[i] - frames[i]), i))
    for i in by_remainder[:leftover]:
        frames[i] += 1

    if total_frames >= len(frames):
        for i, count in enumerate(frames):
            if count == 0:
                donor = max(range(len(frames)), key=lambda j: frames[j])
                frames[donor] -= 1
                frames[i] = 1

    return frames


def scene_durations(weights: Sequence[Optional[float]], audio_duration: float, fps: int) -> List[float]:
    """Per-scene screen time in seconds, summing to the audio duration within one frame."""
    total_frames = round(audio_duration * fps)
    return [count / fps for count in distribute_frames(weights, total_frames)]


def plan_timeline(
    manifest: Manifest,
    audio_duration: float,
    fps: int,
    transition_duration: float,
) -> List[ScenePlan]:
    """Build the frame-accurate timeline for a manifest."""
    total_frames = round(audio_duration * fps)
    if total_frames < 1:
        raise RenderFailure(f"audio track too short to render ({audio_duration:.3f}s)")

    frames = distribute_frames(manifest.weights, total_frames)
    transition_frames = round(transition_duration * fps)

    plan: List[ScenePlan] = []
    start = 0
    for index, (scene, count) in enumerate(zip(manifest.scenes, frames)):
        overlap = 0
        is_last = index == len(manifest.scenes) - 1
        if not is_last and xfade_name(scene.transition):
            overlap = min(transition_frames, count // 2, frames[index + 1] // 2)
        plan.append(ScenePlan(
            scene_id=scene.id,
            frames=count,
            start_frame=start,
            effect=scene.effect,
            transition=scene.transition if overlap > 0 else SceneTransition.CUT,
            overlap_frames=overlap,
        ))
        start += count

    return plan


def build_filter_graph(plan: List[ScenePlan], width: int, height: int, fps: int) -> tuple[str, str]:
    """
    Build the filter_complex script for the timeline.

    Inputs are expected in the order image_0, caption_0, image_1, caption_1, ...
    Returns the graph and the label of the final video stream.
    """
    chains = []
    for index, entry in enumerate(plan):
        image_input, caption_input = 2 * index, 2 * index + 1
        # One spare frame; trim cuts the clip back to the exact count
        zoom = zoompan_filter(entry.effect, entry.render_frames + 1, width, height, fps)
        chains.append(
            f"[{image_input}:v]scale={width}:{height},setsar=1,{zoom}[bg{index}]"
        )
        chains.append(
            f"[bg{index}][{caption_input}:v]overlay=0:0:shortest=1,format=yuv420p,"
            f"trim=end_frame={entry.render_frames},setpts=PTS-STARTPTS,settb=1/{fps},fps={fps}[v{index}]"
        )

    current = "v0"
    current_frames = plan[0].render_frames
    for index in range(1, len(plan)):
        previous = plan[index - 1]
        label = f"x{index}"
        transition = xfade_name(previous.transition)
        if transition and previous.overlap_frames > 0:
            offset = (current_frames - previous.overlap_frames) / fps
            duration = previous.overlap_frames / fps
            chains.append(
                f"[{current}][v{index}]xfade=transition={transition}:"
                f"duration={duration:.6f}:offset={offset:.6f}[{label}]"
            )
        else:
            chains.append(f"[{current}][v{index}]concat=n=2:v=1:a=0[{label}]")
        current_frames += plan[index].render_frames - previous.overlap_frames
        current = label

    return ";".join(chains), current


class VideoAssembler:
    """Renders the final short with FFmpeg."""

    def __init__(
        self,
        render_config: Optional[RenderConfig] = None,
        paths_config: Optional[PathsConfig] = None,
    ):
        self.render_config = render_config or config.render
        paths = paths_config or config.paths
        self.ffmpeg_path = paths.ffmpeg_path
        self.ffprobe_path = paths.ffprobe_path

    def probe_duration(self, media_path: Path) -> float:
        """Duration in seconds; WAV headers are read directly, others via ffprobe."""
        media_path = Path(media_path)
        if media_path.suffix.lower() == ".wav":
            try:
                return wav_duration(media_path)
            except (OSError, EOFError, wave.Error) as e:
                logger.warning(f"[RENDER] Could not read WAV header, falling back to ffprobe: {e}")

        cmd = [
            self.ffprobe_path, "-v", "error",
            "-show_entries", "format=duration",
            "-of", "json",
            str(media_path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise RenderFailure(f"ffprobe failed for {media_path.name}: {e}") from e

        if result.returncode != 0:
            raise RenderFailure(f"ffprobe failed for {media_path.name}: {result.stderr[:300]}", result.returncode)

        try:
            return float(json.loads(result.stdout)["format"]["duration"])
        except (ValueError, KeyError) as e:
            raise RenderFailure(f"ffprobe returned no duration for {media_path.name}") from e

    def build_command(
        self,
        plan: List[ScenePlan],
        asset_dir: Path,
        audio_path: Path,
        output_path: Path,
        audio_duration: float,
    ) -> List[str]:
        """Full FFmpeg argument list for the timeline."""
        rc = self.render_config
        cmd = [self.ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error"]

        for entry in plan:
            cmd += ["-i", str(scene_image_path(asset_dir, entry.scene_id))]
            # Captions loop so the overlay never runs out of frames
            cmd += ["-loop", "1", "-framerate", str(rc.fps)]
            cmd += ["-i", str(scene_caption_path(asset_dir, entry.scene_id))]
        audio_index = 2 * len(plan)
        cmd += ["-i", str(audio_path)]

        graph, video_label = build_filter_graph(plan, rc.width, rc.height, rc.fps)

        cmd += [
            "-filter_complex", graph,
            "-map", f"[{video_label}]",
            "-map", f"{audio_index}:a",
            "-c:v", rc.video_codec,
            "-preset", rc.preset,
            "-crf", str(rc.crf),
            "-pix_fmt", "yuv420p",
            "-r", str(rc.fps),
            "-c:a", rc.audio_codec,
            "-b:a", rc.audio_bitrate,
            "-t", f"{audio_duration:.6f}",
            "-shortest",
            "-movflags", "+faststart",
            str(output_path),
        ]
        return cmd

    def _run_encoder_sync(self, cmd: List[str], output_path: Path) -> None:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.render_config.encoder_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise RenderFailure(f"encoder timed out after {self.render_config.encoder_timeout:.0f}s") from e
        except OSError as e:
            raise RenderFailure(f"could not start encoder: {e}") from e

        if result.returncode != 0:
            logger.error(f"[RENDER] FFmpeg stderr: {result.stderr[-1000:]}")
            raise RenderFailure(
                f"encoder exited with code {result.returncode}: {result.stderr[-300:]}",
                result.returncode,
            )

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise RenderFailure("encoder produced no output")

    async def render(
        self,
        manifest: Manifest,
        asset_dir: Path,
        audio_path: Path,
        output_path: Path,
    ) -> Path:
        """
        Render the final video; its length matches the audio within one frame.

        Raises:
            RenderFailure: missing inputs, encoder error or empty output.
        """
        asset_dir = Path(asset_dir)
        output_path = Path(output_path)
        rc = self.render_config

        missing = [
            scene.id for scene in manifest.scenes
            if not scene_image_path(asset_dir, scene.id).exists()
            or not scene_caption_path(asset_dir, scene.id).exists()
        ]
        if missing:
            raise RenderFailure(f"missing visual assets for scenes {missing}")

        audio_duration = self.probe_duration(audio_path)
        logger.info(f"[RENDER] Audio duration: {audio_duration:.2f}s")

        plan = plan_timeline(manifest, audio_duration, rc.fps, rc.transition_duration)
        for entry in plan:
            logger.info(
                f"[RENDER] Scene {entry.scene_id}: {entry.frames / rc.fps:.2f}s "
                f"at {entry.start_frame / rc.fps:.2f}s ({entry.effect.value}, {entry.transition.value})"
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        partial_path = output_path.with_name(f"{output_path.stem}.part{output_path.suffix}")
        cmd = self.build_command(plan, asset_dir, audio_path, partial_path, audio_duration)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._run_encoder_sync, cmd, partial_path)
        os.replace(partial_path, output_path)

        size_mb = output_path.stat().st_size / (1024 * 1024)
        logger.info(f"[RENDER] Video rendered: {output_path} ({size_mb:.2f} MB)")
        return output_path
