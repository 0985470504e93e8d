"""
Production Services.

One service per pipeline stage:
- ManifestGenerator: article text -> scene manifest
- AudioSynthesizer: manifest narration -> single WAV track
- VisualAssetPreparer: scene prompts -> images (placeholder on failure)
- VideoAssembler: images + audio -> final MP4
"""
from .manifest_generator import ManifestGenerator, parse_manifest
from .audio_synthesizer import AudioSynthesizer, build_wav_header, wav_duration
from .image_generator import ImageGenerator, GeneratedImage, detect_image_mime
from .captions import CaptionRenderer, CaptionStyle
from .visual_assets import VisualAssetPreparer, scene_image_path, scene_caption_path
from .video_assembler import VideoAssembler, ScenePlan, plan_timeline, scene_durations

__all__ = [
    "ManifestGenerator",
    "parse_manifest",
    "AudioSynthesizer",
    "build_wav_header",
    "wav_duration",
    "ImageGenerator",
    "GeneratedImage",
    "detect_image_mime",
    "CaptionRenderer",
    "CaptionStyle",
    "VisualAssetPreparer",
    "scene_image_path",
    "scene_caption_path",
    "VideoAssembler",
    "ScenePlan",
    "plan_timeline",
    "scene_durations",
]
