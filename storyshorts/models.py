"""
Pydantic models for the article-to-short pipeline.
Manifest and Scene are frozen once generated; PublishJob carries mutable
lifecycle state for one publishing attempt.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SceneEffect(str, Enum):
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"
    PAN_LEFT = "pan_left"
    PAN_RIGHT = "pan_right"
    STATIC = "static"


class SceneTransition(str, Enum):
    FADE = "fade"
    CUT = "cut"
    SLIDE = "slide"


class MusicMood(str, Enum):
    DRAMATIC = "dramatic"
    HAPPY = "happy"
    TENSE = "tense"
    CALM = "calm"
    DARK_SUSPENSE_DRAMA = "dark_suspense_drama"


class VoiceGender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Scene(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0)
    text: str = Field(..., min_length=1)
    screen_text: str = Field(default="")
    image_prompt: str = Field(..., min_length=1)
    # Relative weight for screen time, not an exact duration
    duration_estimate: float = Field(default=0.0, ge=0)
    effect: SceneEffect = SceneEffect.STATIC
    transition: SceneTransition = SceneTransition.CUT

    @field_validator("duration_estimate", mode="before")
    @classmethod
    def missing_weight_is_zero(cls, v):
        return 0.0 if v is None else v


class Manifest(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    cover_text: Optional[str] = None
    hook: str = Field(default="")
    music_mood: MusicMood = MusicMood.DRAMATIC
    voice_gender: VoiceGender = VoiceGender.FEMALE
    character_description: Optional[str] = None
    scenes: list[Scene] = Field(..., min_length=1)
    total_duration_estimate: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def validate_scene_ids(self) -> Self:
        ids = [scene.id for scene in self.scenes]
        start = ids[0]
        if start not in (0, 1) or ids != list(range(start, start + len(ids))):
            raise ValueError(f"scene ids must be a dense ascending sequence from 0 or 1, got {ids}")
        return self

    @property
    def narration(self) -> str:
        """All scene narration joined into one synthesis request."""
        return " ".join(scene.text.strip() for scene in self.scenes)

    @property
    def weights(self) -> list[float]:
        return [scene.duration_estimate for scene in self.scenes]


class PublishState(str, Enum):
    INIT = "init"
    NAVIGATE = "navigate"
    DISMISS_OVERLAYS = "dismiss_overlays"
    OPEN_UPLOAD_DIALOG = "open_upload_dialog"
    UPLOAD_FILE = "upload_file"
    WAIT_FORM_READY = "wait_form_ready"
    FILL_METADATA = "fill_metadata"
    UPLOAD_COVER = "upload_cover"
    WAIT_PUBLISH_ENABLED = "wait_publish_enabled"
    CLICK_PUBLISH = "click_publish"
    CONFIRM = "confirm"
    PUBLISHED = "published"
    FAILED = "failed"


class PublishJob(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(default="")
    tags: list[str] = Field(default_factory=list)
    video_path: Path
    cover_path: Optional[Path] = None
    state: PublishState = PublishState.INIT
    visited: list[PublishState] = Field(default_factory=list)
    error: Optional[str] = None
    screenshot_path: Optional[Path] = None

    @property
    def full_text(self) -> str:
        """Title and description as one post body."""
        if not self.description:
            return self.title
        return f"{self.title}\n\n{self.description}"

    def advance(self, state: PublishState) -> None:
        self.state = state
        self.visited.append(state)


@dataclass
class ArticleResult:
    """Artifacts produced for one article."""
    manifest: Manifest
    audio_path: Path
    image_map: dict[int, Path]
    video_path: Path
    output_dir: Path
    cover_path: Optional[Path] = None
