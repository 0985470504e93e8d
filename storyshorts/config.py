"""
Application Configuration - Environment Variable Management.
Loads and validates configuration from .env file.
"""
import os
import shutil
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

import imageio_ffmpeg
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
    logger.info(f"Loaded environment from {ENV_FILE}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {value!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


@dataclass
class AIConfig:
    """Generative service configuration (Gemini REST API)."""
    google_api_key: Optional[str] = None
    api_base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    manifest_model: str = "gemini-2.5-flash"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    image_model: str = "gemini-2.0-flash-exp"
    request_timeout: float = 120.0
    female_voice: str = "Aoede"
    male_voice: str = "Charon"
    sample_rate: int = 24000
    channels: int = 1

    @property
    def has_google(self) -> bool:
        return bool(self.google_api_key and not self.google_api_key.startswith("PASTE_"))


@dataclass
class PathsConfig:
    """File system paths configuration."""
    data_dir: Path
    ffmpeg_path: str
    ffprobe_path: str
    public_video_dir: Optional[Path] = None

    @classmethod
    def detect(cls) -> "PathsConfig":
        """Auto-detect paths based on environment and system."""
        data_dir = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
        data_dir.mkdir(parents=True, exist_ok=True)

        public_dir = os.getenv("PUBLIC_VIDEO_DIR")

        return cls(
            data_dir=data_dir,
            ffmpeg_path=cls._find_ffmpeg(),
            ffprobe_path=cls._find_ffprobe(),
            public_video_dir=Path(public_dir) if public_dir else None,
        )

    @staticmethod
    def _find_ffmpeg() -> str:
        """Find FFmpeg executable."""
        env_path = os.getenv("FFMPEG_PATH")
        if env_path and os.path.exists(env_path):
            return env_path

        system_path = shutil.which("ffmpeg")
        if system_path:
            return system_path

        try:
            return imageio_ffmpeg.get_ffmpeg_exe()
        except RuntimeError:
            return "ffmpeg"

    @staticmethod
    def _find_ffprobe() -> str:
        """Find FFprobe executable."""
        env_path = os.getenv("FFPROBE_PATH")
        if env_path and os.path.exists(env_path):
            return env_path

        system_path = shutil.which("ffprobe")
        if system_path:
            return system_path

        # imageio-ffmpeg ships ffmpeg only; look for a sibling ffprobe
        try:
            bundled = Path(imageio_ffmpeg.get_ffmpeg_exe())
            sibling = bundled.with_name(bundled.name.replace("ffmpeg", "ffprobe"))
            if sibling.exists():
                return str(sibling)
        except RuntimeError:
            pass

        return "ffprobe"


@dataclass
class RenderConfig:
    """Video encoding configuration."""
    width: int = 1080
    height: int = 1920
    fps: int = 25
    transition_duration: float = 0.5
    video_codec: str = "libx264"
    preset: str = "medium"
    crf: int = 20
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"
    encoder_timeout: float = 900.0


@dataclass
class PublisherConfig:
    """Browser automation configuration for the Dzen editor."""
    editor_url: str = "https://dzen.ru/profile/editor"
    cookies_path: Path = PROJECT_ROOT / "config" / "cookies.json"
    headless: bool = True
    settle_delay: float = 3.0
    step_delay: float = 0.5
    cover_upload_delay: float = 3.0
    menu_timeout: float = 5.0
    poll_interval: float = 1.0
    form_ready_timeout: float = 120.0
    publish_enabled_timeout: float = 300.0
    confirm_wait: float = 5.0
    screenshot_dir: Path = PROJECT_ROOT / "data" / "debug"
    history_path: Path = PROJECT_ROOT / "data" / "published_videos.txt"
    channel_link: str = ""
    default_tags: List[str] = field(default_factory=lambda: [
        "Истории из жизни",
        "Драма",
        "Семья",
        "Отношения",
        "Реальные истории",
    ])


@dataclass
class AppConfig:
    """Main Application Configuration."""
    ai: AIConfig
    paths: PathsConfig
    render: RenderConfig
    publisher: PublisherConfig
    max_video_size_mb: float = 24.5
    debug: bool = False

    def validate(self) -> dict:
        """Validate configuration and return status."""
        return {
            "ai": {
                "google_configured": self.ai.has_google,
            },
            "publisher": {
                "cookies_present": self.publisher.cookies_path.exists(),
            },
            "ready_for_generation": self.ai.has_google,
        }

    def log_status(self):
        """Log configuration status (without exposing keys)."""
        status = self.validate()

        logger.info("=" * 50)
        logger.info("Configuration Status:")
        logger.info(f"  Google API: {'OK' if status['ai']['google_configured'] else 'NOT CONFIGURED'}")
        logger.info(f"  Cookies: {'OK' if status['publisher']['cookies_present'] else 'MISSING'}")
        logger.info(f"  Data Dir: {self.paths.data_dir}")
        logger.info(f"  FFmpeg: {self.paths.ffmpeg_path}")
        logger.info("=" * 50)

        if not status["ready_for_generation"]:
            logger.warning("No Google API key - generation stages will fail")


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    ai_config = AIConfig(
        google_api_key=os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY"),
        manifest_model=os.getenv("MANIFEST_MODEL", "gemini-2.5-flash"),
        tts_model=os.getenv("TTS_MODEL", "gemini-2.5-flash-preview-tts"),
        image_model=os.getenv("IMAGE_MODEL", "gemini-2.0-flash-exp"),
        request_timeout=_env_float("AI_REQUEST_TIMEOUT", 120.0),
    )

    paths_config = PathsConfig.detect()

    publisher_config = PublisherConfig(
        editor_url=os.getenv("DZEN_EDITOR_URL", "https://dzen.ru/profile/editor"),
        cookies_path=Path(os.getenv("DZEN_COOKIES_PATH", str(PROJECT_ROOT / "config" / "cookies.json"))),
        headless=_env_bool("DZEN_HEADLESS", True),
        form_ready_timeout=_env_float("DZEN_FORM_READY_TIMEOUT", 120.0),
        publish_enabled_timeout=_env_float("DZEN_PUBLISH_TIMEOUT", 300.0),
        screenshot_dir=paths_config.data_dir / "debug",
        history_path=paths_config.data_dir / "published_videos.txt",
        channel_link=os.getenv("DZEN_CHANNEL_LINK", ""),
    )

    return AppConfig(
        ai=ai_config,
        paths=paths_config,
        render=RenderConfig(fps=int(_env_float("RENDER_FPS", 25))),
        publisher=publisher_config,
        max_video_size_mb=_env_float("MAX_VIDEO_SIZE_MB", 24.5),
        debug=_env_bool("DEBUG", False),
    )


# Global config instance
config = load_config()
