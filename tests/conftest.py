"""
Pytest configuration and fixtures for StoryShorts tests.
"""
import os
import tempfile
from pathlib import Path

import pytest

# Set test environment before importing storyshorts modules
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="storyshorts-test-")
os.environ["DATA_DIR"] = _TEST_DATA_DIR
os.environ.pop("PUBLIC_VIDEO_DIR", None)
os.environ["DEBUG"] = "true"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def ai_config():
    """AI config with a usable (fake) key."""
    from storyshorts.config import AIConfig
    return AIConfig(google_api_key="test-google-key")


@pytest.fixture
def manifest_payload():
    """Raw manifest dict as the model would return it."""
    return {
        "title": "Тайна старого дома",
        "cover_text": "Что скрывала бабушка",
        "hook": "Никто не знал, что хранится на чердаке.",
        "music_mood": "dark_suspense_drama",
        "voice_gender": "female",
        "character_description": "Woman in her 40s, dark hair",
        "scenes": [
            {
                "id": 1,
                "text": "Мы переехали в старый дом осенью.",
                "screen_text": "Осень. Переезд.",
                "image_prompt": "Old wooden house in autumn rain",
                "duration_estimate": 5,
                "effect": "zoom_in",
                "transition": "fade",
            },
            {
                "id": 2,
                "text": "На чердаке я нашла коробку с письмами.",
                "screen_text": "Письма",
                "image_prompt": "Dusty box of letters in an attic",
                "duration_estimate": 7,
                "effect": "pan_left",
                "transition": "cut",
            },
        ],
        "total_duration_estimate": 12,
    }


@pytest.fixture
def sample_manifest(manifest_payload):
    from storyshorts.models import Manifest
    return Manifest.model_validate(manifest_payload)


@pytest.fixture
def publisher_settings(temp_dir):
    """Publisher config with short waits so state machine tests run fast."""
    from storyshorts.config import PublisherConfig

    cookies_path = temp_dir / "cookies.json"
    cookies_path.write_text(
        '[{"name": "session", "value": "abc", "domain": "dzen.ru", "path": "/editor"}]',
        encoding="utf-8",
    )
    return PublisherConfig(
        editor_url="https://dzen.ru/profile/editor",
        cookies_path=cookies_path,
        settle_delay=0,
        step_delay=0,
        cover_upload_delay=0,
        menu_timeout=0.05,
        poll_interval=0.01,
        form_ready_timeout=0.05,
        publish_enabled_timeout=0.05,
        confirm_wait=0,
        screenshot_dir=temp_dir / "debug",
        history_path=temp_dir / "published.txt",
    )


class FakeLocator:
    """Minimal stand-in for a playwright Locator."""

    def __init__(self, selector: str, present: bool = True, visible: bool = True, attributes=None):
        self.selector = selector
        self.present = present
        self.visible = visible
        self.attributes = dict(attributes or {})
        self.clicks = 0
        self.values = []
        self.keys = []
        self.files = []

    @property
    def first(self):
        return self

    async def count(self):
        return 1 if self.present else 0

    async def is_visible(self):
        return self.present and self.visible

    async def click(self, **kwargs):
        self.clicks += 1

    async def fill(self, value):
        self.values.append(value)

    async def press(self, key):
        self.keys.append(key)

    async def set_input_files(self, path):
        self.files.append(path)

    async def get_attribute(self, name):
        return self.attributes.get(name)

    async def inner_text(self):
        return self.attributes.get("text", "")


class FakePage:
    """Page whose DOM is a dict of selector -> FakeLocator."""

    def __init__(self, elements=None):
        self.elements = dict(elements or {})
        self.visited = []
        self.screenshots = []

    def add(self, selector, **kwargs) -> FakeLocator:
        locator = FakeLocator(selector, **kwargs)
        self.elements[selector] = locator
        return locator

    def locator(self, selector):
        return self.elements.get(selector) or FakeLocator(selector, present=False)

    async def goto(self, url, **kwargs):
        self.visited.append(url)

    async def screenshot(self, path, **kwargs):
        Path(path).write_bytes(b"\x89PNG\r\n\x1a\nfake")
        self.screenshots.append(Path(path))


@pytest.fixture
def fake_page():
    return FakePage()


@pytest.fixture
def editor_page():
    """A Dzen editor page where every step of the publish flow can succeed."""
    page = FakePage()
    page.add('[data-testid="add-publication-button"]')
    page.add('label[aria-label="Загрузить видео"]')
    page.add('input[type="file"][accept*="video"]', visible=False)
    page.add('.ql-editor')
    page.add('input[placeholder="Добавьте теги"]')
    page.add('input[type="file"][accept*="image"]', visible=False)
    page.add('[data-testid="publish-btn"]')
    return page
