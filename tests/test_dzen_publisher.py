"""
Tests for the Dzen publishing state machine (no real browser).
"""
import json
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Error as PlaywrightError

from storyshorts.exceptions import PublishFailure
from storyshorts.models import PublishJob, PublishState
from storyshorts.publishing.dzen_publisher import (
    BrowserSession,
    DzenVideoPublisher,
    load_cookies,
    normalize_cookies,
)


def _launcher_for(page):
    calls = []
    close = AsyncMock()

    async def launcher(cookies, settings):
        calls.append(cookies)
        return BrowserSession(page=page, close=close)

    launcher.calls = calls
    launcher.close = close
    return launcher


@pytest.fixture
def job(temp_dir):
    video = temp_dir / "story.mp4"
    video.write_bytes(b"video")
    cover = temp_dir / "cover.png"
    cover.write_bytes(b"png")
    return PublishJob(
        title="Тайна старого дома",
        description="Полная история тут: https://dzen.ru/x\n\nHook",
        tags=["Драма", "Семья"],
        video_path=video,
        cover_path=cover,
    )


class TestCookies:
    """Tests for cookie loading and normalization."""

    def test_normalize(self):
        cookies = normalize_cookies([
            {"name": "a", "value": "1", "domain": "dzen.ru", "path": "/x", "hostOnly": True,
             "expirationDate": 1800000000.5, "sameSite": "lax"},
            {"name": "b", "value": "2", "domain": ".yandex.ru"},
            {"value": "no name"},
        ])

        assert len(cookies) == 2
        first = cookies[0]
        assert first["domain"] == ".dzen.ru"
        assert first["path"] == "/"
        assert first["secure"] is True
        assert first["sameSite"] == "None"
        assert first["expires"] == 1800000000.5
        assert "hostOnly" not in first
        assert cookies[1]["domain"] == ".yandex.ru"

    def test_missing_file(self, temp_dir):
        with pytest.raises(PublishFailure, match="not found"):
            load_cookies(temp_dir / "absent.json")

    def test_wrapped_export(self, temp_dir):
        path = temp_dir / "cookies.json"
        path.write_text(json.dumps({"cookies": [{"name": "a", "value": "1"}]}), encoding="utf-8")
        assert load_cookies(path)[0]["domain"] == ".dzen.ru"

    def test_invalid_json(self, temp_dir):
        path = temp_dir / "cookies.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(PublishFailure, match="unreadable"):
            load_cookies(path)


class TestDzenVideoPublisher:
    """Tests for the publish() state machine."""

    @pytest.mark.asyncio
    async def test_happy_path(self, publisher_settings, editor_page, job):
        launcher = _launcher_for(editor_page)
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=launcher)

        assert await publisher.publish(job) is True
        await publisher.close()

        assert job.state == PublishState.PUBLISHED
        assert job.error is None
        assert job.visited == [
            PublishState.INIT,
            PublishState.NAVIGATE,
            PublishState.DISMISS_OVERLAYS,
            PublishState.OPEN_UPLOAD_DIALOG,
            PublishState.UPLOAD_FILE,
            PublishState.WAIT_FORM_READY,
            PublishState.FILL_METADATA,
            PublishState.UPLOAD_COVER,
            PublishState.WAIT_PUBLISH_ENABLED,
            PublishState.CLICK_PUBLISH,
            PublishState.CONFIRM,
            PublishState.PUBLISHED,
        ]

        elements = editor_page.elements
        assert editor_page.visited == [publisher_settings.editor_url]
        assert elements['input[type="file"][accept*="video"]'].files == [str(job.video_path)]
        assert elements[".ql-editor"].values == ["", job.full_text]
        assert elements['input[placeholder="Добавьте теги"]'].values == job.tags
        assert elements['input[placeholder="Добавьте теги"]'].keys == ["Enter", "Enter"]
        assert elements['input[type="file"][accept*="image"]'].files == [str(job.cover_path)]
        assert elements['[data-testid="publish-btn"]'].clicks == 1

        cookies = launcher.calls[0]
        assert cookies[0]["domain"] == ".dzen.ru"
        launcher.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_publish_button_never_enabled(self, publisher_settings, editor_page, job):
        button = editor_page.elements['[data-testid="publish-btn"]']
        button.attributes["disabled"] = ""
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        result = await publisher.publish(job)

        assert result is False
        assert job.state == PublishState.FAILED
        assert job.visited[-2] == PublishState.WAIT_PUBLISH_ENABLED
        assert "timed out" in job.error
        assert button.clicks == 0
        assert job.screenshot_path is not None
        assert job.screenshot_path.exists()
        assert job.screenshot_path.parent == publisher_settings.screenshot_dir

    @pytest.mark.asyncio
    async def test_missing_cookies(self, publisher_settings, editor_page, job):
        publisher_settings.cookies_path.unlink()
        launcher = _launcher_for(editor_page)
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=launcher)

        assert await publisher.publish(job) is False
        assert job.state == PublishState.FAILED
        assert job.visited == [PublishState.INIT, PublishState.FAILED]
        assert launcher.calls == []
        assert job.screenshot_path is None

    @pytest.mark.asyncio
    async def test_form_never_ready(self, publisher_settings, editor_page, job):
        del editor_page.elements[".ql-editor"]
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        assert await publisher.publish(job) is False
        assert job.visited[-2] == PublishState.WAIT_FORM_READY

    @pytest.mark.asyncio
    async def test_missing_create_menu(self, publisher_settings, editor_page, job):
        del editor_page.elements['[data-testid="add-publication-button"]']
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        assert await publisher.publish(job) is False
        assert "create menu" in job.error
        assert len(editor_page.screenshots) == 1

    @pytest.mark.asyncio
    async def test_fallback_selectors(self, publisher_settings, editor_page, job):
        del editor_page.elements['[data-testid="add-publication-button"]']
        del editor_page.elements['label[aria-label="Загрузить видео"]']
        create = editor_page.add('button:has-text("Создать")')
        upload = editor_page.add('a[href*="/editor/video"]')
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        assert await publisher.publish(job) is True
        assert create.clicks == 1
        assert upload.clicks == 1

    @pytest.mark.asyncio
    async def test_overlay_errors_are_ignored(self, publisher_settings, editor_page, job):
        overlay = editor_page.add('[data-testid="close-button"]')

        async def broken_click(**kwargs):
            raise PlaywrightError("element is not attached")

        overlay.click = broken_click
        dismiss = editor_page.add('button:has-text("Понятно")')
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        assert await publisher.publish(job) is True
        assert dismiss.clicks == 1

    @pytest.mark.asyncio
    async def test_cover_is_optional(self, publisher_settings, editor_page, job):
        del editor_page.elements['input[type="file"][accept*="image"]']
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        assert await publisher.publish(job) is True

    @pytest.mark.asyncio
    async def test_no_cover_path(self, publisher_settings, editor_page, job):
        job.cover_path = None
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        assert await publisher.publish(job) is True
        assert editor_page.elements['input[type="file"][accept*="image"]'].files == []

    @pytest.mark.asyncio
    async def test_error_after_submit(self, publisher_settings, editor_page, job):
        editor_page.add('[data-testid="publication-error"]', attributes={"text": "Видео не прошло модерацию"})
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        assert await publisher.publish(job) is False
        assert job.visited[-2] == PublishState.CONFIRM
        assert "модерацию" in job.error

    @pytest.mark.asyncio
    async def test_missing_video_file(self, publisher_settings, editor_page, job):
        job.video_path.unlink()
        publisher = DzenVideoPublisher(settings=publisher_settings, launcher=_launcher_for(editor_page))

        assert await publisher.publish(job) is False
        assert job.visited[-2] == PublishState.UPLOAD_FILE

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self, publisher_settings, editor_page):
        launcher = _launcher_for(editor_page)
        async with DzenVideoPublisher(settings=publisher_settings, launcher=launcher) as publisher:
            assert publisher.page is editor_page
        launcher.close.assert_awaited_once()
        assert publisher.page is None
