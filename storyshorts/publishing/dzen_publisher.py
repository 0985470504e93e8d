"""
Dzen Video Publisher - drives the Dzen Studio editor with Playwright.

The platform has no upload API, so publishing walks the editor UI as a
fixed sequence of states (see PublishState). Every selector group is an
ordered list of candidates because the editor markup changes over time.
Waits are bounded polls; any failure ends in FAILED with a screenshot and
a False result instead of an exception.
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from storyshorts.config import PublisherConfig, config
from storyshorts.exceptions import PublishFailure
from storyshorts.models import PublishJob, PublishState
from storyshorts.publishing.probes import find_actionable, wait_for_selector, wait_until

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_COOKIE_KEYS = {"name", "value", "url", "domain", "path", "expires", "httpOnly", "secure", "sameSite"}


@dataclass
class DzenSelectors:
    """Fallback-ordered selector candidates for each editor control."""
    overlay_close: List[str] = field(default_factory=lambda: [
        '[data-testid="close-button"]',
        'button[aria-label="Закрыть"]',
        'button:has-text("Понятно")',
        'button:has-text("Закрыть")',
        '[data-testid="modal-overlay"]',
    ])
    create_menu: List[str] = field(default_factory=lambda: [
        '[data-testid="add-publication-button"]',
        'button[aria-label="Создать"]',
        'button:has-text("Создать")',
        '[data-testid="create-button"]',
    ])
    upload_video: List[str] = field(default_factory=lambda: [
        'label[aria-label="Загрузить видео"]',
        'a[href*="/editor/video"]',
        'button:has-text("Загрузить видео")',
        'div[role="button"]:has-text("Загрузить видео")',
    ])
    file_input: List[str] = field(default_factory=lambda: [
        'input[type="file"][accept*="video"]',
        'input[type="file"]',
    ])
    form_ready: List[str] = field(default_factory=lambda: [
        '.ql-editor',
        'input[placeholder="Название"]',
        '[data-testid="video-title-input"]',
    ])
    description_editor: List[str] = field(default_factory=lambda: [
        '.ql-editor',
        '[contenteditable="true"]',
    ])
    tag_input: List[str] = field(default_factory=lambda: [
        'input[placeholder="Добавьте теги"]',
        'input[placeholder*="тег"]',
    ])
    cover_input: List[str] = field(default_factory=lambda: [
        'input[type="file"][accept*="image"]',
    ])
    publish_button: List[str] = field(default_factory=lambda: [
        '[data-testid="publish-btn"]',
        'button:has-text("Опубликовать")',
    ])
    error_indicators: List[str] = field(default_factory=lambda: [
        '[role="alert"]:has-text("Ошибка")',
        '[data-testid="publication-error"]',
    ])


@dataclass
class BrowserSession:
    """An open page plus the coroutine that tears its browser down."""
    page: Any
    close: Callable[[], Awaitable[None]]


Launcher = Callable[[List[dict], PublisherConfig], Awaitable[BrowserSession]]


def normalize_cookies(raw: List[dict]) -> List[dict]:
    """Convert browser-extension cookie exports into Playwright cookies."""
    cookies = []
    for item in raw:
        if "name" not in item or "value" not in item:
            continue
        cookie = {k: v for k, v in item.items() if k in _COOKIE_KEYS}
        if "expires" not in cookie and "expirationDate" in item:
            cookie["expires"] = float(item["expirationDate"])
        domain = cookie.get("domain") or "dzen.ru"
        cookie["domain"] = domain if domain.startswith(".") else f".{domain}"
        cookie["path"] = "/"
        cookie["secure"] = True
        cookie["sameSite"] = "None"
        cookie.pop("url", None)
        cookies.append(cookie)
    return cookies


def load_cookies(path: Path) -> List[dict]:
    """
    Read the persisted session cookies.

    Raises:
        PublishFailure: file absent or unreadable.
    """
    path = Path(path)
    if not path.exists():
        raise PublishFailure(f"cookies file not found at {path}", PublishState.INIT.value)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PublishFailure(f"cookies file is unreadable: {e}", PublishState.INIT.value) from e

    if isinstance(data, dict):
        data = data.get("cookies", [])
    cookies = normalize_cookies(data if isinstance(data, list) else [])
    if not cookies:
        raise PublishFailure(f"no cookies in {path}", PublishState.INIT.value)
    return cookies


async def launch_chromium(cookies: List[dict], settings: PublisherConfig) -> BrowserSession:
    """Start Chromium with an authenticated context."""
    playwright = await async_playwright().start()
    browser = await playwright.chromium.launch(
        headless=settings.headless,
        args=["--no-sandbox", "--disable-setuid-sandbox"],
    )
    context = await browser.new_context(
        viewport={"width": 1920, "height": 1080},
        user_agent=USER_AGENT,
    )
    await context.add_cookies(cookies)
    page = await context.new_page()

    async def close():
        await browser.close()
        await playwright.stop()

    return BrowserSession(page=page, close=close)


class DzenVideoPublisher:
    """
    Publishing automator, one PublishJob at a time.

    Usage:
        async with DzenVideoPublisher() as publisher:
            ok = await publisher.publish(job)
    """

    def __init__(
        self,
        settings: Optional[PublisherConfig] = None,
        selectors: Optional[DzenSelectors] = None,
        launcher: Optional[Launcher] = None,
    ):
        self.settings = settings or config.publisher
        self.selectors = selectors or DzenSelectors()
        self._launcher = launcher or launch_chromium
        self._session: Optional[BrowserSession] = None
        self._publish_button = None

    @property
    def page(self):
        return self._session.page if self._session else None

    async def initialize(self) -> None:
        """INIT: restore the authenticated session from the cookie file."""
        if self._session is not None:
            return
        logger.info("[PUBLISH] Initializing Dzen video publisher")
        cookies = load_cookies(self.settings.cookies_path)
        self._session = await self._launcher(cookies, self.settings)

    async def close(self) -> None:
        if self._session is not None:
            session, self._session = self._session, None
            await session.close()

    async def __aenter__(self) -> "DzenVideoPublisher":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def publish(self, job: PublishJob) -> bool:
        """
        Run the whole publishing state machine for ``job``.

        Returns True when the job reached PUBLISHED. Never raises: failures
        are recorded on the job (error, screenshot_path, state FAILED).
        """
        steps = [
            (PublishState.NAVIGATE, self._navigate),
            (PublishState.DISMISS_OVERLAYS, self._dismiss_overlays),
            (PublishState.OPEN_UPLOAD_DIALOG, self._open_upload_dialog),
            (PublishState.UPLOAD_FILE, self._upload_file),
            (PublishState.WAIT_FORM_READY, self._wait_form_ready),
            (PublishState.FILL_METADATA, self._fill_metadata),
            (PublishState.UPLOAD_COVER, self._upload_cover),
            (PublishState.WAIT_PUBLISH_ENABLED, self._wait_publish_enabled),
            (PublishState.CLICK_PUBLISH, self._click_publish),
            (PublishState.CONFIRM, self._confirm),
        ]

        self._publish_button = None
        job.advance(PublishState.INIT)
        try:
            await self.initialize()
            for state, step in steps:
                job.advance(state)
                logger.info(f"[PUBLISH] {state.value}")
                await step(job)
        except Exception as e:
            # Any failure ends the job in FAILED; callers only see the result
            job.error = f"{job.state.value}: {e}"
            logger.error(f"[PUBLISH] Failed in state {job.state.value}: {e}")
            job.screenshot_path = await self._capture_screenshot(job)
            job.advance(PublishState.FAILED)
            return False

        job.advance(PublishState.PUBLISHED)
        logger.info(f"[PUBLISH] Published: {job.title}")
        return True

    async def _navigate(self, job: PublishJob) -> None:
        await self.page.goto(self.settings.editor_url, wait_until="networkidle")
        await asyncio.sleep(self.settings.settle_delay)

    async def _dismiss_overlays(self, job: PublishJob) -> None:
        for selector in self.selectors.overlay_close:
            try:
                control = await find_actionable(self.page, [selector])
                if control is None:
                    continue
                await control.click(timeout=2000)
                logger.info(f"[PUBLISH] Closed overlay: {selector}")
                await asyncio.sleep(self.settings.step_delay)
            except PlaywrightError as e:
                logger.debug(f"[PUBLISH] Overlay probe {selector} failed: {e}")

    async def _open_upload_dialog(self, job: PublishJob) -> None:
        create = await find_actionable(self.page, self.selectors.create_menu)
        if create is None:
            raise PublishFailure("create menu button not found", job.state.value)
        await create.click()

        option = await wait_for_selector(
            self.page,
            self.selectors.upload_video,
            timeout=self.settings.menu_timeout,
            interval=self.settings.step_delay or 0.1,
            description="upload video option",
        )
        await option.click()

    async def _upload_file(self, job: PublishJob) -> None:
        if not job.video_path.exists():
            raise PublishFailure(f"video file not found: {job.video_path}", job.state.value)

        file_input = await wait_for_selector(
            self.page,
            self.selectors.file_input,
            timeout=self.settings.menu_timeout,
            interval=self.settings.step_delay or 0.1,
            require_visible=False,
            description="video file input",
        )
        logger.info(f"[PUBLISH] Uploading {job.video_path.name}")
        await file_input.set_input_files(str(job.video_path))

    async def _wait_form_ready(self, job: PublishJob) -> None:
        await wait_for_selector(
            self.page,
            self.selectors.form_ready,
            timeout=self.settings.form_ready_timeout,
            interval=self.settings.poll_interval,
            description="post-upload form",
        )

    async def _fill_metadata(self, job: PublishJob) -> None:
        editor = await find_actionable(self.page, self.selectors.description_editor)
        if editor is None:
            raise PublishFailure("description editor not found", job.state.value)
        await editor.fill("")
        await editor.fill(job.full_text)

        if not job.tags:
            return
        tag_input = await find_actionable(self.page, self.selectors.tag_input)
        if tag_input is None:
            logger.warning("[PUBLISH] Tag input not found, skipping tags")
            return
        for tag in job.tags:
            await tag_input.fill(tag)
            await tag_input.press("Enter")
            await asyncio.sleep(self.settings.step_delay)

    async def _upload_cover(self, job: PublishJob) -> None:
        if job.cover_path is None or not job.cover_path.exists():
            logger.info("[PUBLISH] No cover image, skipping")
            return
        try:
            cover_input = await find_actionable(self.page, self.selectors.cover_input, require_visible=False)
            if cover_input is None:
                logger.warning("[PUBLISH] Cover input not found, skipping cover upload")
                return
            await cover_input.set_input_files(str(job.cover_path))
            await asyncio.sleep(self.settings.cover_upload_delay)
        except PlaywrightError as e:
            logger.warning(f"[PUBLISH] Cover upload failed, continuing: {e}")

    async def _wait_publish_enabled(self, job: PublishJob) -> None:
        button = await wait_for_selector(
            self.page,
            self.selectors.publish_button,
            timeout=self.settings.form_ready_timeout,
            interval=self.settings.poll_interval,
            description="publish button",
        )

        async def enabled() -> bool:
            return await button.get_attribute("disabled") is None

        await wait_until(
            enabled,
            timeout=self.settings.publish_enabled_timeout,
            interval=self.settings.poll_interval,
            description="publish button to become enabled",
        )
        self._publish_button = button

    async def _click_publish(self, job: PublishJob) -> None:
        await self._publish_button.click()

    async def _confirm(self, job: PublishJob) -> None:
        await asyncio.sleep(self.settings.confirm_wait)
        error = await find_actionable(self.page, self.selectors.error_indicators)
        if error is not None:
            message = (await error.inner_text()).strip()
            raise PublishFailure(f"editor reported an error: {message[:200]}", job.state.value)

    async def _capture_screenshot(self, job: PublishJob) -> Optional[Path]:
        if self.page is None:
            return None
        slug = re.sub(r"[^\w-]+", "_", job.video_path.stem)[:60]
        path = self.settings.screenshot_dir / f"publish_error_{slug}_{datetime.now():%Y%m%d_%H%M%S}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await self.page.screenshot(path=str(path), full_page=True)
        except (PlaywrightError, OSError) as e:
            logger.warning(f"[PUBLISH] Could not capture screenshot: {e}")
            return None
        logger.info(f"[PUBLISH] Diagnostic screenshot: {path}")
        return path
