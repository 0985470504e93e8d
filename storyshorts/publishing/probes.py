"""
UI probing primitives for browser automation.

find_actionable: try selectors in order, return the first match that is
present (and visible, unless disabled). wait_until: poll a predicate at a
fixed interval with a hard timeout.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from storyshorts.exceptions import PublishTimeout

logger = logging.getLogger(__name__)


async def find_actionable(
    page,
    selectors: Sequence[str],
    require_visible: bool = True,
):
    """
    Return the first locator among ``selectors`` that matches an element.

    Each probe is independent: a selector that errors (bad syntax, detached
    frame) is skipped. Returns None when nothing matches.
    """
    for selector in selectors:
        try:
            locator = page.locator(selector).first
            if await locator.count() == 0:
                continue
            if require_visible and not await locator.is_visible():
                continue
        except PlaywrightError as e:
            logger.debug(f"[PROBE] {selector}: {e}")
            continue
        logger.debug(f"[PROBE] matched {selector}")
        return locator
    return None


async def wait_until(
    predicate: Callable[[], Awaitable[Any]],
    *,
    timeout: float,
    interval: float,
    description: str = "condition",
) -> Any:
    """
    Await ``predicate`` every ``interval`` seconds until it returns a truthy value.

    Returns:
        The first truthy value.

    Raises:
        PublishTimeout: if ``timeout`` elapses first.
    """
    deadline = time.monotonic() + timeout
    while True:
        result = await predicate()
        if result:
            return result
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise PublishTimeout(description, timeout)
        await asyncio.sleep(min(interval, remaining))


async def wait_for_selector(
    page,
    selectors: Sequence[str],
    *,
    timeout: float,
    interval: float,
    require_visible: bool = True,
    description: Optional[str] = None,
):
    """Poll until one of ``selectors`` becomes actionable and return its locator."""
    return await wait_until(
        lambda: find_actionable(page, selectors, require_visible=require_visible),
        timeout=timeout,
        interval=interval,
        description=description or f"any of {list(selectors)}",
    )
