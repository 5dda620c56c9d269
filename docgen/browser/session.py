"""
Browser session lifecycle.

One Chromium page per crawl. Fonts and media are blocked so documentation pages
load quickly, the viewport matches the display size the planner is told about,
and the page is always closed before the browser on exit.
"""

import base64
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, Route, async_playwright

from docgen.core.config import BrowserSettings, get_settings
from docgen.core.exceptions import BrowserError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ["--disable-extensions", "--disable-file-system"]
SETTLE_AFTER_LOAD_MS = 300


@dataclass
class BrowserSession:
    """Live page + browser pair."""
    page: Page
    browser: Browser
    playwright: Optional[Playwright] = None

    async def close(self) -> None:
        """Close page, then browser, then the driver."""
        try:
            if not self.page.is_closed():
                await self.page.close()
        except Exception as e:
            logger.warning(f"[BrowserSession] Error closing page: {e}")
        try:
            await self.browser.close()
        except Exception as e:
            logger.warning(f"[BrowserSession] Error closing browser: {e}")
        if self.playwright is not None:
            await self.playwright.stop()
        logger.info("[BrowserSession] Closed")


async def _block_heavy_resources(route: Route, blocked: set[str]) -> None:
    if route.request.resource_type in blocked:
        await route.abort()
    else:
        await route.continue_()


async def open_session(url: Optional[str], settings: Optional[BrowserSettings] = None) -> BrowserSession:
    """Launch Chromium, open a page sized to the display and navigate to `url`."""
    settings = settings or get_settings().browser
    blocked = set(settings.blocked_resource_types)

    playwright = await async_playwright().start()
    try:
        logger.info("[BrowserSession] Launching browser...")
        browser = await playwright.chromium.launch(
            headless=settings.headless,
            chromium_sandbox=True,
            env={},
            args=LAUNCH_ARGS,
        )
        page = await browser.new_page()
        await page.route("**/*", lambda route: _block_heavy_resources(route, blocked))
        await page.set_viewport_size(
            {"width": settings.display_width, "height": settings.display_height}
        )
        page.set_default_navigation_timeout(settings.navigation_timeout_ms)

        if url:
            await page.goto(url, wait_until="domcontentloaded")
            await page.wait_for_load_state("domcontentloaded")
            await page.wait_for_timeout(SETTLE_AFTER_LOAD_MS)
    except Exception as e:
        await playwright.stop()
        raise BrowserError(f"could not open {url}: {e}", cause=e) from e

    logger.info(f"[BrowserSession] Opened {url}")
    return BrowserSession(page=page, browser=browser, playwright=playwright)


@asynccontextmanager
async def start_browser(url: Optional[str], settings: Optional[BrowserSettings] = None) -> AsyncIterator[BrowserSession]:
    """
    Async context manager around a browser session.

    Usage:
        async with start_browser("https://docs.example.com") as session:
            shot = await take_screenshot(session.page)
    """
    session = await open_session(url, settings)
    try:
        yield session
    finally:
        await session.close()


async def take_screenshot(page: Page, settings: Optional[BrowserSettings] = None) -> bytes:
    """JPEG screenshot of the visible viewport, clipped to the configured caps."""
    settings = settings or get_settings().browser
    viewport = page.viewport_size or {
        "width": settings.display_width,
        "height": settings.display_height,
    }
    clip = {
        "x": 0,
        "y": 0,
        "width": min(settings.screenshot_max_width, viewport["width"]),
        "height": min(settings.screenshot_max_height, viewport["height"]),
    }
    return await page.screenshot(
        type="jpeg",
        quality=settings.screenshot_quality,
        full_page=False,
        clip=clip,
    )


def to_data_url(image: bytes) -> str:
    """Encode screenshot bytes as a base64 JPEG data URL."""
    return f"data:image/jpeg;base64,{base64.b64encode(image).decode('ascii')}"
