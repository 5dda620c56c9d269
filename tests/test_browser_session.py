"""
Unit tests for screenshot capture and session teardown.

Tests docgen/browser/session.py without launching Chromium.
"""

import base64

import pytest

from docgen.browser.session import BrowserSession, take_screenshot, to_data_url
from docgen.core.config import BrowserSettings

from tests.conftest import FakeBrowser, FakePage


@pytest.mark.asyncio
async def test_screenshot_is_clipped_jpeg():
    page = FakePage(width=1600, height=1000)
    await take_screenshot(page, BrowserSettings())

    [call] = page.screenshot_calls
    assert call["type"] == "jpeg"
    assert call["quality"] == 60
    assert call["full_page"] is False
    assert call["clip"] == {"x": 0, "y": 0, "width": 1280, "height": 800}


@pytest.mark.asyncio
async def test_small_viewport_is_not_upscaled():
    page = FakePage(width=1024, height=768)
    await take_screenshot(page, BrowserSettings())
    assert page.screenshot_calls[0]["clip"] == {"x": 0, "y": 0, "width": 1024, "height": 768}


def test_data_url():
    url = to_data_url(b"\xff\xd8jpeg")
    assert url.startswith("data:image/jpeg;base64,")
    assert base64.b64decode(url.split(",", 1)[1]) == b"\xff\xd8jpeg"


@pytest.mark.asyncio
async def test_close_page_then_browser():
    page, browser = FakePage(), FakeBrowser()
    await BrowserSession(page=page, browser=browser).close()
    assert page.closed and browser.closed
