import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from figma_bridge.errors import CaptureError
from figma_bridge.service.screenshot import capture_screenshot


def _fake_playwright(page):
    browser = MagicMock()
    browser.new_page = AsyncMock(return_value=page)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)

    manager = MagicMock()
    manager.__aenter__ = AsyncMock(return_value=playwright)
    manager.__aexit__ = AsyncMock(return_value=False)
    return manager, browser


def _page():
    page = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.screenshot = AsyncMock(return_value=b"\x89PNG")
    page.evaluate = AsyncMock(return_value=2400)
    return page


@pytest.mark.asyncio
async def test_capture_screenshot():
    page = _page()
    manager, browser = _fake_playwright(page)

    with patch("figma_bridge.service.screenshot.async_playwright", return_value=manager):
        result = await capture_screenshot("http://localhost:3000", 1280, 720)

    assert result.base64 == base64.b64encode(b"\x89PNG").decode("ascii")
    assert (result.viewport_width, result.viewport_height, result.page_height) == (1280, 720, 2400)
    browser.new_page.assert_awaited_once_with(viewport={"width": 1280, "height": 720})
    assert page.goto.call_args.kwargs["wait_until"] == "networkidle"
    page.screenshot.assert_awaited_once_with(type="png", full_page=False)
    browser.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_capture_failure_is_wrapped():
    page = _page()
    page.goto = AsyncMock(side_effect=PlaywrightError("net::ERR_CONNECTION_REFUSED"))
    manager, browser = _fake_playwright(page)

    with patch("figma_bridge.service.screenshot.async_playwright", return_value=manager):
        with pytest.raises(CaptureError, match="ERR_CONNECTION_REFUSED"):
            await capture_screenshot("http://localhost:3000")
    browser.close.assert_awaited_once()
