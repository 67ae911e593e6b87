import base64
import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from ..config import settings
from ..errors import CaptureError
from ..models.collaborators import ScreenshotResult

logger = logging.getLogger(settings.SERVICE_NAME + ".screenshot")


async def capture_screenshot(
    url: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> ScreenshotResult:
    """
    Capture a viewport-sized PNG of a running app with headless Chromium.
    Only the viewport is captured to keep the image small; the full scroll
    height is reported alongside it.
    """
    width = width or settings.VIEWPORT_WIDTH
    height = height or settings.VIEWPORT_HEIGHT

    try:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                page = await browser.new_page(viewport={"width": width, "height": height})
                await page.goto(url, wait_until="networkidle", timeout=settings.CAPTURE_TIMEOUT_S * 1000)
                # Late-rendering client code
                await page.wait_for_timeout(settings.CAPTURE_SETTLE_MS)

                png = await page.screenshot(type="png", full_page=False)
                page_height = await page.evaluate("() => document.body.scrollHeight")
            finally:
                await browser.close()
    except PlaywrightError as e:
        logger.error(f"Screenshot of {url} failed: {e}")
        raise CaptureError(f"Could not capture {url}: {e}") from e

    logger.info(f"Captured {url} at {width}x{height} (page height {page_height}px)")
    return ScreenshotResult(
        base64=base64.b64encode(png).decode("ascii"),
        viewport_width=width,
        viewport_height=height,
        page_height=int(page_height),
    )
