"""Authorization surfaces: the external UI where the user grants access."""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright

logger = logging.getLogger(__name__)


class AuthorizationSurface(Protocol):
    @property
    def closed(self) -> bool: ...

    async def close(self) -> None: ...


class SurfaceOpener(Protocol):
    async def open(self, url: str) -> AuthorizationSurface | None:
        """Open ``url``. Returns None when the host refuses to open it."""
        ...


class DetachedSurface:
    """A surface we launched but cannot observe.

    Only reports closed after ``close()``; abandonment has to be caught by
    the handshake timeout.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True


class SystemBrowserOpener:
    """Open the URL in the user's default browser."""

    async def open(self, url: str) -> AuthorizationSurface | None:
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            logger.warning("No browser available to open authorization URL")
            return None
        return DetachedSurface(url)


class ManualOpener:
    """Hand the URL to a callback for the user to open by hand."""

    def __init__(self, announce: Callable[[str], Any]) -> None:
        self._announce = announce

    async def open(self, url: str) -> AuthorizationSurface | None:
        self._announce(url)
        return DetachedSurface(url)


class PlaywrightSurface:
    """A dedicated browser window driven by Playwright."""

    def __init__(self, playwright: Playwright, browser: Browser, page: Page) -> None:
        self._playwright = playwright
        self._browser = browser
        self._page = page
        self._released = False

    @property
    def closed(self) -> bool:
        return (
            self._released
            or self._page.is_closed()
            or not self._browser.is_connected()
        )

    async def close(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            if self._browser.is_connected():
                await self._browser.close()
        finally:
            await self._playwright.stop()


class PlaywrightOpener:
    """Open the URL in a headed Chromium window whose closure we can observe.

    Requires the ``browser`` extra (``playwright`` plus an installed
    Chromium).
    """

    def __init__(self, width: int = 500, height: int = 600) -> None:
        self._viewport = {"width": width, "height": height}

    async def open(self, url: str) -> AuthorizationSurface | None:
        try:
            from playwright.async_api import Error as PlaywrightError
            from playwright.async_api import async_playwright
        except ImportError:
            logger.warning("playwright is not installed; cannot open browser window")
            return None

        pw = await async_playwright().start()
        try:
            browser = await pw.chromium.launch(headless=False)
            page = await browser.new_page(viewport=self._viewport)
            await page.goto(url)
        except PlaywrightError as e:
            logger.warning("Failed to open authorization window: %s", e)
            await pw.stop()
            return None
        return PlaywrightSurface(pw, browser, page)
