"""Playwright-based renderer for chat share pages.

Share pages are React apps that stream turns in lazily, so the page is
scrolled to the bottom and given a short settle delay before the markup is
captured.
"""

import logging
from typing import Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from chatsnap.errors import RenderError
from chatsnap.services.fetcher import check_url

logger = logging.getLogger(__name__)

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
TIMEOUT_MS = 30_000  # 30 s in milliseconds
SETTLE_MS = 500

_SCROLL_TO_BOTTOM = "() => window.scrollTo({ top: document.body.scrollHeight })"


class Renderer(Protocol):
    async def render(self, url: str) -> str: ...


class BrowserRenderer:
    """Render a URL with headless Chromium and return the full HTML.

    One browser is launched per :meth:`render` call and closed before it
    returns; nothing is pooled.
    """

    def __init__(
        self,
        *,
        timeout_ms: int = TIMEOUT_MS,
        settle_ms: int = SETTLE_MS,
        allow_private: bool = False,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.settle_ms = settle_ms
        self.allow_private = allow_private

    async def render(self, url: str) -> str:
        """Return the rendered markup of *url*.

        Raises:
            RenderError: on URL validation, navigation, timeout or size failures.
        """
        try:
            await check_url(url, allow_private=self.allow_private)
        except ValueError as exc:
            raise RenderError(str(exc)) from exc

        try:
            html = await self._render(url)
        except PlaywrightError as exc:
            logger.error("Browser rendering error for %s: %s", url, exc)
            raise RenderError(f"Browser rendering failed for {url}: {exc}") from exc

        if len(html.encode()) > MAX_CONTENT_SIZE:
            raise RenderError("Rendered HTML exceeds the maximum allowed size.")

        return html

    async def _render(self, url: str) -> str:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(
                headless=True,
                args=[
                    # --no-sandbox is required when running as root inside a container.
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu",
                ],
            )
            context = await browser.new_context()
            page = await context.new_page()
            try:
                await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
                await page.evaluate(_SCROLL_TO_BOTTOM)
                if self.settle_ms > 0:
                    await page.wait_for_timeout(self.settle_ms)
                html = await page.content()
            finally:
                await context.close()
                await browser.close()

        logger.info("Rendered %s", url, extra={"url": url, "bytes": len(html.encode())})
        return html
