"""Tests for browser_fetcher.BrowserRenderer with Playwright mocked out."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from chatsnap.errors import RenderError
from chatsnap.services import browser_fetcher
from chatsnap.services.browser_fetcher import BrowserRenderer

_URL = "https://chatgpt.com/share/abc"


def _fake_playwright(html: str = "<html><body>rendered</body></html>"):
    """Return (async_playwright replacement, page mock)."""
    page = MagicMock()
    page.goto = AsyncMock()
    page.evaluate = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.content = AsyncMock(return_value=html)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)

    manager = MagicMock()
    manager.__aenter__ = AsyncMock(return_value=pw)
    manager.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=manager), page, browser


class TestBrowserRenderer:
    def test_render_waits_and_scrolls(self):
        factory, page, browser = _fake_playwright()

        with patch("chatsnap.services.browser_fetcher.async_playwright", new=factory):
            html = asyncio.run(BrowserRenderer(allow_private=True).render(_URL))

        assert html == "<html><body>rendered</body></html>"
        page.goto.assert_awaited_once_with(_URL, wait_until="networkidle", timeout=browser_fetcher.TIMEOUT_MS)
        page.evaluate.assert_awaited_once()
        page.wait_for_timeout.assert_awaited_once_with(browser_fetcher.SETTLE_MS)
        browser.close.assert_awaited_once()

    def test_zero_settle_skips_wait(self):
        factory, page, _ = _fake_playwright()

        with patch("chatsnap.services.browser_fetcher.async_playwright", new=factory):
            asyncio.run(BrowserRenderer(settle_ms=0, allow_private=True).render(_URL))

        page.wait_for_timeout.assert_not_awaited()

    def test_browser_is_closed_when_navigation_fails(self):
        factory, page, browser = _fake_playwright()
        page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

        with patch("chatsnap.services.browser_fetcher.async_playwright", new=factory):
            with pytest.raises(RenderError, match="ERR_NAME_NOT_RESOLVED"):
                asyncio.run(BrowserRenderer(allow_private=True).render(_URL))

        browser.close.assert_awaited_once()

    def test_invalid_url_is_render_error(self):
        with pytest.raises(RenderError, match="not allowed"):
            asyncio.run(BrowserRenderer().render("file:///etc/passwd"))

    def test_oversize_markup(self, monkeypatch):
        monkeypatch.setattr(browser_fetcher, "MAX_CONTENT_SIZE", 10)
        factory, _, _ = _fake_playwright("<html>" + "x" * 100 + "</html>")

        with patch("chatsnap.services.browser_fetcher.async_playwright", new=factory):
            with pytest.raises(RenderError, match="maximum allowed size"):
                asyncio.run(BrowserRenderer(allow_private=True).render(_URL))
