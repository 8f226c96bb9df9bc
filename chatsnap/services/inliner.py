"""Replace external stylesheet links with equivalent inline ``<style>`` blocks.

All sheets of a document are fetched concurrently; ``@import`` rules are
expanded recursively and font files are embedded as data URIs.  The DOM is
only touched once every fetch has settled, so each ``<style>`` lands exactly
where its ``<link>`` was regardless of which response arrived first.
"""

import asyncio
import logging
from typing import Any, List, NamedTuple, Optional, Set, Tuple, Union
from urllib.parse import urljoin, urlparse

from chatsnap.models.config import FailedLinkPolicy
from chatsnap.services import css
from chatsnap.services.dom import DomEngine, SoupEngine
from chatsnap.services.fetcher import FetchFailed, Fetcher, FetchOk, FetchResult, fetch_resource

logger = logging.getLogger(__name__)

PROVENANCE_ATTR = "data-inlined-from"
STYLESHEET_SELECTOR = 'link[rel~="stylesheet" i][href]:not([rel~="alternate" i])'

_NON_CSS_TYPES = ("text/html", "application/xhtml")


class StylesheetRef(NamedTuple):
    index: int
    href: str  # attribute value as written
    url: Optional[str]  # absolute URL, None when it cannot be resolved
    node: Any


class InlinedStyle(NamedTuple):
    css_text: str
    href: str  # provenance: absolute URL without query string
    depth: int  # deepest @import level that was expanded


class InlineReport(NamedTuple):
    inlined: int
    failures: List[FetchFailed]
    import_depth: int = 0  # deepest @import level expanded across all sheets


# (absolute url, media) of an @import left for the browser to load
KeptImport = Tuple[str, str]


def provenance(url: str) -> str:
    return url.split("?")[0]


def document_base_url(engine: DomEngine, tree: Any, fallback: Optional[str]) -> Optional[str]:
    """Return the URL relative hrefs resolve against: ``<base href>`` wins over *fallback*."""
    base = engine.first(tree, "base[href]")
    if base is not None:
        href = engine.attr(base, "href") or ""
        return urljoin(fallback, href) if fallback else href
    return fallback


def _absolute(url: str) -> bool:
    return urlparse(url).scheme in ("http", "https")


class StyleInliner:
    def __init__(
        self,
        fetch: Fetcher = fetch_resource,
        *,
        engine: Optional[DomEngine] = None,
        import_depth: int = 5,
        inline_fonts: bool = True,
        failed_link_policy: FailedLinkPolicy = "keep",
        timeout: float = 10.0,
        max_concurrency: int = 8,
    ) -> None:
        self._fetch_fn = fetch
        self.engine = engine or SoupEngine()
        self.import_depth = import_depth
        self.inline_fonts = inline_fonts
        self.failed_link_policy = failed_link_policy
        self.timeout = timeout
        self.max_concurrency = max_concurrency

    def collect(self, tree: Any, base_url: Optional[str] = None) -> List[StylesheetRef]:
        """Return every stylesheet link of *tree* in document order."""
        base = document_base_url(self.engine, tree, base_url)
        refs = []
        for index, node in enumerate(self.engine.query(tree, STYLESHEET_SELECTOR)):
            href = (self.engine.attr(node, "href") or "").strip()
            url = urljoin(base, href) if base else href
            refs.append(StylesheetRef(index, href, url if _absolute(url) else None, node))
        return refs

    async def inline(self, tree: Any, base_url: Optional[str] = None) -> InlineReport:
        """Inline every stylesheet link of *tree* in place.

        Failed sheets never raise: they are logged, listed in the report, and
        handled according to ``failed_link_policy``.
        """
        refs = self.collect(tree, base_url)
        if not refs:
            return InlineReport(inlined=0, failures=[])

        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = await asyncio.gather(*(self._resolve_sheet(ref, semaphore) for ref in refs))

        failures: List[FetchFailed] = []
        inlined = 0
        import_depth = 0
        for ref, outcome in zip(refs, outcomes):
            if isinstance(outcome, InlinedStyle):
                self.engine.replace(ref.node, self._style_node(tree, ref, outcome))
                inlined += 1
                import_depth = max(import_depth, outcome.depth)
                logger.debug("Inlined %s (import depth %d)", outcome.href, outcome.depth)
                continue

            failures.append(outcome)
            logger.warning(
                "Could not inline stylesheet %s – %s", outcome.url, outcome.reason,
                extra={"href": ref.href, "policy": self.failed_link_policy},
            )
            if self.failed_link_policy == "drop":
                self.engine.remove(ref.node)

        logger.info("Inlined %d of %d stylesheets", inlined, len(refs))
        return InlineReport(inlined=inlined, failures=failures, import_depth=import_depth)

    def _style_node(self, tree: Any, ref: StylesheetRef, style: InlinedStyle) -> Any:
        attrs = {PROVENANCE_ATTR: style.href}
        media = self.engine.attr(ref.node, "media")
        if media:
            attrs["media"] = media
        return self.engine.create(tree, "style", attrs, style.css_text)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _fetch(self, url: str, semaphore: asyncio.Semaphore) -> FetchResult:
        async with semaphore:
            try:
                return await asyncio.wait_for(self._fetch_fn(url), self.timeout)
            except asyncio.TimeoutError:
                return FetchFailed(url=url, reason=f"timed out after {self.timeout}s")

    async def _fetch_css(self, url: str, semaphore: asyncio.Semaphore) -> Union[str, FetchFailed]:
        result = await self._fetch(url, semaphore)
        if isinstance(result, FetchFailed):
            return result
        if result.content_type.lower().startswith(_NON_CSS_TYPES):
            return FetchFailed(url=url, reason=f"unexpected content type {result.content_type}")
        text = css.decode_css(result.content)
        # relative references resolve against where the sheet was finally served from
        return css.absolutize_urls(text, result.url or url)

    async def _resolve_sheet(self, ref: StylesheetRef, semaphore: asyncio.Semaphore) -> Union[InlinedStyle, FetchFailed]:
        if ref.url is None:
            return FetchFailed(url=ref.href, reason="relative href with no base URL")

        text = await self._fetch_css(ref.url, semaphore)
        if isinstance(text, FetchFailed):
            return text

        text, kept, depth = await self._expand_imports(text, ref.url, 0, {ref.url}, semaphore)
        text = css.hoist_imports(text, [css.format_import(url, media) for url, media in kept])
        if self.inline_fonts:
            text = await self._embed_fonts(text, semaphore)
        return InlinedStyle(css_text=text, href=provenance(ref.url), depth=depth)

    # ------------------------------------------------------------------
    # @import expansion
    # ------------------------------------------------------------------

    async def _expand_imports(
        self,
        text: str,
        sheet_url: str,
        depth: int,
        ancestors: Set[str],
        semaphore: asyncio.Semaphore,
    ) -> Tuple[str, List[KeptImport], int]:
        """Expand the ``@import`` rules of *text* in place.

        Rules that stay unexpanded are cut out of the text and returned in
        source order, so the caller can hoist them above every other rule.
        """
        rules = css.find_imports(text)
        if not rules:
            return text, [], depth
        if depth >= self.import_depth:
            logger.debug("Import depth %d reached in %s; leaving %d @import rules", depth, sheet_url, len(rules))
            kept = [(urljoin(sheet_url, rule.url), rule.media) for rule in rules]
            return css.replace_spans(text, {(rule.start, rule.end): "" for rule in rules}), kept, depth

        expanded = await asyncio.gather(
            *(self._expand_rule(rule, sheet_url, depth, ancestors, semaphore) for rule in rules)
        )

        replacements = {}
        kept: List[KeptImport] = []
        reached = depth
        for rule, (child_text, child_kept, child_depth) in zip(rules, expanded):
            replacements[(rule.start, rule.end)] = child_text
            kept.extend(child_kept)
            reached = max(reached, child_depth)
        return css.replace_spans(text, replacements), kept, reached

    async def _expand_rule(
        self,
        rule: css.ImportRule,
        sheet_url: str,
        depth: int,
        ancestors: Set[str],
        semaphore: asyncio.Semaphore,
    ) -> Tuple[str, List[KeptImport], int]:
        url = urljoin(sheet_url, rule.url)
        if url in ancestors:
            logger.debug("Dropping cyclic @import of %s from %s", url, sheet_url)
            return "", [], depth
        if not _absolute(url):
            return "", [(url, rule.media)], depth

        child = await self._fetch_css(url, semaphore)
        if isinstance(child, FetchFailed):
            logger.warning("Could not expand @import %s – %s", url, child.reason)
            return "", [(url, rule.media)], depth

        child = css.strip_charset(child)
        child, child_kept, reached = await self._expand_imports(child, url, depth + 1, ancestors | {url}, semaphore)
        return css.wrap_media(child, rule.media), self._scope_kept(child_kept, rule), max(reached, depth + 1)

    def _scope_kept(self, kept: List[KeptImport], rule: css.ImportRule) -> List[KeptImport]:
        """Carry the media of *rule* over to imports hoisted out of its sheet."""
        condition = css.media_condition(rule.media)
        if not condition:
            return kept

        scoped = []
        for url, media in kept:
            if media:
                logger.warning("Dropping @import %s – cannot combine media %r with %r", url, media, condition)
                continue
            scoped.append((url, condition))
        return scoped

    # ------------------------------------------------------------------
    # Fonts
    # ------------------------------------------------------------------

    async def _embed_fonts(self, text: str, semaphore: asyncio.Semaphore) -> str:
        urls = [url for url in css.find_font_urls(text) if _absolute(url)]
        if not urls:
            return text

        results = await asyncio.gather(*(self._fetch(url, semaphore) for url in urls))
        fonts = []
        for url, result in zip(urls, results):
            if isinstance(result, FetchOk):
                fonts.append(css.FontAsset(url=url, mime=css.font_mime(url), payload=result.content))
            else:
                logger.warning("Could not embed font %s – %s", url, result.reason)
        return css.embed_fonts(text, fonts)
