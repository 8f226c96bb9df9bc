"""Capture orchestration: source string in, :class:`ConversationRecord` out.

Stages run strictly in order::

    resolve -> render (URL sources only) -> inline styles -> extract
            -> assemble -> build

Any stage-level error aborts the capture; nothing partial is ever returned.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from chatsnap.errors import CaptureCancelled, InputError
from chatsnap.models.config import PipelineConfig
from chatsnap.models.record import ConversationRecord
from chatsnap.models.source import MarkupSource, Source, UrlSource
from chatsnap.services.assembler import DocumentAssembler
from chatsnap.services.browser_fetcher import BrowserRenderer, Renderer
from chatsnap.services.builder import ResultBuilder, byte_length
from chatsnap.services.dom import DomEngine, SoupEngine
from chatsnap.services.extractor import ConversationExtractor
from chatsnap.services.fetcher import Fetcher, fetch_resource
from chatsnap.services.inliner import StyleInliner
from chatsnap.services.resolver import resolve_source

logger = logging.getLogger(__name__)


def _check_source(text: str, source: Source) -> None:
    """Raise InputError for sources no stage could work with."""
    if not text or not text.strip():
        raise InputError("Source is empty.")
    if isinstance(source, MarkupSource) and "<" not in source.markup:
        raise InputError("Source is neither an http(s) URL, a share path, nor HTML markup.")


async def _run(
    text: str,
    config: PipelineConfig,
    renderer: Optional[Renderer],
    fetch: Fetcher,
    engine: DomEngine,
    clock: Optional[Callable[[], datetime]],
) -> ConversationRecord:
    source = resolve_source(text)
    _check_source(text, source)
    logger.info("Capture started", extra={"kind": source.kind})

    # ── Render ───────────────────────────────────────────────────────────────
    if isinstance(source, UrlSource):
        renderer = renderer or BrowserRenderer()
        raw_html = await renderer.render(source.url)
        base_url = config.base_url or source.url
    else:
        raw_html = source.markup
        base_url = config.base_url
    source_bytes = byte_length(raw_html)

    # ── Inline styles ────────────────────────────────────────────────────────
    tree = engine.parse(raw_html)
    inliner = StyleInliner(
        fetch,
        engine=engine,
        import_depth=config.import_depth,
        inline_fonts=config.inline_fonts,
        failed_link_policy=config.failed_link_policy,
        timeout=config.fetch_timeout,
        max_concurrency=config.max_concurrent_fetches,
    )
    report = await inliner.inline(tree, base_url)

    # ── Extract ──────────────────────────────────────────────────────────────
    extractor = ConversationExtractor(
        engine,
        primary_selector=config.primary_selector,
        fallback_selector=config.fallback_selector,
        max_width=config.wrapper_max_width,
    )
    turns = extractor.extract(tree)
    wrapper = extractor.wrap(tree, turns)

    # ── Assemble ─────────────────────────────────────────────────────────────
    root = engine.first(tree, "html")
    body = engine.first(tree, "body")
    document = DocumentAssembler(engine).assemble(
        engine.first(tree, "head"),
        wrapper,
        root_attrs=engine.attrs(root) if root is not None else None,
        body_attrs=engine.attrs(body) if body is not None else None,
    )

    # ── Build ────────────────────────────────────────────────────────────────
    record = ResultBuilder(config.model_tag, clock).build(document.markup, source_bytes)
    logger.info(
        "Capture finished",
        extra={
            "turns": len(turns),
            "stylesheets_inlined": report.inlined,
            "stylesheets_failed": len(report.failures),
            "import_depth": report.import_depth,
            "source_bytes": source_bytes,
        },
    )
    return record


async def capture(
    source: str,
    *,
    config: Optional[PipelineConfig] = None,
    renderer: Optional[Renderer] = None,
    fetch: Fetcher = fetch_resource,
    engine: Optional[DomEngine] = None,
    cancel_event: Optional[asyncio.Event] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ConversationRecord:
    """Capture a chat transcript from a URL, a share path, or raw HTML.

    Args:
        source: Absolute URL, short share path, or full page markup.
        config: Pipeline options; defaults to :class:`PipelineConfig()`.
        renderer: Collaborator that turns a URL into markup.  Defaults to a
            headless-Chromium :class:`BrowserRenderer`.
        fetch: Stylesheet/font fetcher returning ``FetchOk``/``FetchFailed``.
        engine: DOM engine; defaults to BeautifulSoup with ``config.parser``.
        cancel_event: Setting this event aborts every in-flight fetch and the
            render session.
        clock: Returns the capture time; UTC now by default.

    Raises:
        InputError, RenderError, NotFoundError, SerializationError: stage failures.
        CaptureCancelled: if *cancel_event* fired before the record was built.
    """
    config = config or PipelineConfig()
    engine = engine or SoupEngine(config.parser)
    run = _run(source, config, renderer, fetch, engine, clock)

    if cancel_event is None:
        return await run

    task = asyncio.ensure_future(run)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    # Wait for the render session and fetches to unwind before reporting
    await asyncio.gather(task, return_exceptions=True)
    logger.info("Capture cancelled by caller")
    raise CaptureCancelled("Capture was cancelled before a record was built.")
