"""Pure text helpers for stylesheet inlining.

Nothing in here touches the network or a DOM: the style inliner fetches the
resources and feeds the results back through these functions.
"""

import base64
import re
from typing import Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import urljoin, urlparse

# @import url("a.css") screen;  @import url(a.css);  @import "a.css";
_IMPORT_RE = re.compile(
    r"""@import\s+
        (?:url\(\s*(?P<q1>['"]?)(?P<u1>[^'")]*?)(?P=q1)\s*\)
          |(?P<q2>['"])(?P<u2>.*?)(?P=q2))
        \s*(?P<media>[^;]*);""",
    re.IGNORECASE | re.VERBOSE,
)

_URL_RE = re.compile(r"""url\(\s*(?P<q>['"]?)(?P<url>[^'")]+?)(?P=q)\s*\)""", re.IGNORECASE)

# the string form only; @import url(...) is covered by _URL_RE
_IMPORT_STRING_RE = re.compile(r"""(?P<lead>@import\s+)(?P<q>['"])(?P<url>.*?)(?P=q)""", re.IGNORECASE)

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)

_CHARSET_RE = re.compile(r"""^\s*@charset\s+(['"]).*?\1\s*;""", re.IGNORECASE)

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*:", re.IGNORECASE)

FONT_MIME_TYPES = {
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "otf": "font/otf",
}


class ImportRule(NamedTuple):
    start: int
    end: int
    url: str
    media: str


class FontAsset(NamedTuple):
    url: str
    mime: str
    payload: bytes


def _comment_spans(css: str) -> List[Tuple[int, int]]:
    return [m.span() for m in _COMMENT_RE.finditer(css)]


def _inside(pos: int, spans: List[Tuple[int, int]]) -> bool:
    return any(start <= pos < end for start, end in spans)


def decode_css(content: bytes) -> str:
    """Decode stylesheet bytes, dropping a UTF-8 BOM if present."""
    return content.decode("utf-8-sig", errors="replace")


def strip_charset(css: str) -> str:
    """Remove a leading ``@charset`` rule, which is invalid once the sheet is nested."""
    return _CHARSET_RE.sub("", css, count=1)


def find_imports(css: str) -> List[ImportRule]:
    """Return the ``@import`` rules of *css* in source order, skipping commented-out ones."""
    comments = _comment_spans(css)
    rules = []
    for match in _IMPORT_RE.finditer(css):
        if _inside(match.start(), comments):
            continue
        url = match.group("u1") if match.group("u1") is not None else match.group("u2")
        rules.append(ImportRule(match.start(), match.end(), url.strip(), match.group("media").strip()))
    return rules


def replace_spans(css: str, replacements: Dict[Tuple[int, int], str]) -> str:
    """Replace each ``(start, end)`` span of *css* with its text.  Spans must not overlap."""
    parts = []
    pos = 0
    for (start, end), text in sorted(replacements.items()):
        parts.append(css[pos:start])
        parts.append(text)
        pos = end
    parts.append(css[pos:])
    return "".join(parts)


def media_condition(media: str) -> str:
    """Return the ``@media`` prelude an ``@import`` condition maps to, or ""."""
    media = media.strip()
    if not media or media.lower() == "all":
        return ""
    # layer()/supports() conditions have no @media equivalent
    if re.match(r"(layer|supports)\b", media, re.IGNORECASE):
        return ""
    return media


def wrap_media(css: str, media: str) -> str:
    """Scope *css* to *media* the way ``@import url(...) <media>;`` would."""
    condition = media_condition(media)
    if not condition:
        return css
    return f"@media {condition} {{\n{css}\n}}"


def format_import(url: str, media: str = "") -> str:
    rule = f'@import url("{url}")'
    if media:
        rule += f" {media}"
    return rule + ";"


def hoist_imports(css: str, imports: List[str]) -> str:
    """Put *imports* ahead of every other rule of *css*.

    Browsers ignore an ``@import`` that follows any other rule.
    """
    if not imports:
        return css
    body = css.lstrip()
    return "\n".join(imports + [body]) if body else "\n".join(imports)


def is_inlinable_url(url: str) -> bool:
    return not url.startswith(("data:", "#")) and not url.lower().startswith("about:")


def _resolve_ref(url: str, base_url: str) -> Optional[str]:
    url = url.strip()
    if not url or not is_inlinable_url(url) or _SCHEME_RE.match(url):
        return None
    return urljoin(base_url, url)


def absolutize_urls(css: str, base_url: str) -> str:
    """Rewrite relative ``url(...)`` and ``@import "..."`` references in *css* against *base_url*.

    Inlined CSS no longer lives at its original address, so relative
    references would otherwise resolve against the document instead.
    """

    def _sub_url(match: "re.Match[str]") -> str:
        url = _resolve_ref(match.group("url"), base_url)
        if url is None:
            return match.group(0)
        quote = match.group("q")
        return f"url({quote}{url}{quote})"

    def _sub_import(match: "re.Match[str]") -> str:
        url = _resolve_ref(match.group("url"), base_url)
        if url is None:
            return match.group(0)
        quote = match.group("q")
        return f"{match.group('lead')}{quote}{url}{quote}"

    css = _URL_RE.sub(_sub_url, css)
    return _IMPORT_STRING_RE.sub(_sub_import, css)


def font_mime(url: str) -> str | None:
    """Return the MIME type for a font URL, or None when it is not a font file."""
    path = urlparse(url).path.lower()
    if "." not in path:
        return None
    return FONT_MIME_TYPES.get(path.rsplit(".", 1)[-1])


def find_font_urls(css: str) -> List[str]:
    """Return the distinct font-file URLs referenced by ``url(...)`` in *css*."""
    comments = _comment_spans(css)
    seen: set = set()
    urls: List[str] = []
    for match in _URL_RE.finditer(css):
        if _inside(match.start(), comments):
            continue
        url = match.group("url").strip()
        if not is_inlinable_url(url) or font_mime(url) is None:
            continue
        if url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


def to_data_uri(mime: str, payload: bytes) -> str:
    return f"data:{mime};base64,{base64.b64encode(payload).decode('ascii')}"


def embed_fonts(css: str, fonts: List[FontAsset]) -> str:
    """Replace every ``url(...)`` pointing at one of *fonts* with a base64 data URI."""
    data_uris = {font.url: to_data_uri(font.mime, font.payload) for font in fonts}
    if not data_uris:
        return css

    def _sub(match: "re.Match[str]") -> str:
        data_uri = data_uris.get(match.group("url").strip())
        if data_uri is None:
            return match.group(0)
        return f'url("{data_uri}")'

    return _URL_RE.sub(_sub, css)
