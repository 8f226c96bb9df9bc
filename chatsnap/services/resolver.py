"""Classify a caller-provided source string as a URL or as raw markup."""

import re

from chatsnap.models.source import MarkupSource, Source, UrlSource

SHARE_BASE_URL = "https://chatgpt.com/share/"

_ABSOLUTE_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)

# Short forms of a share link: "chatgpt.com/share/<id>", "/share/<id>", "share/<id>"
_SHARE_PATH_RE = re.compile(
    r"^(?:(?:www\.)?(?:chatgpt\.com|chat\.openai\.com))?/?share/([A-Za-z0-9][A-Za-z0-9\-]*)/?$",
    re.IGNORECASE,
)


def resolve_source(text: str) -> Source:
    """Return a :data:`Source` variant for *text*.

    Absolute ``http(s)://`` strings become :class:`UrlSource`; short share
    paths are rewritten to the canonical share URL.  Everything else is
    returned unchanged as :class:`MarkupSource`.
    """
    candidate = text.strip()

    if _ABSOLUTE_URL_RE.match(candidate):
        return UrlSource(url=candidate)

    match = _SHARE_PATH_RE.match(candidate)
    if match:
        return UrlSource(url=SHARE_BASE_URL + match.group(1))

    return MarkupSource(markup=text)
