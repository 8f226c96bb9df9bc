"""Serialize the captured head and the conversation wrapper into one document."""

import logging
from typing import Any, Dict, NamedTuple, Optional

from chatsnap.errors import SerializationError
from chatsnap.services.dom import DOCUMENT_TEMPLATE, DomEngine, SoupEngine

logger = logging.getLogger(__name__)

_CHARSET_SELECTOR = 'meta[charset], meta[http-equiv="content-type" i]'


class AssembledDocument(NamedTuple):
    head_markup: str
    body_markup: str
    markup: str


class DocumentAssembler:
    def __init__(self, engine: Optional[DomEngine] = None) -> None:
        self.engine = engine or SoupEngine()

    def assemble(
        self,
        original_head: Optional[Any],
        wrapper: Any,
        *,
        root_attrs: Optional[Dict[str, str]] = None,
        body_attrs: Optional[Dict[str, str]] = None,
    ) -> AssembledDocument:
        """Build ``<!DOCTYPE html><html><head>…</head><body>wrapper</body></html>``.

        The head is cloned, so the source tree is left untouched.  A missing
        head produces an empty one with a UTF-8 charset declaration; the
        original ``<html>``/``<body>`` attributes (theme classes, ``lang``) are
        copied when given.

        Raises:
            SerializationError: if the document cannot be serialized.
        """
        doc = self.engine.parse(DOCUMENT_TEMPLATE)
        root = self.engine.first(doc, "html")
        head = self.engine.first(doc, "head")
        body = self.engine.first(doc, "body")

        for name, value in (root_attrs or {}).items():
            self.engine.set_attr(root, name, value)
        for name, value in (body_attrs or {}).items():
            self.engine.set_attr(body, name, value)

        if original_head is not None:
            for child in self.engine.children(original_head):
                self.engine.append(head, self.engine.clone(child))

        if self.engine.first(head, _CHARSET_SELECTOR) is None:
            self.engine.prepend(head, self.engine.create(doc, "meta", {"charset": "utf-8"}))

        self.engine.append(body, wrapper)

        try:
            head_markup = self.engine.serialize(head)
            body_markup = self.engine.serialize(body)
            markup = self.engine.serialize(doc)
        except (RecursionError, ValueError, TypeError) as exc:
            raise SerializationError(f"Could not serialize the assembled document: {exc}") from exc

        logger.debug("Assembled document", extra={"bytes": len(markup.encode())})
        return AssembledDocument(head_markup=head_markup, body_markup=body_markup, markup=markup)
