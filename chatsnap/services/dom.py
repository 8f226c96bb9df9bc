"""Narrow DOM capability used by the pipeline stages.

The stages never import BeautifulSoup directly; they go through a
:class:`DomEngine` so the markup library can be swapped (or faked in tests).
"""

import copy
from typing import Any, Dict, List, Optional, Protocol

from bs4 import BeautifulSoup, Tag

Node = Any

DOCUMENT_TEMPLATE = "<!DOCTYPE html><html><head></head><body></body></html>"


class DomEngine(Protocol):
    def parse(self, markup: str) -> Node: ...

    def query(self, tree: Node, selector: str) -> List[Node]: ...

    def first(self, tree: Node, selector: str) -> Optional[Node]: ...

    def clone(self, node: Node) -> Node: ...

    def serialize(self, tree: Node) -> str: ...

    def create(self, tree: Node, name: str, attrs: Optional[Dict[str, str]] = None, text: str = "") -> Node: ...

    def attr(self, node: Node, name: str) -> Optional[str]: ...

    def attrs(self, node: Node) -> Dict[str, str]: ...

    def children(self, node: Node) -> List[Node]: ...

    def append(self, parent: Node, child: Node) -> None: ...

    def prepend(self, parent: Node, child: Node) -> None: ...

    def set_attr(self, node: Node, name: str, value: str) -> None: ...

    def replace(self, old: Node, new: Node) -> None: ...

    def remove(self, node: Node) -> None: ...

    def contains(self, ancestor: Node, node: Node) -> bool: ...


class SoupEngine:
    """:class:`DomEngine` backed by BeautifulSoup (lxml parser by default)."""

    def __init__(self, parser: str = "lxml") -> None:
        self.parser = parser

    def parse(self, markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, self.parser)

    def query(self, tree: Tag, selector: str) -> List[Tag]:
        # soupsieve returns matches in document order
        return list(tree.select(selector))

    def first(self, tree: Tag, selector: str) -> Optional[Tag]:
        return tree.select_one(selector)

    def clone(self, node: Tag) -> Tag:
        # Tag.__copy__ is a deep, detached copy
        return copy.copy(node)

    def serialize(self, tree: Tag) -> str:
        return str(tree)

    def create(self, tree: BeautifulSoup, name: str, attrs: Optional[Dict[str, str]] = None, text: str = "") -> Tag:
        tag = tree.new_tag(name, attrs=dict(attrs or {}))
        if text:
            tag.string = text
        return tag

    def attr(self, node: Tag, name: str) -> Optional[str]:
        value = node.get(name)
        if value is None:
            return None
        # Multi-valued attributes (class, rel) come back as lists
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def attrs(self, node: Tag) -> Dict[str, str]:
        return {name: self.attr(node, name) or "" for name in node.attrs}

    def children(self, node: Tag) -> List[Any]:
        return list(node.contents)

    def append(self, parent: Tag, child: Any) -> None:
        parent.append(child)

    def prepend(self, parent: Tag, child: Any) -> None:
        parent.insert(0, child)

    def set_attr(self, node: Tag, name: str, value: str) -> None:
        node[name] = value

    def replace(self, old: Tag, new: Tag) -> None:
        old.replace_with(new)

    def remove(self, node: Tag) -> None:
        node.decompose()

    def contains(self, ancestor: Tag, node: Tag) -> bool:
        return any(parent is ancestor for parent in node.parents)
