import logging
from typing import Any, List, Literal, NamedTuple, Optional

from chatsnap.errors import NotFoundError
from chatsnap.models.config import FALLBACK_TURN_SELECTOR, PRIMARY_TURN_SELECTOR
from chatsnap.services.dom import DomEngine, SoupEngine

logger = logging.getLogger(__name__)

Role = Literal["user", "assistant", "unknown"]

ROLE_ATTR = "data-message-author-role"
WRAPPER_ATTR = "data-conversation"
_KNOWN_ROLES = {"user", "assistant"}


class ConversationNode(NamedTuple):
    index: int
    role: Role
    markup: str
    element: Any  # detached clone, never the node from the source tree


class ConversationExtractor:
    """Locate the conversation turns of a share page and clone them into a wrapper."""

    def __init__(
        self,
        engine: Optional[DomEngine] = None,
        *,
        primary_selector: str = PRIMARY_TURN_SELECTOR,
        fallback_selector: str = FALLBACK_TURN_SELECTOR,
        max_width: str = "46rem",
    ) -> None:
        self.engine = engine or SoupEngine()
        self.primary_selector = primary_selector
        self.fallback_selector = fallback_selector
        self.max_width = max_width

    def _scope(self, tree: Any) -> Any:
        """Return ``<main>`` when the page has one, else ``<body>``, else the whole tree."""
        return self.engine.first(tree, "main") or self.engine.first(tree, "body") or tree

    def _match(self, tree: Any) -> List[Any]:
        scope = self._scope(tree)
        for selector in (self.primary_selector, self.fallback_selector):
            nodes = self.engine.query(scope, selector)
            if nodes:
                logger.debug("Selector %r matched %d nodes", selector, len(nodes))
                return self._outermost(nodes)
            logger.debug("Selector %r matched nothing", selector)
        return []

    def _outermost(self, nodes: List[Any]) -> List[Any]:
        """Drop matches nested inside an earlier match so no turn is emitted twice."""
        kept: List[Any] = []
        for node in nodes:
            if not any(self.engine.contains(outer, node) for outer in kept):
                kept.append(node)
        return kept

    def _role(self, node: Any) -> Role:
        carrier = node if self.engine.attr(node, ROLE_ATTR) else self.engine.first(node, f"[{ROLE_ATTR}]")
        if carrier is None:
            return "unknown"
        role = (self.engine.attr(carrier, ROLE_ATTR) or "").strip().lower()
        return role if role in _KNOWN_ROLES else "unknown"

    def extract(self, tree: Any) -> List[ConversationNode]:
        """Return cloned conversation turns in document order.

        Raises:
            NotFoundError: if neither selector matches anything.
        """
        matches = self._match(tree)
        if not matches:
            raise NotFoundError(
                f"No conversation nodes matched {self.primary_selector!r} "
                f"or {self.fallback_selector!r}."
            )

        turns = []
        for index, node in enumerate(matches):
            clone = self.engine.clone(node)
            turns.append(
                ConversationNode(
                    index=index,
                    role=self._role(node),
                    markup=self.engine.serialize(clone),
                    element=clone,
                )
            )
        return turns

    def wrap(self, tree: Any, turns: List[ConversationNode]) -> Any:
        """Return a new wrapper element holding *turns* at the page's reading width."""
        wrapper = self.engine.create(
            tree,
            "div",
            {
                WRAPPER_ATTR: "",
                "style": f"max-width: {self.max_width}; margin: 0 auto;",
            },
        )
        for turn in turns:
            self.engine.append(wrapper, turn.element)
        return wrapper
