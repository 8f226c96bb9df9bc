"""Tests for extractor.ConversationExtractor."""

import pytest
from bs4 import BeautifulSoup

from chatsnap.errors import NotFoundError
from chatsnap.services.extractor import WRAPPER_ATTR, ConversationExtractor


def _turn(index: int, role: str, text: str) -> str:
    return (
        f'<article data-testid="conversation-turn-{index}">'
        f'<div data-message-author-role="{role}"><p>{text}</p></div>'
        "</article>"
    )


def _share_page(*turns: str) -> BeautifulSoup:
    return BeautifulSoup(
        "<html><head><title>Chat</title></head><body>"
        "<nav>History sidebar</nav>"
        f"<main>{''.join(turns)}</main>"
        "<footer>Terms</footer>"
        "</body></html>",
        "lxml",
    )


class TestPrimarySelector:
    def test_turns_in_document_order(self):
        roles = ["assistant", "user", "user", "assistant", "user"]
        tree = _share_page(*(_turn(i, role, f"message {i}") for i, role in enumerate(roles)))

        turns = ConversationExtractor().extract(tree)

        assert [t.index for t in turns] == [0, 1, 2, 3, 4]
        assert [t.role for t in turns] == roles
        assert [t.element.get_text() for t in turns] == [f"message {i}" for i in range(5)]

    def test_markup_is_the_serialized_clone(self):
        tree = _share_page(_turn(1, "user", "hi"))
        turn = ConversationExtractor().extract(tree)[0]
        assert turn.markup.startswith('<article data-testid="conversation-turn-1">')
        assert "hi" in turn.markup

    def test_unknown_role(self):
        tree = _share_page('<article data-testid="conversation-turn-1"><p>no role</p></article>')
        assert ConversationExtractor().extract(tree)[0].role == "unknown"

    def test_unexpected_role_value_is_unknown(self):
        tree = _share_page(_turn(1, "tool", "output"))
        assert ConversationExtractor().extract(tree)[0].role == "unknown"

    def test_search_is_scoped_to_main(self):
        tree = BeautifulSoup(
            "<html><body>"
            f"<aside>{_turn(0, 'user', 'preview')}</aside>"
            f"<main>{_turn(1, 'user', 'real')}</main>"
            "</body></html>",
            "lxml",
        )
        turns = ConversationExtractor().extract(tree)
        assert [t.element.get_text() for t in turns] == ["real"]

    def test_body_is_used_without_main(self):
        tree = BeautifulSoup(f"<html><body>{_turn(1, 'user', 'hi')}</body></html>", "lxml")
        assert len(ConversationExtractor().extract(tree)) == 1


class TestFallbackSelector:
    def test_legacy_message_containers(self):
        tree = _share_page(
            '<div class="group"><div data-message-author-role="user">question</div></div>'
            '<div class="group"><div data-message-author-role="assistant">answer</div></div>'
        )

        turns = ConversationExtractor().extract(tree)

        assert [t.role for t in turns] == ["user", "assistant"]
        assert [t.element.get_text() for t in turns] == ["question", "answer"]

    def test_primary_wins_when_both_match(self):
        tree = _share_page(_turn(1, "user", "a"), _turn(2, "assistant", "b"))
        turns = ConversationExtractor().extract(tree)
        assert all(t.element.name == "article" for t in turns)

    def test_nested_matches_are_collapsed(self):
        tree = _share_page(
            '<div class="message"><div data-message-author-role="user">q</div></div>'
            '<div class="message"><div data-message-author-role="assistant">a</div></div>'
        )

        turns = ConversationExtractor().extract(tree)

        assert len(turns) == 2
        assert [t.role for t in turns] == ["user", "assistant"]

    def test_custom_selectors(self):
        tree = _share_page('<section class="bubble">one</section><section class="bubble">two</section>')
        extractor = ConversationExtractor(primary_selector="section.turn", fallback_selector="section.bubble")
        assert [t.element.get_text() for t in extractor.extract(tree)] == ["one", "two"]

    def test_no_matches_raises(self):
        tree = _share_page("<p>This share link has been disabled.</p>")
        with pytest.raises(NotFoundError):
            ConversationExtractor().extract(tree)


class TestCloning:
    def test_source_tree_is_not_mutated(self):
        tree = _share_page(_turn(1, "user", "a"), _turn(2, "assistant", "b"))
        before = str(tree)

        extractor = ConversationExtractor()
        extractor.wrap(tree, extractor.extract(tree))

        assert str(tree) == before
        assert len(tree.main.find_all("article")) == 2

    def test_clones_are_detached(self):
        tree = _share_page(_turn(1, "user", "a"))
        turn = ConversationExtractor().extract(tree)[0]
        assert turn.element.parent is None


class TestWrapper:
    def test_wrapper_holds_turns_in_order(self):
        tree = _share_page(_turn(1, "user", "first"), _turn(2, "assistant", "second"))
        extractor = ConversationExtractor()

        wrapper = extractor.wrap(tree, extractor.extract(tree))

        assert wrapper.name == "div"
        assert wrapper.has_attr(WRAPPER_ATTR)
        assert [a["data-testid"] for a in wrapper.find_all("article")] == [
            "conversation-turn-1",
            "conversation-turn-2",
        ]

    def test_wrapper_layout(self):
        tree = _share_page(_turn(1, "user", "a"))
        extractor = ConversationExtractor(max_width="48rem")
        wrapper = extractor.wrap(tree, extractor.extract(tree))
        assert "max-width: 48rem" in wrapper["style"]
        assert "margin: 0 auto" in wrapper["style"]

    def test_chrome_is_excluded(self):
        tree = _share_page(_turn(1, "user", "a"))
        extractor = ConversationExtractor()
        wrapper = str(extractor.wrap(tree, extractor.extract(tree)))
        assert "History sidebar" not in wrapper
        assert "Terms" not in wrapper
