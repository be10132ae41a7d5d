# tests/test_navigation.py
import pytest

from utils.error_handler import ValidationError
from utils.navigation import (
    Page, collect_all_reaction_keys, find_by_id, has_message_handlers, iter_pages, page_from_dict, tree_from_dict
)


@pytest.fixture
def page_tree():
    deep = Page(id="deep", content="deep", reactions=["🔙"], back_emoji="🔙")
    docs = Page(id="docs", content="docs", reactions=["📄", "🗑️"], back_emoji="◀️", children={"📄": deep})
    info = Page(id="info", content="info", on_message=lambda *a: None)
    return {"📁": docs, "ℹ️": info}


def test_iter_pages_visits_every_depth(page_tree):
    ids = [page.id for page in iter_pages(page_tree)]
    assert sorted(ids) == ["deep", "docs", "info"]


def test_find_by_id_returns_nested_page(page_tree):
    assert find_by_id(page_tree, "deep") is page_tree["📁"].children["📄"]
    assert find_by_id(page_tree, "info") is page_tree["ℹ️"]


def test_find_by_id_missing_returns_none(page_tree):
    assert find_by_id(page_tree, "nope") is None


def test_collect_all_reaction_keys_flattens_reactions_and_back_emoji(page_tree):
    keys = collect_all_reaction_keys(page_tree)
    assert keys == ["📄", "🗑️", "◀️", "🔙"]


def test_has_message_handlers(page_tree):
    assert has_message_handlers(page_tree) is True
    assert has_message_handlers({"a": Page(content="x")}) is False


def test_display_reactions_puts_back_emoji_last_without_duplicates():
    assert Page(reactions=["1️⃣", "2️⃣"], back_emoji="◀️").display_reactions == ["1️⃣", "2️⃣", "◀️"]
    assert Page(reactions=["◀️", "1️⃣"], back_emoji="◀️").display_reactions == ["◀️", "1️⃣"]


def test_page_from_dict_builds_nested_tree_and_accepts_pages_alias():
    tree = tree_from_dict({
        "▶️": {
            "content": "child",
            "reactions": ["◀️", "⏬"],
            "back_emoji": "◀️",
            "pages": {"⏬": {"id": "leaf", "content": "leaf"}},
        }
    })
    child = tree["▶️"]
    assert isinstance(child, Page)
    assert child.children["⏬"].id == "leaf"
    assert find_by_id(tree, "leaf") is child.children["⏬"]


def test_page_from_dict_rejects_unknown_fields():
    with pytest.raises(ValidationError, match="неизвестные поля"):
        page_from_dict({"content": "x", "emoji": "🙂"})


def test_page_from_dict_rejects_duplicate_reactions():
    with pytest.raises(ValidationError):
        page_from_dict({"reactions": ["1️⃣", "1️⃣"]})


def test_page_from_dict_rejects_non_callable_handler():
    with pytest.raises(ValidationError, match="on_react"):
        page_from_dict({"on_react": "not a function"})


def test_pages_compare_by_identity():
    assert Page(content="same") != Page(content="same")
