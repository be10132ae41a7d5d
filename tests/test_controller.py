# tests/test_controller.py
import pytest
import pytest_asyncio

from services.collector import Collector
from services.controller import CollectorBinding, Controller, PaginatorController
from utils.error_handler import NavigationError
from utils.navigation import Page


@pytest.fixture
def pages():
    p2 = Page(id="p2", content="page 2", reactions=["⬆️"], back_emoji="◀️")
    p1 = Page(id="p1", content="page 1", reactions=["1️⃣", "2️⃣"], back_emoji="◀️", children={"2️⃣": p2})
    p0 = Page(id="p0", content="page 0", reactions=["1️⃣"], children={"1️⃣": p1})
    return {"🏁": p0}


@pytest_asyncio.fixture
async def controller(bot_message, pages):
    binding = CollectorBinding(Collector(lambda event: True))
    return Controller(bot_message, binding, pages)


@pytest.mark.asyncio
async def test_new_controller_cannot_go_back(controller):
    assert controller.current_page is None
    assert controller.last_page is None
    assert controller.can_back is False


@pytest.mark.asyncio
async def test_single_slot_history_and_back_swaps(controller, pages):
    p0 = pages["🏁"]
    p1 = p0.children["1️⃣"]
    p2 = p1.children["2️⃣"]

    await controller.go_to("p0")
    assert controller.can_back is True
    await controller.go_to("p1")
    await controller.go_to("p2")
    assert controller.current_page is p2
    assert controller.last_page is p1

    await controller.back()
    assert controller.current_page is p1
    assert controller.last_page is p2
    assert controller.can_back is True


@pytest.mark.asyncio
async def test_go_to_unknown_page_raises_and_keeps_state(controller, bot_message):
    await controller.go_to("p1")
    before = (controller.current_page, controller.last_page, list(bot_message.reactions))

    with pytest.raises(NavigationError):
        await controller.go_to("missing")

    assert (controller.current_page, controller.last_page, bot_message.reactions) == before


@pytest.mark.asyncio
async def test_back_without_history_raises_and_keeps_state(controller):
    with pytest.raises(NavigationError):
        await controller.back()
    assert controller.current_page is None
    assert controller.last_page is None


@pytest.mark.asyncio
async def test_full_update_resets_reactions_to_page_then_back_emoji(controller, bot_message):
    bot_message.reactions.extend(["🗑️", "1️⃣", "🎲"])
    await controller.go_to("p1")
    assert bot_message.reactions == ["1️⃣", "2️⃣", "◀️"]
    assert bot_message.content == "page 1"
    assert bot_message.remove_all_calls == 1


@pytest.mark.asyncio
async def test_content_only_update_leaves_reactions(controller, bot_message):
    controller.set_current_page(controller.pages["🏁"])
    bot_message.reactions.append("🎲")
    await controller.update(only_message_content=True)
    assert bot_message.reactions == ["🎲"]
    assert bot_message.content == "page 0"


@pytest.mark.asyncio
async def test_back_to_root_restores_root_reactions(controller, bot_message):
    controller.set_current_page(controller.pages["🏁"])
    await controller.back()
    assert controller.current_page is None
    assert controller.can_back is False
    assert bot_message.reactions == ["🏁"]


@pytest.mark.asyncio
async def test_binding_stops_and_resets_both_collectors():
    reactions = Collector(lambda event: True, {"idle": 30})
    messages = Collector(lambda message: True, {"idle": 30})
    binding = CollectorBinding(reactions, messages)

    binding.reset_timer(idle=60)
    assert not reactions.ended and not messages.ended

    binding.stop()
    await binding.wait()
    assert reactions.ended and messages.ended
    assert reactions.end_reason == "user"


@pytest.mark.asyncio
async def test_messages_collector_ends_with_reaction_collector():
    reactions = Collector(lambda event: True)
    messages = Collector(lambda message: True)
    CollectorBinding(reactions, messages)

    reactions.stop("time")
    await reactions.wait()
    await messages.wait()
    assert messages.end_reason == "time"


@pytest.mark.asyncio
async def test_paginator_controller_clamps_and_wraps(bot_message):
    binding = CollectorBinding(Collector(lambda event: True))
    clamped = PaginatorController(bot_message, binding, ["a", "b", "c"])
    assert clamped.target_index(-1) == 0
    assert clamped.target_index(10) == 2

    wrapped = PaginatorController(bot_message, binding, ["a", "b", "c"], wrap=True)
    assert wrapped.target_index(-1) == 2
    assert wrapped.target_index(4) == 1


@pytest.mark.asyncio
async def test_paginator_controller_go_to_out_of_range(bot_message):
    controller = PaginatorController(bot_message, CollectorBinding(Collector(lambda event: True)), ["a", "b"])
    with pytest.raises(NavigationError):
        await controller.go_to(5)
    await controller.go_to(1)
    assert controller.current_page == "b"
    assert bot_message.content == "b"
