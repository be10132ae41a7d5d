# tests/conftest.py
import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional

import pytest
import pytest_asyncio

from config.settings import CollectorConfig
from services.collector import Collector
from services.reaction_collector import ReactionCollector
from utils.error_handler import ErrorHandler


@dataclass
class FakeUser:
    id: int
    is_bot: bool = False


@dataclass
class FakeEmoji:
    name: Optional[str]
    id: Optional[str] = None


class FakeReactionEvent:
    def __init__(self, emoji: FakeEmoji, user: FakeUser, message: 'FakeBotMessage'):
        self.emoji = emoji
        self.user = user
        self.message = message
        self.removed_for: List[int] = []

    async def remove_user(self, user_id: int) -> None:
        self.removed_for.append(user_id)


class FakeIncomingMessage:
    def __init__(self, from_user: FakeUser, text: str, deletable: bool = True):
        self.from_user = from_user
        self.text = text
        self.deletable = deletable
        self.deleted = False

    async def delete(self):
        self.deleted = True


class FakeBotMessage:
    """Сообщение в памяти: хранит реакции и историю правок, коллекторы настоящие."""

    def __init__(self):
        self.reactions: List[str] = []
        self.contents: List[Any] = []
        self.remove_all_calls = 0
        self.reaction_collectors: List[Collector] = []
        self.message_collectors: List[Collector] = []

    @property
    def content(self) -> Any:
        return self.contents[-1] if self.contents else None

    async def edit(self, content):
        self.contents.append(content)

    async def react(self, key):
        if key not in self.reactions:
            self.reactions.append(key)

    async def remove_all_reactions(self):
        self.remove_all_calls += 1
        self.reactions.clear()

    def create_reaction_collector(self, filter, options=None):
        collector = Collector(filter, options, name="fake-reactions")
        self.reaction_collectors.append(collector)
        return collector

    def create_message_collector(self, filter, options=None):
        collector = Collector(filter, options, name="fake-messages")
        self.message_collectors.append(collector)
        return collector

    async def press(self, key: str, user: FakeUser, emoji_id: Optional[str] = None) -> FakeReactionEvent:
        event = FakeReactionEvent(FakeEmoji(name=key, id=emoji_id), user, self)
        await self.reaction_collectors[-1].handle_collect(event)
        return event

    async def send(self, text: str, user: FakeUser, deletable: bool = True) -> FakeIncomingMessage:
        message = FakeIncomingMessage(user, text, deletable)
        await self.message_collectors[-1].handle_collect(message)
        return message


async def wait_for_collector(bot_message: FakeBotMessage, attempts: int = 50) -> Collector:
    for _ in range(attempts):
        if bot_message.reaction_collectors:
            return bot_message.reaction_collectors[-1]
        await asyncio.sleep(0)
    raise AssertionError("Коллектор реакций так и не был создан")


@pytest.fixture
def user() -> FakeUser:
    return FakeUser(id=42)


@pytest.fixture
def stranger() -> FakeUser:
    return FakeUser(id=7)


@pytest.fixture
def bot_message() -> FakeBotMessage:
    return FakeBotMessage()


@pytest.fixture
def collector_config() -> CollectorConfig:
    # Без таймеров по умолчанию, чтобы тесты не зависели от времени
    return CollectorConfig(
        telegram_bot_token=None,
        collector_idle_sec=None,
        collector_time_sec=None,
        yes_no_time_sec=None,
        yes_no_reactions=["✅", "❌"],
        paginator_prev_emoji="◀️",
        paginator_next_emoji="▶️",
    )


@pytest.fixture
def error_handler() -> ErrorHandler:
    return ErrorHandler()


@pytest_asyncio.fixture
async def reaction_collector(collector_config: CollectorConfig, error_handler: ErrorHandler) -> ReactionCollector:
    return ReactionCollector(config=collector_config, error_handler=error_handler)
