# services/transport.py
"""
Контракт внешнего транспорта, поверх которого работают меню.
Реализация для Telegram - handlers/telegram_transport.py.
"""
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable

from services.collector import Collector, CollectorOptions, FilterFunc


class ChatUser(Protocol):
    id: int
    is_bot: bool


class Emoji(Protocol):
    id: Optional[str]    # идентификатор кастомного эмодзи
    name: Optional[str]  # обычный эмодзи или отображаемое имя


class ReactionEvent(Protocol):
    emoji: Emoji
    user: ChatUser
    message: 'BotMessage'

    async def remove_user(self, user_id: int) -> None:
        """Убирает реакцию этого пользователя."""


class IncomingMessage(Protocol):
    from_user: ChatUser
    deletable: bool

    async def delete(self) -> Any: ...


@runtime_checkable
class BotMessage(Protocol):
    async def edit(self, content: Any) -> Any: ...

    async def react(self, key: str) -> Any: ...

    async def remove_all_reactions(self) -> Any: ...

    def create_reaction_collector(self, filter: FilterFunc,
                                  options: Union[CollectorOptions, Mapping[str, Any], None] = None) -> Collector: ...

    def create_message_collector(self, filter: FilterFunc,
                                 options: Union[CollectorOptions, Mapping[str, Any], None] = None) -> Collector: ...
