# services/filters.py
from typing import Callable, Iterable, Optional

from services.transport import ChatUser, Emoji, IncomingMessage, ReactionEvent


def reaction_key(emoji: Emoji) -> Optional[str]:
    """Ключ реакции: id кастомного эмодзи важнее его имени."""
    return emoji.id or emoji.name


def emoji_matches(emoji: Emoji, key: str) -> bool:
    return key in (emoji.id, emoji.name)


def make_reaction_filter(user: ChatUser, keys: Iterable[str]) -> Callable[[ReactionEvent], bool]:
    """Реакция от нужного пользователя, не от бота и с известным ключом."""
    allowed = frozenset(keys)

    def reaction_filter(event: ReactionEvent) -> bool:
        reactor = event.user
        if reactor is None or reactor.id != user.id or reactor.is_bot:
            return False
        return event.emoji.id in allowed or event.emoji.name in allowed

    return reaction_filter


def make_message_filter(user: ChatUser) -> Callable[[IncomingMessage], bool]:
    def message_filter(message: IncomingMessage) -> bool:
        author = message.from_user
        return author is not None and author.id == user.id and not author.is_bot

    return message_filter
