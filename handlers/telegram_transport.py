# handlers/telegram_transport.py
"""
Telegram-реализация транспорта для меню. Реакции рисуются inline-кнопками
под сообщением бота: нажатие кнопки - это "реакция" пользователя.
"""
import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from aiogram import Bot, types
from aiogram.enums import ChatType
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from services.collector import Collector, CollectorOptions, FilterFunc
from utils.error_handler import ValidationError

logger = logging.getLogger(__name__)

REACTION_CALLBACK_PREFIX = "rc:"
BUTTONS_PER_ROW = 5
MAX_CALLBACK_DATA_BYTES = 64


def _is_not_modified(error: TelegramBadRequest) -> bool:
    return "message is not modified" in str(error).lower()


def content_to_kwargs(content: Any) -> Dict[str, Any]:
    """Контент страницы -> аргументы send_message/edit_message_text."""
    if isinstance(content, str):
        return {"text": content}
    if isinstance(content, Mapping):
        if not content.get("text"):
            raise ValidationError("Контент страницы в виде dict должен содержать непустое поле 'text'")
        return dict(content)
    if content is None:
        raise ValidationError("Контент страницы не задан")
    return {"text": str(content)}


@dataclass(frozen=True)
class TelegramEmoji:
    name: str
    id: Optional[str] = None


class TelegramReactionEvent:
    """Нажатие inline-кнопки реакции."""

    def __init__(self, callback: types.CallbackQuery, message: 'TelegramBotMessage'):
        self.callback = callback
        self.emoji = TelegramEmoji(name=(callback.data or "")[len(REACTION_CALLBACK_PREFIX):])
        self.user = callback.from_user
        self.message = message
        self._answered = False

    async def acknowledge(self, text: Optional[str] = None) -> None:
        # На callback можно ответить только один раз
        if self._answered:
            return
        self._answered = True
        await self.callback.answer(text)

    async def remove_user(self, user_id: int) -> None:
        # Кнопка не "залипает" за пользователем, достаточно погасить индикатор загрузки
        await self.acknowledge()


class TelegramIncomingMessage:
    def __init__(self, message: types.Message, deletable: bool):
        self.message = message
        self.from_user = message.from_user
        self.text = message.text
        self.deletable = deletable

    async def delete(self) -> Any:
        return await self.message.delete()


class CollectorRegistry:
    """Живые коллекторы по сообщениям и чатам; завершившиеся удаляются сами."""

    def __init__(self, delete_group_messages: bool = False):
        self.delete_group_messages = delete_group_messages
        self._messages: Dict[Tuple[int, int], 'TelegramBotMessage'] = {}
        self._reaction_collectors: Dict[Tuple[int, int], List[Collector]] = defaultdict(list)
        self._message_collectors: Dict[int, List[Collector]] = defaultdict(list)

    def register_message(self, bot_message: 'TelegramBotMessage') -> None:
        self._messages[(bot_message.chat_id, bot_message.message_id)] = bot_message

    def bot_message(self, chat_id: int, message_id: int) -> Optional['TelegramBotMessage']:
        return self._messages.get((chat_id, message_id))

    def add_reaction_collector(self, chat_id: int, message_id: int, collector: Collector) -> None:
        key = (chat_id, message_id)
        self._reaction_collectors[key].append(collector)

        def forget(collected, reason):
            collectors = self._reaction_collectors.get(key, [])
            if collector in collectors:
                collectors.remove(collector)
            if not collectors:
                self._reaction_collectors.pop(key, None)
                self._messages.pop(key, None)

        collector.on("end", forget)

    def add_message_collector(self, chat_id: int, collector: Collector) -> None:
        self._message_collectors[chat_id].append(collector)

        def forget(collected, reason):
            collectors = self._message_collectors.get(chat_id, [])
            if collector in collectors:
                collectors.remove(collector)
            if not collectors:
                self._message_collectors.pop(chat_id, None)

        collector.on("end", forget)

    def reaction_collectors(self, chat_id: int, message_id: int) -> List[Collector]:
        return list(self._reaction_collectors.get((chat_id, message_id), []))

    def message_collectors(self, chat_id: int) -> List[Collector]:
        return list(self._message_collectors.get(chat_id, []))

    def can_delete(self, message: types.Message) -> bool:
        return message.chat.type == ChatType.PRIVATE or self.delete_group_messages


class TelegramBotMessage:
    """Сообщение бота, у которого реакции - это inline-клавиатура."""

    def __init__(self, bot: Bot, chat_id: int, message_id: int, registry: CollectorRegistry,
                 buttons_per_row: int = BUTTONS_PER_ROW):
        self.bot = bot
        self.chat_id = chat_id
        self.message_id = message_id
        self.registry = registry
        self.buttons_per_row = buttons_per_row
        self._keys: List[str] = []
        self._synced_keys: Optional[List[str]] = None
        self._markup_lock = asyncio.Lock()
        registry.register_message(self)

    @classmethod
    async def send(cls, bot: Bot, chat_id: int, content: Any, registry: CollectorRegistry) -> 'TelegramBotMessage':
        message = await bot.send_message(chat_id=chat_id, **content_to_kwargs(content))
        instance = cls(bot, chat_id, message.message_id, registry)
        instance._synced_keys = []
        return instance

    @property
    def reactions(self) -> List[str]:
        return list(self._keys)

    def build_markup(self) -> Optional[InlineKeyboardMarkup]:
        if not self._keys:
            return None
        buttons = [
            InlineKeyboardButton(text=key, callback_data=f"{REACTION_CALLBACK_PREFIX}{key}")
            for key in self._keys
        ]
        rows = [buttons[i:i + self.buttons_per_row] for i in range(0, len(buttons), self.buttons_per_row)]
        return InlineKeyboardMarkup(inline_keyboard=rows)

    async def edit(self, content: Any) -> Any:
        try:
            return await self.bot.edit_message_text(
                chat_id=self.chat_id, message_id=self.message_id,
                reply_markup=self.build_markup(), **content_to_kwargs(content)
            )
        except TelegramBadRequest as e:
            if not _is_not_modified(e):
                raise
            logger.debug(f"Сообщение {self.chat_id}:{self.message_id} не изменилось, редактирование пропущено.")
            return None

    async def react(self, key: str) -> None:
        if len(f"{REACTION_CALLBACK_PREFIX}{key}".encode("utf-8")) > MAX_CALLBACK_DATA_BYTES:
            raise ValidationError(f"Ключ реакции '{key}' слишком длинный для callback_data Telegram")
        if key in self._keys:
            return
        self._keys.append(key)
        await self._sync_markup()

    async def remove_all_reactions(self) -> None:
        self._keys.clear()
        await self._sync_markup()

    async def _sync_markup(self) -> None:
        async with self._markup_lock:
            if self._synced_keys == self._keys:
                return
            snapshot = list(self._keys)
            try:
                await self.bot.edit_message_reply_markup(
                    chat_id=self.chat_id, message_id=self.message_id, reply_markup=self.build_markup()
                )
            except TelegramBadRequest as e:
                if not _is_not_modified(e):
                    raise
            self._synced_keys = snapshot

    def create_reaction_collector(self, filter: FilterFunc,
                                  options: Union[CollectorOptions, Mapping[str, Any], None] = None) -> Collector:
        collector = Collector(filter, options, name=f"reactions:{self.chat_id}:{self.message_id}")
        self.registry.add_reaction_collector(self.chat_id, self.message_id, collector)
        return collector

    def create_message_collector(self, filter: FilterFunc,
                                 options: Union[CollectorOptions, Mapping[str, Any], None] = None) -> Collector:
        collector = Collector(filter, options, name=f"messages:{self.chat_id}")
        self.registry.add_message_collector(self.chat_id, collector)
        return collector
