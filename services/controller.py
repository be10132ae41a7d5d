# services/controller.py
import asyncio
import logging
from typing import Any, List, Optional

from services.collector import Collector
from services.transport import BotMessage
from utils.error_handler import NavigationError
from utils.navigation import Page, PageTree, find_by_id

logger = logging.getLogger(__name__)


class CollectorBinding:
    """
    Пара подписок одной сессии: обязательная на реакции и необязательная на
    сообщения. Остановка или продление таймеров действует на обе сразу.
    """

    def __init__(self, collector: Collector, messages_collector: Optional[Collector] = None):
        self.collector = collector
        self.messages_collector: Optional[Collector] = None
        if messages_collector is not None:
            self.attach_messages_collector(messages_collector)

    def attach_messages_collector(self, messages_collector: Collector):
        self.messages_collector = messages_collector
        # Вторичная подписка не должна пережить основную
        self.collector.on("end", lambda collected, reason: messages_collector.stop(reason))

    @property
    def ended(self) -> bool:
        return self.collector.ended

    def stop(self, reason: str = "user") -> None:
        if self.messages_collector is not None:
            self.messages_collector.stop(reason)
        self.collector.stop(reason)

    def reset_timer(self, time: Optional[float] = None, idle: Optional[float] = None) -> None:
        if self.messages_collector is not None:
            self.messages_collector.reset_timer(time=time, idle=idle)
        self.collector.reset_timer(time=time, idle=idle)

    async def wait(self) -> List[Any]:
        collected = await self.collector.wait()
        if self.messages_collector is not None:
            await self.messages_collector.wait()
        return collected


class Controller:
    """
    Состояние навигации по дереву страниц для одного сообщения бота.

    История одноуровневая: last_page хранит только страницу, активную
    непосредственно перед последним переходом. current_page None означает
    корень меню (страницы верхнего уровня).

    Корень тоже считается позицией в истории: last_page может быть None после
    перехода из корня, поэтому can_back смотрит на факт перехода и на то, что
    сейчас открыта страница, а не на last_page.
    """

    def __init__(self, bot_message: BotMessage, binding: CollectorBinding, pages: PageTree):
        self._bot_message = bot_message
        self._binding = binding
        self._pages = pages
        self._current_page: Optional[Page] = None
        self._last_page: Optional[Page] = None
        self._has_history = False

    @property
    def bot_message(self) -> BotMessage:
        return self._bot_message

    @property
    def pages(self) -> PageTree:
        return self._pages

    @property
    def binding(self) -> CollectorBinding:
        return self._binding

    @property
    def collector(self) -> Collector:
        return self._binding.collector

    @property
    def messages_collector(self) -> Optional[Collector]:
        return self._binding.messages_collector

    @property
    def current_page(self) -> Optional[Page]:
        return self._current_page

    @property
    def last_page(self) -> Optional[Page]:
        return self._last_page

    @property
    def can_back(self) -> bool:
        return self._has_history and self._current_page is not None

    def set_current_page(self, page: Optional[Page]) -> None:
        """Переход без перерисовки: прежняя текущая страница уходит в last_page."""
        self._last_page = self._current_page
        self._current_page = page
        self._has_history = True

    def stop(self, reason: str = "user") -> None:
        self._binding.stop(reason)

    def reset_timer(self, time: Optional[float] = None, idle: Optional[float] = None) -> None:
        self._binding.reset_timer(time=time, idle=idle)

    async def go_to(self, page_id: str) -> None:
        page = find_by_id(self._pages, page_id)
        if page is None:
            raise NavigationError(f"Невозможно перейти на страницу '{page_id}': такой страницы нет.")
        self.set_current_page(page)
        await self.update()

    async def back(self) -> None:
        if not self.can_back:
            raise NavigationError("Невозможно вернуться назад: нет предыдущей страницы.")
        self._current_page, self._last_page = self._last_page, self._current_page
        await self.update()

    async def update(self, only_message_content: bool = False) -> None:
        """
        Перерисовывает сообщение под текущую страницу. В полном режиме все
        реакции снимаются и ставятся заново: реакции страницы по порядку,
        back_emoji последним.
        """
        page = self._current_page
        if only_message_content:
            if page is not None:
                await self._bot_message.edit(page.content)
            return

        await self._bot_message.remove_all_reactions()
        if page is None:
            await asyncio.gather(*(self._bot_message.react(key) for key in self._pages))
            return

        await self._bot_message.edit(page.content)
        if page.reactions:
            await asyncio.gather(*(self._bot_message.react(key) for key in dict.fromkeys(page.reactions)))
        if page.back_emoji and page.back_emoji not in page.reactions:
            await self._bot_message.react(page.back_emoji)


class PaginatorController:
    """Листание плоского списка страниц по индексу."""

    def __init__(self, bot_message: BotMessage, binding: CollectorBinding, pages: List[Any], wrap: bool = False):
        self.bot_message = bot_message
        self.binding = binding
        self.pages = pages
        self.wrap = wrap
        self.index = 0

    @property
    def current_page(self) -> Any:
        return self.pages[self.index]

    @property
    def collector(self) -> Collector:
        return self.binding.collector

    def target_index(self, delta: int) -> int:
        if self.wrap:
            return (self.index + delta) % len(self.pages)
        return max(0, min(len(self.pages) - 1, self.index + delta))

    async def go_to(self, index: int) -> None:
        if not 0 <= index < len(self.pages):
            raise NavigationError(f"Страница с индексом {index} не существует (всего страниц: {len(self.pages)}).")
        if index == self.index:
            return
        self.index = index
        await self.bot_message.edit(self.current_page)

    async def move(self, delta: int) -> None:
        await self.go_to(self.target_index(delta))

    def stop(self, reason: str = "user") -> None:
        self.binding.stop(reason)

    def reset_timer(self, time: Optional[float] = None, idle: Optional[float] = None) -> None:
        self.binding.reset_timer(time=time, idle=idle)
