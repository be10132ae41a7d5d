# services/collector.py
import asyncio
import inspect
import logging
from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from utils.error_handler import ValidationError

logger = logging.getLogger(__name__)

FilterFunc = Callable[[Any], Union[bool, Awaitable[bool]]]

COLLECTOR_EVENTS = ("collect", "dispose", "end")


@dataclass
class CollectorOptions:
    """Ограничения подписки. Время в секундах, None - без ограничения."""
    max: Optional[int] = None
    max_processed: Optional[int] = None
    idle: Optional[float] = None
    time: Optional[float] = None
    dispose: bool = False

    @classmethod
    def from_value(cls, value: Union['CollectorOptions', Mapping[str, Any], None]) -> 'CollectorOptions':
        if value is None:
            return cls()
        if isinstance(value, CollectorOptions):
            value = {f.name: getattr(value, f.name) for f in fields(value)}
        if not isinstance(value, Mapping):
            raise ValidationError(f"collector_options должен быть dict или CollectorOptions, получено: {type(value).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = set(value) - known
        if unknown:
            raise ValidationError(f"Неизвестные поля collector_options: {sorted(unknown)}")
        for name in ('max', 'max_processed'):
            limit = value.get(name)
            if limit is not None and (not isinstance(limit, int) or limit <= 0):
                raise ValidationError(f"collector_options.{name} должен быть положительным целым, получено: {limit!r}")
        for name in ('idle', 'time'):
            seconds = value.get(name)
            if seconds is not None and (not isinstance(seconds, (int, float)) or seconds <= 0):
                raise ValidationError(f"collector_options.{name} должен быть положительным числом секунд, получено: {seconds!r}")
        dispose = value.get('dispose', False)
        if not isinstance(dispose, bool):
            raise ValidationError(f"collector_options.dispose должен быть bool, получено: {dispose!r}")
        return cls(**value)

    def merged(self, **defaults: Any) -> 'CollectorOptions':
        """Копия, где незаданные (None) поля заполнены из defaults."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for name, default in defaults.items():
            if values.get(name) is None:
                values[name] = default
        return CollectorOptions(**values)


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class Collector:
    """
    Подписка на поток событий (реакции или сообщения) с лимитами по количеству
    и времени. Транспорт кормит её через handle_collect()/handle_dispose().

    События одной подписки обрабатываются строго по очереди: следующий
    handle_collect() ждёт, пока обработчики предыдущего не завершатся.
    Исключения обработчиков 'collect' не перехватываются и уходят тому,
    кто вызвал handle_collect().
    """

    def __init__(self, filter: FilterFunc, options: Union[CollectorOptions, Mapping[str, Any], None] = None, name: str = "collector"):
        self.filter = filter
        self.options = CollectorOptions.from_value(options)
        self.name = name
        self.collected: List[Any] = []
        self.ended = False
        self.end_reason: Optional[str] = None

        self._handlers: Dict[str, List[Callable[..., Any]]] = {event: [] for event in COLLECTOR_EVENTS}
        self._lock = asyncio.Lock()
        self._processed = 0
        self._finished = asyncio.Event()
        self._end_task: Optional[asyncio.Task] = None

        self._loop = asyncio.get_running_loop()
        self._timeout: Optional[asyncio.TimerHandle] = None
        self._idle_timeout: Optional[asyncio.TimerHandle] = None
        if self.options.time:
            self._timeout = self._loop.call_later(self.options.time, self.stop, "time")
        if self.options.idle:
            self._idle_timeout = self._loop.call_later(self.options.idle, self.stop, "idle")

    def on(self, event: str, handler: Callable[..., Any]) -> 'Collector':
        if event not in self._handlers:
            raise ValueError(f"Неизвестное событие коллектора: '{event}'. Доступны: {', '.join(COLLECTOR_EVENTS)}")
        self._handlers[event].append(handler)
        return self

    async def handle_collect(self, item: Any) -> bool:
        """Пропускает item через фильтр и, если подошёл, отдаёт обработчикам 'collect'."""
        if self.ended:
            return False
        async with self._lock:
            if self.ended:
                return False
            self._processed += 1
            if not await _maybe_await(self.filter(item)):
                self._check_processed_limit()
                return False

            self.collected.append(item)
            self._restart_idle_timer()
            try:
                for handler in list(self._handlers["collect"]):
                    await _maybe_await(handler(item))
            finally:
                if self.options.max and len(self.collected) >= self.options.max:
                    self.stop("limit")
                else:
                    self._check_processed_limit()
            return True

    async def handle_dispose(self, item: Any) -> bool:
        """Снятие реакции пользователем; учитывается только при options.dispose."""
        if self.ended or not self.options.dispose:
            return False
        async with self._lock:
            if item not in self.collected or not await _maybe_await(self.filter(item)):
                return False
            self.collected.remove(item)
            for handler in list(self._handlers["dispose"]):
                await _maybe_await(handler(item))
            return True

    def _check_processed_limit(self):
        if self.options.max_processed and self._processed >= self.options.max_processed:
            self.stop("processedLimit")

    def _restart_idle_timer(self):
        if self._idle_timeout is not None:
            self._idle_timeout.cancel()
            self._idle_timeout = self._loop.call_later(self.options.idle, self.stop, "idle")

    def stop(self, reason: str = "user") -> None:
        """Останавливает подписку; обработчики 'end' запускаются отдельной задачей."""
        if self.ended:
            return
        self.ended = True
        self.end_reason = reason
        for timer in (self._timeout, self._idle_timeout):
            if timer is not None:
                timer.cancel()
        self._timeout = self._idle_timeout = None
        logger.debug(f"Коллектор '{self.name}' остановлен. Причина: {reason}, собрано: {len(self.collected)}")
        self._end_task = self._loop.create_task(self._emit_end(reason))
        self._end_task.add_done_callback(self._log_end_failure)

    async def _emit_end(self, reason: str):
        try:
            for handler in list(self._handlers["end"]):
                await _maybe_await(handler(self.collected, reason))
        finally:
            self._finished.set()

    def _log_end_failure(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Ошибка в обработчике завершения коллектора '{self.name}': {exc}", exc_info=exc)

    def reset_timer(self, time: Optional[float] = None, idle: Optional[float] = None) -> None:
        """Продлевает ограничения по времени, не трогая собранное."""
        if self.ended:
            return
        if self._timeout is not None:
            self._timeout.cancel()
            self._timeout = self._loop.call_later(time or self.options.time, self.stop, "time")
        if self._idle_timeout is not None:
            self._idle_timeout.cancel()
            self._idle_timeout = self._loop.call_later(idle or self.options.idle, self.stop, "idle")

    async def wait(self) -> List[Any]:
        """Ждёт завершения подписки (включая обработчики 'end') и возвращает собранное."""
        await self._finished.wait()
        return self.collected
