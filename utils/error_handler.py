# utils/error_handler.py
import inspect
import json
import logging
import traceback
from datetime import datetime, timezone
from functools import wraps
from typing import Optional, Dict, Any, Callable, Union

# Основной логгер для этого модуля
logger = logging.getLogger(__name__)

# --- Базовые классы исключений для коллекторов ---

class CollectorError(Exception):
    """
    Базовый класс для всех ошибок слоя интерактивных меню.

    Attributes:
        message (str): Внутреннее сообщение об ошибке для логов и разработчиков.
        error_code (Optional[str]): Уникальный код ошибки для идентификации.
        user_message (Optional[str]): Сообщение, которое можно показать пользователю.
    """
    def __init__(self, message: str, error_code: Optional[str] = None, user_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.user_message = user_message or "Что-то пошло не так с этим меню. Попробуйте открыть его заново."

class ValidationError(CollectorError):
    """Невалидные, отсутствующие или неизвестные опции. Бросается до создания коллектора."""
    def __init__(self, message: str, error_code: str = 'INVALID_OPTIONS', user_message: Optional[str] = None):
        super().__init__(message, error_code, user_message)

class NavigationError(CollectorError):
    """Недопустимый переход: страница не найдена или некуда возвращаться."""
    def __init__(self, message: str, error_code: str = 'INVALID_NAVIGATION', user_message: Optional[str] = None):
        super().__init__(message, error_code, user_message)

class ConfigurationError(CollectorError):
    """Ошибка, указывающая на проблемы с конфигурацией приложения."""
    def __init__(self, message: str, error_code: str = 'CONFIGURATION_ERROR', user_message: Optional[str] = None):
        super().__init__(message, error_code, user_message)

# --- Централизованный обработчик ошибок ---

class ErrorHandler:
    """
    Централизованный обработчик ошибок. Логирует ошибки, пойманные на границе
    обработки события (колбэки страниц, сетевые вызовы), и собирает статистику.
    """

    def __init__(self):
        self.error_stats: Dict[str, Any] = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'total_errors': 0, 'validation_errors': 0, 'navigation_errors': 0,
            'configuration_errors': 0, 'unknown_errors': 0,
            'last_error_at': None, 'last_reset_at': datetime.now(timezone.utc)
        }

    def log_error(self,
                  error: Exception,
                  context: Optional[Dict[str, Any]] = None,
                  user_id: Optional[Union[int, str]] = None,
                  severity: str = 'ERROR') -> str:
        """
        Логирует ошибку, обновляет статистику и возвращает уникальный ID ошибки.
        """
        timestamp_now = datetime.now(timezone.utc)
        error_id = f"ERR_{timestamp_now.strftime('%Y%m%d_%H%M%S_%f')}_{hash(str(error) + str(context)) % 1000000:06d}"

        error_info = {
            'error_id': error_id, 'error_type': type(error).__name__,
            'error_message': str(error), 'user_id': user_id,
            'context': context or {}, 'timestamp': timestamp_now.isoformat(),
            'traceback': ''.join(traceback.format_exception(type(error), error, error.__traceback__, limit=10))
        }

        self.error_stats['total_errors'] += 1
        self.error_stats['last_error_at'] = error_info['timestamp']

        log_message_parts = [
            f"Error Logged [{error_id}]",
            f"User={user_id}" if user_id else "",
            f"Type={error_info['error_type']}",
            f"Msg='{error_info['error_message']}'"
        ]
        if context:
            try:
                context_str = json.dumps(context, default=str, ensure_ascii=False, indent=None)
                log_message_parts.append(f"Context={context_str}")
            except TypeError:
                log_message_parts.append("Context_Type_Error (unable_to_serialize)")

        log_message = ", ".join(filter(None, log_message_parts))

        if isinstance(error, ValidationError): self.error_stats['validation_errors'] += 1
        elif isinstance(error, NavigationError): self.error_stats['navigation_errors'] += 1
        elif isinstance(error, ConfigurationError): self.error_stats['configuration_errors'] += 1
        else: self.error_stats['unknown_errors'] += 1

        log_func_to_call = getattr(logger, severity.lower(), logger.error)
        log_func_to_call(log_message, extra={'error_info': error_info})
        return error_id

    def get_error_stats(self) -> Dict[str, Any]:
        return self.error_stats.copy()

    def reset_error_stats(self):
        self.error_stats = self._empty_stats()
        logger.info("Статистика ошибок сброшена.")

# --- Декоратор для изоляции ошибок на границе события ---
def handle_errors(error_handler: ErrorHandler, log_level: str = "ERROR", context: Optional[Dict[str, Any]] = None):
    """
    Декоратор для обработчиков событий коллектора: любое исключение логируется
    через error_handler, а сессия продолжает работу (обработчик возвращает None).
    """
    def decorator(func: Callable):
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"handle_errors ожидает async-функцию, получено: {func!r}")

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                log_ctx = {'function': func.__name__, **(context or {})}
                user_id_ctx = None
                if args:
                    event_user = getattr(args[0], 'user', None) or getattr(args[0], 'from_user', None)
                    user_id_ctx = getattr(event_user, 'id', None)
                error_handler.log_error(e, context=log_ctx, user_id=user_id_ctx, severity=log_level.upper())
                return None

        return async_wrapper
    return decorator
