# utils/validation.py
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from config.settings import CollectorConfig
from services.collector import CollectorOptions
from services.transport import BotMessage, ChatUser
from utils.error_handler import ValidationError
from utils.navigation import PageTree, check_unique_ids, tree_from_dict

logger = logging.getLogger(__name__)


@dataclass
class MenuOptions:
    bot_message: BotMessage
    user: ChatUser
    pages: PageTree
    collector_options: CollectorOptions = field(default_factory=CollectorOptions)


@dataclass
class PaginatorOptions:
    bot_message: BotMessage
    user: ChatUser
    pages: List[Any]
    reactions: Dict[str, int]
    collector_options: CollectorOptions = field(default_factory=CollectorOptions)
    delete_reaction: bool = True
    delete_all_on_end: bool = True
    wrap: bool = False


@dataclass
class QuestionOptions:
    bot_message: BotMessage
    user: ChatUser
    reactions: Dict[str, Optional[Callable[..., Any]]]
    collector_options: CollectorOptions = field(default_factory=CollectorOptions)
    delete_reaction: bool = True
    delete_all_on_end: bool = True


@dataclass
class YesNoOptions:
    bot_message: BotMessage
    user: ChatUser
    reactions: List[str]
    collector_options: CollectorOptions = field(default_factory=CollectorOptions)
    delete_reaction: bool = True
    delete_all_on_end: bool = True


AnyOptions = Union[MenuOptions, PaginatorOptions, QuestionOptions, YesNoOptions]

_OPTION_TYPES = {
    'menu': MenuOptions,
    'paginator': PaginatorOptions,
    'question': QuestionOptions,
    'yes_no': YesNoOptions,
}

_ALLOWED_KEYS = {
    'menu': {'bot_message', 'user', 'pages', 'collector_options'},
    'paginator': {'bot_message', 'user', 'pages', 'reactions', 'collector_options',
                  'delete_reaction', 'delete_all_on_end', 'wrap'},
    'question': {'bot_message', 'user', 'reactions', 'collector_options', 'delete_reaction', 'delete_all_on_end'},
    'yes_no': {'bot_message', 'user', 'reactions', 'collector_options', 'delete_reaction', 'delete_all_on_end'},
}

_REQUIRED_KEYS = {
    'menu': ('bot_message', 'user', 'pages'),
    'paginator': ('bot_message', 'user', 'pages'),
    'question': ('bot_message', 'user', 'reactions'),
    'yes_no': ('bot_message', 'user'),
}


def _require_bool(options: Mapping[str, Any], key: str, default: bool) -> bool:
    value = options.get(key, default)
    if not isinstance(value, bool):
        raise ValidationError(f"Опция '{key}' должна быть bool, получено: {value!r}")
    return value


def _validate_paginator_reactions(raw: Any, config: CollectorConfig) -> Dict[str, int]:
    if raw is None:
        return {config.paginator_prev_emoji: -1, config.paginator_next_emoji: 1}
    if not isinstance(raw, Mapping) or not raw:
        raise ValidationError("Опция 'reactions' пагинатора должна быть непустым словарём реакция -> сдвиг")
    for key, delta in raw.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(f"Ключ реакции пагинатора должен быть непустой строкой, получено: {key!r}")
        if not isinstance(delta, int) or isinstance(delta, bool):
            raise ValidationError(f"Сдвиг для реакции '{key}' должен быть целым числом, получено: {delta!r}")
    return dict(raw)


def _validate_question_reactions(raw: Any) -> Dict[str, Optional[Callable[..., Any]]]:
    if not isinstance(raw, Mapping) or not raw:
        raise ValidationError("Опция 'reactions' должна быть непустым словарём реакция -> функция")
    for key, callback in raw.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(f"Ключ реакции должен быть непустой строкой, получено: {key!r}")
        if callback is not None and not callable(callback):
            raise ValidationError(f"Обработчик реакции '{key}' должен быть вызываемым объектом или None")
    return dict(raw)


def _validate_yes_no_reactions(raw: Any, config: CollectorConfig) -> List[str]:
    if raw is None:
        return list(config.yes_no_reactions)
    if isinstance(raw, str) or not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise ValidationError(f"Опция 'reactions' должна содержать ровно две реакции (да, нет), получено: {raw!r}")
    if not all(isinstance(r, str) and r for r in raw) or raw[0] == raw[1]:
        raise ValidationError(f"Реакции да/нет должны быть двумя разными непустыми строками, получено: {raw!r}")
    return list(raw)


def validate_options(options: Union[Mapping[str, Any], AnyOptions], kind: str,
                     config: Optional[CollectorConfig] = None) -> AnyOptions:
    """
    Проверяет опции точки входа и возвращает типизированный объект опций
    со всеми значениями по умолчанию. kind: 'menu', 'paginator', 'question', 'yes_no'.
    """
    if kind not in _OPTION_TYPES:
        raise ValueError(f"Неизвестный тип опций: '{kind}'")
    if isinstance(options, _OPTION_TYPES[kind]):
        # Готовый объект проходит те же проверки и получает те же умолчания
        options = {f.name: getattr(options, f.name) for f in fields(options)}
    if not isinstance(options, Mapping):
        raise ValidationError(f"Опции должны быть словарём, получено: {type(options).__name__}")

    unknown = set(options) - _ALLOWED_KEYS[kind]
    if unknown:
        raise ValidationError(f"Неизвестные опции для '{kind}': {sorted(unknown)}")
    missing = [key for key in _REQUIRED_KEYS[kind] if options.get(key) is None]
    if missing:
        raise ValidationError(f"Не указаны обязательные опции для '{kind}': {', '.join(missing)}")

    bot_message = options['bot_message']
    if not isinstance(bot_message, BotMessage):
        raise ValidationError(f"bot_message не поддерживает нужные операции (edit, react, ...): {type(bot_message).__name__}")
    user = options['user']
    if getattr(user, 'id', None) is None:
        raise ValidationError("user должен иметь атрибут id")

    config = config or CollectorConfig()
    collector_options = CollectorOptions.from_value(options.get('collector_options'))

    if kind == 'menu':
        raw_pages = options['pages']
        if not isinstance(raw_pages, Mapping) or not raw_pages:
            raise ValidationError("Опция 'pages' меню должна быть непустым словарём реакция -> страница")
        pages = tree_from_dict(raw_pages)
        check_unique_ids(pages)
        return MenuOptions(
            bot_message=bot_message, user=user, pages=pages,
            collector_options=collector_options.merged(idle=config.collector_idle_sec, time=config.collector_time_sec),
        )

    delete_reaction = _require_bool(options, 'delete_reaction', True)
    delete_all_on_end = _require_bool(options, 'delete_all_on_end', True)

    if kind == 'paginator':
        pages = options['pages']
        if isinstance(pages, (str, bytes, Mapping)) or not hasattr(pages, '__len__'):
            raise ValidationError("Опция 'pages' пагинатора должна быть последовательностью страниц")
        if len(pages) == 0:
            raise ValidationError("Опция 'pages' пуста: пагинатору нечего показывать")
        return PaginatorOptions(
            bot_message=bot_message, user=user, pages=list(pages),
            reactions=_validate_paginator_reactions(options.get('reactions'), config),
            collector_options=collector_options.merged(idle=config.collector_idle_sec, time=config.collector_time_sec),
            delete_reaction=delete_reaction, delete_all_on_end=delete_all_on_end,
            wrap=_require_bool(options, 'wrap', False),
        )

    if kind == 'question':
        return QuestionOptions(
            bot_message=bot_message, user=user,
            reactions=_validate_question_reactions(options['reactions']),
            collector_options=collector_options.merged(idle=config.collector_idle_sec, time=config.collector_time_sec),
            delete_reaction=delete_reaction, delete_all_on_end=delete_all_on_end,
        )

    return YesNoOptions(
        bot_message=bot_message, user=user,
        reactions=_validate_yes_no_reactions(options.get('reactions'), config),
        collector_options=collector_options.merged(max=1, time=config.yes_no_time_sec),
        delete_reaction=delete_reaction, delete_all_on_end=delete_all_on_end,
    )
