# utils/navigation.py
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Callable, Iterator, Mapping

from utils.error_handler import ValidationError

logger = logging.getLogger(__name__)

PageTree = Dict[str, 'Page']


@dataclass(eq=False)
class Page:
    """
    Страница меню: контент сообщения плюс реакции, которые на нём доступны.

    children - дочерние страницы по ключу реакции. on_react вызывается как
    on_react(controller, reaction_event, *args), on_message как
    on_message(controller, message, *args); оба могут быть корутинами.
    Сравнение страниц идёт по идентичности объекта.
    """
    content: Any = None
    id: Optional[str] = None
    reactions: List[str] = field(default_factory=list)
    back_emoji: Optional[str] = None
    clear_reactions: bool = False
    children: Dict[str, 'Page'] = field(default_factory=dict)
    on_react: Optional[Callable[..., Any]] = None
    on_message: Optional[Callable[..., Any]] = None

    @property
    def display_reactions(self) -> List[str]:
        """Реакции страницы в объявленном порядке, back_emoji последним."""
        keys = list(dict.fromkeys(self.reactions))
        if self.back_emoji and self.back_emoji not in keys:
            keys.append(self.back_emoji)
        return keys


_PAGE_FIELDS = {'content', 'id', 'reactions', 'back_emoji', 'clear_reactions', 'children', 'on_react', 'on_message'}


def page_from_dict(data: Mapping[str, Any], path: str = "") -> Page:
    """Строит Page (рекурсивно) из вложенного словаря."""
    if isinstance(data, Page):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(f"Страница '{path}' должна быть Page или dict, получено: {type(data).__name__}")

    raw = dict(data)
    if 'pages' in raw:
        if 'children' in raw:
            raise ValidationError(f"Страница '{path}': нельзя указывать одновременно 'pages' и 'children'")
        raw['children'] = raw.pop('pages')

    unknown = set(raw) - _PAGE_FIELDS
    if unknown:
        raise ValidationError(f"Страница '{path}': неизвестные поля {sorted(unknown)}")

    reactions = raw.get('reactions') or []
    if isinstance(reactions, str) or not all(isinstance(r, str) for r in reactions):
        raise ValidationError(f"Страница '{path}': 'reactions' должен быть списком строк")
    if len(set(reactions)) != len(reactions):
        raise ValidationError(f"Страница '{path}': реакции страницы должны быть уникальны")

    for callback_name in ('on_react', 'on_message'):
        callback = raw.get(callback_name)
        if callback is not None and not callable(callback):
            raise ValidationError(f"Страница '{path}': '{callback_name}' должен быть вызываемым объектом")

    children_raw = raw.get('children') or {}
    if not isinstance(children_raw, Mapping):
        raise ValidationError(f"Страница '{path}': 'children' должен быть словарём ключ реакции -> страница")

    return Page(
        content=raw.get('content'),
        id=raw.get('id'),
        reactions=list(reactions),
        back_emoji=raw.get('back_emoji'),
        clear_reactions=bool(raw.get('clear_reactions', False)),
        children=tree_from_dict(children_raw, path),
        on_react=raw.get('on_react'),
        on_message=raw.get('on_message'),
    )


def tree_from_dict(data: Mapping[str, Any], path: str = "") -> PageTree:
    tree: PageTree = {}
    for key, value in data.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(f"Ключ реакции в '{path}' должен быть непустой строкой, получено: {key!r}")
        tree[key] = page_from_dict(value, f"{path}/{key}")
    return tree


def iter_pages(tree: PageTree) -> Iterator[Page]:
    """Обход дерева страниц в глубину."""
    for page in tree.values():
        yield page
        if page.children:
            yield from iter_pages(page.children)


def find_by_id(tree: PageTree, page_id: str) -> Optional[Page]:
    for page in iter_pages(tree):
        if page.id is not None and page.id == page_id:
            return page
    return None


def collect_all_reaction_keys(tree: PageTree) -> List[str]:
    """
    Все реакции и back_emoji со всех уровней дерева, без дублей, в порядке обхода.
    Нужны фильтру меню, чтобы реакция любой страницы распознавалась заранее.
    """
    keys: Dict[str, None] = {}
    for page in iter_pages(tree):
        for reaction in page.reactions:
            keys[reaction] = None
        if page.back_emoji:
            keys[page.back_emoji] = None
    return list(keys)


def has_message_handlers(tree: PageTree) -> bool:
    return any(page.on_message is not None for page in iter_pages(tree))


def check_unique_ids(tree: PageTree) -> None:
    seen: Dict[str, Page] = {}
    for page in iter_pages(tree):
        if page.id is None:
            continue
        if page.id in seen and seen[page.id] is not page:
            logger.warning(f"Обнаружен дублирующийся ID страницы: {page.id}. Переход по ID найдёт первую страницу.")
        seen.setdefault(page.id, page)
