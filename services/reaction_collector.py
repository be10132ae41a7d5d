# services/reaction_collector.py
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

from config.settings import CollectorConfig
from services.collector import CollectorOptions
from services.controller import CollectorBinding, Controller, PaginatorController
from services.filters import emoji_matches, make_message_filter, make_reaction_filter, reaction_key
from services.transport import BotMessage, ChatUser, IncomingMessage, ReactionEvent
from utils.error_handler import ErrorHandler, handle_errors
from utils.navigation import collect_all_reaction_keys, has_message_handlers
from utils.validation import (
    MenuOptions, PaginatorOptions, QuestionOptions, YesNoOptions, validate_options
)

logger = logging.getLogger(__name__)


class ReactionCollector:
    """
    Точки входа интерактивных сообщений: меню по дереву страниц, пагинатор,
    вопрос с произвольными реакциями и вопрос да/нет.

    Опции передаются словарём (проверяется validate_options) или готовым
    объектом опций. Дополнительные позиционные аргументы уходят в колбэки.
    """

    def __init__(self, config: Optional[CollectorConfig] = None, error_handler: Optional[ErrorHandler] = None):
        self.config = config or CollectorConfig()
        self.error_handler = error_handler or ErrorHandler()

    async def _run_callback(self, callback: Callable[..., Any], *callback_args: Any, flow: str) -> None:
        """Колбэк страницы: ошибка логируется, сессия продолжается."""
        try:
            result = callback(*callback_args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.error_handler.log_error(e, context={'flow': flow, 'callback': getattr(callback, '__name__', repr(callback))})

    async def menu(self, options: Union[Mapping[str, Any], MenuOptions], *args: Any) -> Controller:
        opts: MenuOptions = validate_options(options, 'menu', self.config)
        bot_message, user, pages = opts.bot_message, opts.user, opts.pages

        all_reactions = list(dict.fromkeys([*pages.keys(), *collect_all_reaction_keys(pages)]))
        collector = bot_message.create_reaction_collector(make_reaction_filter(user, all_reactions), opts.collector_options)
        binding = CollectorBinding(collector)
        controller = Controller(bot_message, binding, pages)

        @handle_errors(self.error_handler, context={'flow': 'menu'})
        async def on_reaction(reaction: ReactionEvent):
            emoji = reaction_key(reaction.emoji)
            current = controller.current_page
            if current is not None and emoji == current.back_emoji and controller.can_back:
                await controller.back()
                return

            if current is not None and current.children:
                next_page = current.children.get(emoji)
            else:
                next_page = pages.get(emoji)

            if next_page is None:
                await reaction.remove_user(user.id)
            else:
                controller.set_current_page(next_page)
                if next_page.on_react is not None:
                    await self._run_callback(next_page.on_react, controller, reaction, *args, flow='menu.on_react')
                # колбэк мог сам сделать переход
                page = controller.current_page
                if page is not None and page.clear_reactions:
                    await bot_message.remove_all_reactions()
                elif page is not None and page.reactions:
                    await bot_message.remove_all_reactions()
                    await asyncio.gather(*(bot_message.react(r) for r in page.reactions))
                else:
                    await reaction.remove_user(user.id)

            await controller.update(only_message_content=True)

        @handle_errors(self.error_handler, context={'flow': 'menu.end'})
        async def on_end(collected, reason):
            logger.debug(f"Меню завершено (причина: {reason}), очищаем реакции.")
            await bot_message.remove_all_reactions()

        collector.on("collect", on_reaction)
        await asyncio.gather(*(bot_message.react(r) for r in pages))
        collector.on("end", on_end)

        if has_message_handlers(pages):
            messages_collector = bot_message.create_message_collector(make_message_filter(user), opts.collector_options)
            binding.attach_messages_collector(messages_collector)

            @handle_errors(self.error_handler, context={'flow': 'menu.message'})
            async def on_message(message: IncomingMessage):
                if message.deletable:
                    await message.delete()
                page = controller.current_page
                if page is not None and page.on_message is not None:
                    await self._run_callback(page.on_message, controller, message, *args, flow='menu.on_message')

            messages_collector.on("collect", on_message)

        logger.info(f"Меню запущено для пользователя {user.id}: страниц верхнего уровня {len(pages)}, реакций {len(all_reactions)}")
        return controller

    async def paginator(self, options: Union[Mapping[str, Any], PaginatorOptions]) -> PaginatorController:
        opts: PaginatorOptions = validate_options(options, 'paginator', self.config)
        controller: Optional[PaginatorController] = None

        async def on_reaction(key: str, reaction: ReactionEvent):
            await controller.move(opts.reactions[key])

        await opts.bot_message.edit(opts.pages[0])
        binding = await self._start_reaction_collector(
            opts.bot_message, opts.user, opts.reactions, opts.collector_options,
            delete_reaction=opts.delete_reaction, delete_all_on_end=opts.delete_all_on_end,
            dispatch=on_reaction, isolate_errors=True,
        )
        controller = PaginatorController(opts.bot_message, binding, opts.pages, wrap=opts.wrap)
        return controller

    async def question(self, options: Union[Mapping[str, Any], QuestionOptions], *args: Any) -> CollectorBinding:
        opts: QuestionOptions = validate_options(options, 'question', self.config)

        async def on_reaction(key: str, reaction: ReactionEvent):
            callback = opts.reactions.get(key)
            if callback is None:
                return
            result = callback(reaction, *args)
            if inspect.isawaitable(result):
                await result

        return await self._start_reaction_collector(
            opts.bot_message, opts.user, opts.reactions, opts.collector_options,
            delete_reaction=opts.delete_reaction, delete_all_on_end=opts.delete_all_on_end,
            dispatch=on_reaction, isolate_errors=False,
        )

    async def yes_no_question(self, options: Union[Mapping[str, Any], YesNoOptions]) -> bool:
        opts: YesNoOptions = validate_options(options, 'yes_no', self.config)
        bot_message, user, reactions = opts.bot_message, opts.user, opts.reactions

        await asyncio.gather(*(bot_message.react(r) for r in reactions))
        collector = bot_message.create_reaction_collector(make_reaction_filter(user, reactions), opts.collector_options)
        collected = await collector.wait()

        if not collected:
            logger.debug(f"Вопрос да/нет для пользователя {user.id} завершился без ответа ({collector.end_reason}).")
            if opts.delete_all_on_end:
                await bot_message.remove_all_reactions()
            return False

        answer = collected[0]
        if opts.delete_reaction:
            await answer.remove_user(user.id)
        if opts.delete_all_on_end:
            await bot_message.remove_all_reactions()
        return emoji_matches(answer.emoji, reactions[0])

    async def _start_reaction_collector(self,
                                        bot_message: BotMessage,
                                        user: ChatUser,
                                        reactions: Iterable[str],
                                        collector_options: CollectorOptions,
                                        delete_reaction: bool,
                                        delete_all_on_end: bool,
                                        dispatch: Callable[[str, ReactionEvent], Awaitable[Any]],
                                        isolate_errors: bool) -> CollectorBinding:
        keys = list(reactions)
        await asyncio.gather(*(bot_message.react(r) for r in keys))
        collector = bot_message.create_reaction_collector(make_reaction_filter(user, keys), collector_options)

        async def on_reaction(reaction: ReactionEvent):
            if delete_reaction:
                await reaction.remove_user(user.id)
            key = reaction.emoji.id if reaction.emoji.id in keys else reaction.emoji.name
            await dispatch(key, reaction)

        if isolate_errors:
            on_reaction = handle_errors(self.error_handler, context={'flow': 'paginator'})(on_reaction)
        collector.on("collect", on_reaction)

        if delete_all_on_end:
            async def on_end(collected, reason):
                await bot_message.remove_all_reactions()
            collector.on("end", on_end)
        return CollectorBinding(collector)
