# handlers/demo_commands.py
import asyncio
import logging
from typing import TYPE_CHECKING

from aiogram import Router, types
from aiogram.filters import Command

from handlers.telegram_transport import TelegramBotMessage
from utils.navigation import Page

if TYPE_CHECKING:
    from main import ReactionMenusBot
    from services.controller import Controller

logger = logging.getLogger(__name__)
demo_router = Router(name="demo_commands")

HELP_PAGES = [
    "📖 <b>Справка 1/3</b>\n/menu - меню с вложенными страницами",
    "📖 <b>Справка 2/3</b>\n/poll - голосование реакциями",
    "📖 <b>Справка 3/3</b>\n/confirm - вопрос да/нет",
]


async def _remember_note(controller: 'Controller', message, *args):
    await controller.bot_message.edit(f"📝 Заметка сохранена: {message.text}\n\nНажмите ◀️, чтобы вернуться.")


def build_demo_pages() -> dict:
    settings_page = Page(
        id="settings",
        content="⚙️ Настройки\n🔔 - уведомления, ✍️ - оставить заметку",
        reactions=["🔔", "✍️", "◀️"],
        back_emoji="◀️",
        children={
            "🔔": Page(id="notifications", content="🔔 Уведомления включены.", reactions=["◀️"], back_emoji="◀️"),
            "✍️": Page(id="note", content="✍️ Напишите заметку одним сообщением.", reactions=["◀️"],
                       back_emoji="◀️", on_message=_remember_note),
        },
    )
    about_page = Page(id="about", content="ℹ️ Меню управляется кнопками-реакциями.", reactions=["◀️"], back_emoji="◀️")
    return {"⚙️": settings_page, "ℹ️": about_page}


@demo_router.message(Command("menu"))
async def menu_command_handler(message: types.Message, bot_instance: 'ReactionMenusBot'):
    bot_message = await TelegramBotMessage.send(
        message.bot, message.chat.id, "🏡 Главное меню: выберите раздел.", bot_instance.collector_registry
    )
    await bot_instance.reaction_collector.menu({
        "bot_message": bot_message,
        "user": message.from_user,
        "pages": build_demo_pages(),
    })


@demo_router.message(Command("help"))
async def help_command_handler(message: types.Message, bot_instance: 'ReactionMenusBot'):
    bot_message = await TelegramBotMessage.send(
        message.bot, message.chat.id, HELP_PAGES[0], bot_instance.collector_registry
    )
    await bot_instance.reaction_collector.paginator({
        "bot_message": bot_message,
        "user": message.from_user,
        "pages": HELP_PAGES,
    })


@demo_router.message(Command("poll"))
async def poll_command_handler(message: types.Message, bot_instance: 'ReactionMenusBot'):
    votes = {"🍕": 0, "🍣": 0, "🥗": 0}
    bot_message = await TelegramBotMessage.send(
        message.bot, message.chat.id, "Что заказываем на обед?", bot_instance.collector_registry
    )

    def vote(reaction, *args):
        votes[reaction.emoji.name] += 1
        logger.info(f"Голос пользователя {reaction.user.id}: {reaction.emoji.name}. Итого: {votes}")

    await bot_instance.reaction_collector.question({
        "bot_message": bot_message,
        "user": message.from_user,
        "reactions": {key: vote for key in votes},
        "collector_options": {"time": 60},
    })


@demo_router.message(Command("confirm"))
async def confirm_command_handler(message: types.Message, bot_instance: 'ReactionMenusBot'):
    bot_message = await TelegramBotMessage.send(
        message.bot, message.chat.id, "Вы уверены?", bot_instance.collector_registry
    )

    async def wait_answer():
        if await bot_instance.reaction_collector.yes_no_question({"bot_message": bot_message, "user": message.from_user}):
            await message.answer("✅ Подтверждено!")
        else:
            await message.answer("❌ Отменено.")

    # Ответ придёт отдельным апдейтом, поэтому ждём его вне текущего хендлера
    task = asyncio.create_task(wait_answer())
    bot_instance.background_tasks.add(task)
    task.add_done_callback(bot_instance.background_tasks.discard)
