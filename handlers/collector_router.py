# handlers/collector_router.py
import logging

from aiogram import F, Router, types

from handlers.telegram_transport import (
    REACTION_CALLBACK_PREFIX, CollectorRegistry, TelegramIncomingMessage, TelegramReactionEvent
)

logger = logging.getLogger(__name__)
collector_router = Router(name="collector_router")


@collector_router.callback_query(F.data.startswith(REACTION_CALLBACK_PREFIX))
async def reaction_button_handler(callback: types.CallbackQuery, collector_registry: CollectorRegistry):
    if callback.message is None:
        await callback.answer()
        return
    chat_id, message_id = callback.message.chat.id, callback.message.message_id
    bot_message = collector_registry.bot_message(chat_id, message_id)
    collectors = collector_registry.reaction_collectors(chat_id, message_id)
    if bot_message is None or not collectors:
        logger.debug(f"Нажатие {callback.data} по неактивному меню {chat_id}:{message_id}")
        await callback.answer("Это меню больше не активно.")
        return

    event = TelegramReactionEvent(callback, bot_message)
    try:
        for collector in collectors:
            await collector.handle_collect(event)
    finally:
        await event.acknowledge()


async def has_message_collectors(message: types.Message, collector_registry: CollectorRegistry) -> bool:
    # Команды не перехватываем, чтобы бот оставался управляемым во время меню
    if message.text and message.text.startswith("/"):
        return False
    return bool(collector_registry.message_collectors(message.chat.id))


@collector_router.message(has_message_collectors)
async def collected_message_handler(message: types.Message, collector_registry: CollectorRegistry):
    incoming = TelegramIncomingMessage(message, deletable=collector_registry.can_delete(message))
    for collector in collector_registry.message_collectors(message.chat.id):
        await collector.handle_collect(incoming)
