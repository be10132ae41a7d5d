#!/usr/bin/env python3
"""
Reaction Menus Bot - демонстрационный бот для меню на реакциях
"""
import asyncio
import logging
import sys
from typing import Optional, Set

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.types import BotCommand

from config.settings import load_config, setup_logging, CollectorConfig
from handlers.collector_router import collector_router
from handlers.demo_commands import demo_router
from handlers.telegram_transport import CollectorRegistry
from services.reaction_collector import ReactionCollector
from utils.error_handler import ConfigurationError, ErrorHandler

logger = logging.getLogger(__name__)


async def setup_bot_commands(bot: Bot):
    commands = [
        BotCommand(command="menu", description="🏡 Меню с вложенными страницами"),
        BotCommand(command="help", description="📖 Справка (пагинатор)"),
        BotCommand(command="poll", description="🗳️ Голосование реакциями"),
        BotCommand(command="confirm", description="✅ Вопрос да/нет"),
    ]
    try:
        await bot.set_my_commands(commands)
        logger.info("✅ Команды бота настроены")
    except Exception as e_commands:
        logger.error(f"Ошибка настройки команд бота: {e_commands}")


class ReactionMenusBot:
    def __init__(self, bot_config: CollectorConfig):
        self.config = bot_config
        self.bot = Bot(token=self.config.telegram_bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
        self.dp = Dispatcher()

        self.error_handler = ErrorHandler()
        self.collector_registry = CollectorRegistry()
        self.reaction_collector = ReactionCollector(self.config, self.error_handler)
        self.background_tasks: Set[asyncio.Task] = set()

        self.dp.workflow_data.update({
            'bot_instance': self,
            'collector_registry': self.collector_registry,
            'reaction_collector': self.reaction_collector,
        })
        self.dp.include_router(collector_router)
        self.dp.include_router(demo_router)

    async def start(self):
        try:
            await setup_bot_commands(self.bot)
            bot_info = await self.bot.get_me()
            logger.info(f"🚀 Reaction Menus Bot @{bot_info.username} готов к работе!")
            allowed_updates_resolved = self.dp.resolve_used_update_types()
            logger.info(f"Allowed updates for polling: {allowed_updates_resolved}")
            await self.dp.start_polling(self.bot, allowed_updates=allowed_updates_resolved)
        except ConfigurationError as ce:
            logger.critical(f"КРИТИЧЕСКАЯ ОШИБКА КОНФИГУРАЦИИ ПРИ ЗАПУСКЕ: {ce}")
            sys.exit(1)

    async def cleanup(self):
        logger.info("🧹 Завершение работы бота и очистка ресурсов...")
        for task in list(self.background_tasks):
            task.cancel()
        if self.background_tasks:
            await asyncio.gather(*self.background_tasks, return_exceptions=True)
        stats = self.error_handler.get_error_stats()
        if stats['total_errors']:
            logger.info(f"Ошибок за сессию: {stats['total_errors']} (навигация: {stats['navigation_errors']})")
        if self.bot and self.bot.session:
            await self.bot.session.close()
        logger.info("🧼 Ресурсы успешно очищены. Бот остановлен.")


async def main_bot_runner():
    config: Optional[CollectorConfig] = None
    try:
        config = load_config()
        setup_logging(config)
    except ConfigurationError as e:
        print(f"CRITICAL CONFIGURATION ERROR: {e}")
        logging.basicConfig(level=logging.ERROR, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
        logging.critical(f"CRITICAL CONFIGURATION ERROR: {e}", exc_info=True)
        sys.exit(1)

    bot_instance = ReactionMenusBot(bot_config=config)
    try:
        await bot_instance.start()
    except KeyboardInterrupt:
        logger.info("👋 Получен сигнал KeyboardInterrupt. Завершение работы...")
    finally:
        await bot_instance.cleanup()


if __name__ == "__main__":
    try:
        asyncio.run(main_bot_runner())
    except KeyboardInterrupt:
        print("\n👋 Бот остановлен пользователем (из __main__)")
