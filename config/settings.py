import os
from dataclasses import dataclass, field
from typing import Optional, List
import logging
import sys
from dotenv import load_dotenv

from utils.error_handler import ConfigurationError

# Загружаем переменные из .env файла в окружение
load_dotenv()


def _optional_float(env_name: str, default: Optional[str] = None) -> Optional[float]:
    raw = os.getenv(env_name, default)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"Переменная {env_name} должна быть числом, получено: '{raw}'")


@dataclass
class CollectorConfig:
    """Конфигурация бота и значения по умолчанию для коллекторов"""
    telegram_bot_token: Optional[str] = field(default_factory=lambda: os.getenv("TELEGRAM_BOT_TOKEN"))

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_file: str = field(default_factory=lambda: os.getenv("LOG_FILE", ""))

    # Таймауты в секундах; None означает "без ограничения"
    collector_idle_sec: Optional[float] = field(default_factory=lambda: _optional_float("COLLECTOR_IDLE_SEC", "120"))
    collector_time_sec: Optional[float] = field(default_factory=lambda: _optional_float("COLLECTOR_TIME_SEC"))
    yes_no_time_sec: Optional[float] = field(default_factory=lambda: _optional_float("YES_NO_TIME_SEC", "60"))

    yes_no_reactions: List[str] = field(default_factory=list)
    paginator_prev_emoji: str = field(default_factory=lambda: os.getenv("PAGINATOR_PREV_EMOJI", "◀️"))
    paginator_next_emoji: str = field(default_factory=lambda: os.getenv("PAGINATOR_NEXT_EMOJI", "▶️"))

    def __post_init__(self):
        if not self.yes_no_reactions:
            raw = os.getenv("YES_NO_REACTIONS", "✅,❌")
            self.yes_no_reactions = [r.strip() for r in raw.split(',') if r.strip()]
        if len(self.yes_no_reactions) != 2:
            raise ConfigurationError(
                f"YES_NO_REACTIONS должен содержать ровно две реакции через запятую, получено: {self.yes_no_reactions}"
            )

        log_dir = os.path.dirname(self.log_file)
        if log_dir and not os.path.exists(log_dir):
            try:
                os.makedirs(log_dir, exist_ok=True)
                logging.info(f"Создана директория для логов: {os.path.abspath(log_dir)}")
            except OSError as e:
                logging.error(f"Не удалось создать директорию для логов {log_dir}: {e}")


def load_config(require_token: bool = True) -> CollectorConfig:
    """Загружает конфигурацию из переменных окружения (.env уже загружен через load_dotenv())."""
    try:
        config = CollectorConfig()
    except ConfigurationError:
        raise
    except Exception as e:
        error_msg = f"Непредвиденная ошибка загрузки конфигурации: {e}"
        print(f"CRITICAL ERROR: {error_msg}")
        raise ConfigurationError(error_msg) from e

    if require_token and not config.telegram_bot_token:
        error_message = "Переменная окружения TELEGRAM_BOT_TOKEN не найдена или пуста. Пожалуйста, проверьте ваш .env файл."
        print(f"CRITICAL CONFIGURATION ERROR: {error_message}")
        raise ConfigurationError(error_message)
    return config


def setup_logging(config: CollectorConfig):
    """Настраивает систему логирования на основе конфигурации."""
    log_level_int = getattr(logging, config.log_level, logging.INFO)
    if not isinstance(log_level_int, int):
        print(f"WARNING: Некорректный LOG_LEVEL: {config.log_level}. Установлен INFO.")
        log_level_int = logging.INFO

    handlers_list = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        try:
            file_handler = logging.FileHandler(config.log_file, encoding='utf-8')
            handlers_list.append(file_handler)
        except OSError as e_fh:
            print(f"ERROR: Не удалось создать FileHandler для {config.log_file}: {e_fh}. Логи будут только в stdout.")

    # Очищаем существующие хендлеры корневого логгера, чтобы избежать дублирования
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    logging.basicConfig(
        level=log_level_int,
        format='%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s',
        handlers=handlers_list,
    )

    # Уменьшаем уровень логирования для слишком "шумных" библиотек
    noisy_loggers = ["aiogram.event", "aiohttp.access"]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return logging.getLogger(__name__)
