import logging
import os
from logging.handlers import RotatingFileHandler
from weather_bot.core.config import settings

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "telegram", "pymongo")

class LoggerConfig:
    """
    Sets up the bot logger: rotating file + console, one shared format.
    Every component logs through the module level `logs` instance.
    """
    def __init__(
        self, env=20, logger_name="WeatherBot", log_directory="logs", log_file="bot.log"
    ):
        try:
            self.logger_name = logger_name
            self.log_directory = os.path.abspath(log_directory)
            self.log_file_path = os.path.join(self.log_directory, log_file)
            self.env = env
            self.log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

            self.logger = logging.getLogger(self.logger_name)
            self.setup_logger()
        except Exception as e:
            print(f"Failed to initialize bot logger: {str(e)}")

    def setup_logger(self):
        try:
            os.makedirs(self.log_directory, exist_ok=True)
            formatter = logging.Formatter(self.log_format)

            file_handler = RotatingFileHandler(
                self.log_file_path, backupCount=5, maxBytes=1024 * 1024 * 10, encoding="utf-8"
            )
            console_handler = logging.StreamHandler()
            for handler in (file_handler, console_handler):
                handler.setLevel(self.env)
                handler.setFormatter(formatter)

            # Re-imports in tests must not stack handlers
            if not self.logger.handlers:
                self.logger.addHandler(file_handler)
                self.logger.addHandler(console_handler)

            self.logger.setLevel(self.env)
            self.logger.propagate = False

            for name in NOISY_LOGGERS:
                logging.getLogger(name).setLevel(max(self.env, logging.WARNING))

        except Exception as e:
            print(f"Failed to setup bot logger handlers: {str(e)}")

    def log(self, level: int, message: str, extra: dict = None, exc_info: bool = False):
        """Log `message`, appending `extra` as key/value context."""
        if extra:
            message = f"{message} | {extra}"
        self.logger.log(level, message, exc_info=exc_info)

# Initialize Logger
logs = LoggerConfig(
    env=settings.LOGGER,
    logger_name="WEATHER-BOT",
    log_directory="logs",
    log_file="bot.log"
)
