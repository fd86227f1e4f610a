import logging
import sys
import threading
from datetime import datetime
from dotenv import load_dotenv
from os import getenv, makedirs, path
from pythonjsonlogger.json import JsonFormatter

from ..utils.logging import clear_latest_items

# Constants
LOG_FILES_HORIZON = 5
DEFAULT_LOG_DIR = "logs"
LOGGER_NAME = "bulkload"
FIELDS = [
    "name",
    "process",
    "processName",
    "threadName",
    "taskName",
    "asctime",
    "created",
    "msecs",
    "module",
    "funcName",
    "levelname",
    "message",
]

# Load environment variables
load_dotenv()


class LoggingConfigurator:
    """
    Configures the package logger once per process: a console handler in
    development plus JSON info/error files for every run.
    """

    def __init__(self, environment: str = None, log_dir: str = None):
        self.environment = environment or getenv("ENVIRONMENT", "development")
        self.log_dir = log_dir or getenv("LOG_DIR", DEFAULT_LOG_DIR)
        self.package_logger = logging.getLogger(LOGGER_NAME)
        self._configured = False
        self._lock = threading.Lock()

    def configure(self):
        """Configure logging once globally (thread-safe)."""
        with self._lock:
            if self._configured:
                return

            for handler in list(self.package_logger.handlers):
                self.package_logger.removeHandler(handler)
                handler.close()
            self.package_logger.setLevel(logging.DEBUG)

            json_formatter = self._create_json_formatter()
            console_formatter = self._create_console_formatter()

            if self.environment == "development":
                console_handler = self._create_console_handler(console_formatter)
                self.package_logger.addHandler(console_handler)

            if self.environment != "testing":
                error_handler, info_handler = self._create_file_handlers(json_formatter)
                self.package_logger.addHandler(error_handler)
                self.package_logger.addHandler(info_handler)

            self._configured = True

    def _create_json_formatter(self) -> JsonFormatter:
        """Create JSON formatter for structured logging."""
        json_format = " ".join(f"%({field_name})s" for field_name in FIELDS)
        return JsonFormatter(json_format)

    def _create_console_formatter(self) -> logging.Formatter:
        return logging.Formatter('%(asctime)s %(levelname)s:%(name)s:%(message)s')

    def _create_console_handler(self, formatter: logging.Formatter) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        return handler

    def _create_file_handlers(self, formatter: JsonFormatter) -> tuple:
        """Create error and info file handlers under <log_dir>/<date>/<HH_MM>."""
        now = datetime.now()
        log_root_path = path.join(self.log_dir, now.strftime("%Y-%m-%d"))

        if path.exists(log_root_path):
            clear_latest_items(log_root_path, LOG_FILES_HORIZON)

        base_path = path.join(log_root_path, now.strftime("%H_%M"))
        makedirs(base_path, exist_ok=True)

        error_handler = logging.FileHandler(path.join(base_path, "error_log.log"), mode="a")
        error_handler.setFormatter(formatter)
        error_handler.setLevel(logging.ERROR)

        info_handler = logging.FileHandler(path.join(base_path, "info_log.log"), mode="a")
        info_handler.setFormatter(formatter)
        info_handler.setLevel(logging.INFO)

        return error_handler, info_handler

    def reconfigure(self, environment: str = None, log_dir: str = None):
        """Reconfigure logging (useful for testing or the CLI)."""
        if environment:
            self.environment = environment
        if log_dir:
            self.log_dir = log_dir
        self._configured = False
        self.configure()


_configurator = None
_configurator_lock = threading.Lock()


def configure_logging(environment: str = None, log_dir: str = None) -> LoggingConfigurator:
    """
    Configure the package logger. The first call reads ENVIRONMENT and
    LOG_DIR; later calls are no-ops unless they name an environment or a
    log directory.
    """
    global _configurator
    with _configurator_lock:
        if _configurator is None:
            _configurator = LoggingConfigurator(environment=environment, log_dir=log_dir)
            _configurator.configure()
            return _configurator

    if environment or log_dir:
        _configurator.reconfigure(environment=environment, log_dir=log_dir)
    return _configurator


# Handlers are attached by configure_logging, from the CLI or the first import run.
logger = logging.getLogger(LOGGER_NAME)
logger.addHandler(logging.NullHandler())
