"""
Centralized logging for the mosaic application.
Logs to a rotating file, the console and any registered UI callbacks.
"""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional, Callable
from logging.handlers import RotatingFileHandler


LOGGER_NAME = 'MosaicApp'


class AppLogger:
    """
    Singleton application logger with file, console and UI output.
    """
    _instance: Optional['AppLogger'] = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._log_callbacks: list[Callable[[str, str], None]] = []
        self._logger = logging.getLogger(LOGGER_NAME)
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        self._file_handler: Optional[logging.Handler] = None
        self._console_handler: Optional[logging.Handler] = None

        self._log_dir = Path.cwd() / "logs"
        self._setup_console_handler()

        self._initialized = True

    def _setup_file_handler(self):
        """Setup rotating file handler in the current log directory"""
        self._log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = self._log_dir / f"Mosaic_{timestamp}.log"

        # 10MB max, keep 5 backups
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)

        # [2026-01-26 14:30:45] INFO: Message
        formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(formatter)

        self._logger.addHandler(file_handler)
        self._file_handler = file_handler

    def _setup_console_handler(self):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter('[%(levelname)s] %(message)s'))
        self._logger.addHandler(console_handler)
        self._console_handler = console_handler

    def set_console_level(self, level: int):
        """Console verbosity, e.g. logging.DEBUG to see per-tile match scores"""
        self._console_handler.setLevel(level)

    def enable_file_logging(self, directory: Optional[Path] = None):
        """
        Start (or move) file logging.

        Args:
            directory: Directory for log files. Defaults to ./logs
        """
        if directory is not None:
            self._log_dir = Path(directory)

        if self._file_handler is not None:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

        self._setup_file_handler()
        self.info(f"Logging to directory: {self._log_dir}")

    def get_log_directory(self) -> Path:
        return self._log_dir

    def register_callback(self, callback: Callable[[str, str], None]):
        """
        Register a callback for log messages.

        Args:
            callback: Function(level, message) to call on each log message
        """
        if callback in self._log_callbacks:
            self._log_callbacks.remove(callback)
        self._log_callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[str, str], None]):
        if callback in self._log_callbacks:
            self._log_callbacks.remove(callback)

    def _notify_callbacks(self, level: str, message: str):
        for callback in self._log_callbacks:
            try:
                callback(level, message)
            except Exception as e:
                # A broken UI callback must not break logging
                self._logger.debug(f"Error in log callback: {e}")

    def debug(self, message: str):
        self._logger.debug(message)
        self._notify_callbacks('DEBUG', message)

    def info(self, message: str):
        self._logger.info(message)
        self._notify_callbacks('INFO', message)

    def warning(self, message: str):
        self._logger.warning(message)
        self._notify_callbacks('WARNING', message)

    def error(self, message: str):
        self._logger.error(message)
        self._notify_callbacks('ERROR', message)

    def exception(self, message: str):
        """Log exception with traceback"""
        self._logger.exception(message)
        self._notify_callbacks('ERROR', message)


_app_logger: Optional[AppLogger] = None


def get_logger() -> AppLogger:
    """Get the global application logger"""
    global _app_logger
    if _app_logger is None:
        _app_logger = AppLogger()
    return _app_logger
