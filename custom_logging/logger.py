"""
Unified logger setup for the component kernel.
Provides stdout logging for every kernel logger plus optional rotating file output.
"""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "concierge"

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DETAILED_FORMAT = (
    '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(funcName)s() - %(message)s'
)


class ConciergeLogger:
    """Centralized logging configuration for the component kernel."""

    def __init__(self,
                 name: str = ROOT_LOGGER_NAME,
                 log_level: str = "INFO",
                 log_dir: Optional[str] = None,
                 max_file_size: int = 10 * 1024 * 1024,  # 10MB
                 backup_count: int = 5,
                 log_to_file: bool = True):
        """
        Initialize the kernel logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (defaults to ./logs)
            max_file_size: Maximum size for log files before rotation
            backup_count: Number of backup files to keep
            log_to_file: Whether to attach rotating file handlers
        """
        self.name = name
        self.log_level = getattr(logging, log_level.upper())
        self.log_dir = Path(log_dir) if log_dir else Path("./logs")
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.log_to_file = log_to_file

        self.logger = logging.getLogger(name)
        self.logger.setLevel(self.log_level)

        # Replace whatever get_logger() attached on first use
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)
            handler.close()

        self._setup_handlers()

    def _setup_handlers(self):
        """Set up console and, when enabled, file handlers."""
        detailed_formatter = logging.Formatter(DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
        console_formatter = logging.Formatter(CONSOLE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

        if not self.log_to_file:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)

        log_file = self.log_dir / f"{self.name}_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count
        )
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(detailed_formatter)

        # Error file handler for errors only
        error_file = self.log_dir / f"{self.name}_errors_{datetime.now().strftime('%Y%m%d')}.log"
        error_handler = logging.handlers.RotatingFileHandler(
            error_file,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(detailed_formatter)

        self.logger.addHandler(file_handler)
        self.logger.addHandler(error_handler)

    def get_logger(self) -> logging.Logger:
        """Return the configured logger instance."""
        return self.logger

    def set_level(self, level: str):
        """Change logging level at runtime."""
        set_level(level, self.name)


def _qualify(name: str) -> str:
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return name
    return f"{ROOT_LOGGER_NAME}.{name}"


def _ensure_root_handler(level: Optional[str] = None) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    log_level = getattr(logging, (level or "INFO").upper())
    root.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    root.addHandler(console_handler)
    return root


def get_logger(name: str = ROOT_LOGGER_NAME, level: Optional[str] = None) -> logging.Logger:
    """
    Get a kernel logger.

    Every logger lives under the shared ``concierge`` parent, which owns the
    handlers; children only carry a level when one is requested.

    Args:
        name: Logger name (usually the module or component name)
        level: Optional level override for this logger

    Returns:
        Configured logger instance
    """
    _ensure_root_handler()
    logger = logging.getLogger(_qualify(name))
    if level is not None:
        logger.setLevel(getattr(logging, level.upper()))
    return logger


def setup_logger(config: Union[dict, object, None] = None) -> logging.Logger:
    """
    Setup the kernel logger from configuration.

    Args:
        config: A ``LoggingConfig`` instance or a dictionary with keys:
               - log_level / level: str (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               - log_dir: str (directory path)
               - max_file_size: int (bytes)
               - backup_count: int
               - log_to_file: bool

    Returns:
        Configured logger instance
    """
    if config is None:
        config = {}
    if not isinstance(config, dict):
        config = vars(config)

    logger_config = ConciergeLogger(
        name=config.get("name", ROOT_LOGGER_NAME),
        log_level=config.get("log_level", config.get("level", "INFO")),
        log_dir=config.get("log_dir"),
        max_file_size=config.get("max_file_size", 10 * 1024 * 1024),
        backup_count=config.get("backup_count", 5),
        log_to_file=config.get("log_to_file", True)
    )

    return logger_config.get_logger()


def set_level(level: str, name: str = ROOT_LOGGER_NAME):
    """Change the level of a kernel logger and its handlers."""
    new_level = getattr(logging, level.upper())
    logger = logging.getLogger(_qualify(name))
    logger.setLevel(new_level)
    for handler in logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler) and handler.level == logging.ERROR:
            continue
        handler.setLevel(new_level)
