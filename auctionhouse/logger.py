"""
Auction House Logging System
============================

A unified, thread-safe logging utility for the marketplace program. This
module integrates with the standard Python `logging` library and the `rich`
library to provide structured, safe, and visually distinct logging outputs.

Usage:
    >>> from auctionhouse.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Listing created")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


# Define log file location relative to the project root
PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "auctionhouse.log"


class LogManager:
    """
    Manages logging configuration via the Singleton pattern.

    This class ensures that the logging subsystem is initialized exactly once.
    It handles the setup of 'Rich' console and rotating file handlers for
    persistent storage.

    Attributes:
        _instance (LogManager): The singleton instance.
        _lock (threading.Lock): Thread lock for atomic initialization.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()


    def __new__(cls) -> "LogManager":
        """Creates or returns the existing singleton instance."""
        # Double-checked locking pattern for thread-safe singleton initialization
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance


    def __init__(self) -> None:
        """Initializes the LogManager instance."""
        if self._initialized:
            return
        self._configured = False
        self._initialized = True


    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Validates the syntax of a logging format string.

        Formats a dummy record to catch runtime errors before the format is
        installed on any handler.

        Args:
            log_format (str): The logging format string (e.g., "%(asctime)s - %(message)s").

        Returns:
            str: The validated format string, or the default `LOG_FORMAT` if validation fails.
        """
        if not log_format:
            return str(LOG_FORMAT.default())

        log_format = str(log_format)
        format_specifier_pattern = r"\([a-zA-Z_][a-zA-Z0-9_]*\)[a-zA-Z]"
        try:
            for match in re.finditer(format_specifier_pattern, log_format):
                start_pos = match.start()
                if start_pos == 0 or log_format[start_pos - 1] != "%":
                    raise ValueError("Malformed format specifier.")

            formatter = logging.Formatter(fmt=log_format)
            record = logging.LogRecord(
                name="test", level=logging.INFO, pathname="", lineno=0,
                msg="test", args=(), exc_info=None,
            )
            formatted_output = formatter.format(record)
            if re.search(format_specifier_pattern, formatted_output):
                raise ValueError("Format specifiers not properly processed.")
        except (ValueError, KeyError, TypeError) as e:
            print(
                f"{time.strftime(str(LOG_DATE_FORMAT.default()))} - auctionhouse.logger - "
                f"Validation Error: {e}. Using default.",
                file=sys.stderr,
            )
            return str(LOG_FORMAT.default())

        return log_format


    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Configures the package logger with console and file handlers.

        Args:
            log_level (Optional[str]): Logging level (DEBUG, INFO, etc.). Defaults to env var.
            log_file (Optional[Path]): Absolute path to log file. Defaults to `logs/auctionhouse.log`.
            console_output (bool): Enable console logging. Defaults to True.
            file_output (Optional[bool]): Enable rotating file logging. Defaults to env var.
        """
        with self._lock:
            if self._configured:
                return

            level_str = log_level or LOG_LEVEL
            numeric_level = getattr(logging, str(level_str).upper(), logging.INFO)
            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)

            package_logger = logging.getLogger("auctionhouse")
            package_logger.setLevel(numeric_level)
            package_logger.handlers.clear()

            log_format = self.validate_log_format(LOG_FORMAT)
            date_format = str(LOG_DATE_FORMAT) or str(LOG_DATE_FORMAT.default())

            # Uses UTC for consistency across different hosts
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    theme = Theme(
                        {
                            "auctionhouse.address":        "cyan",
                            "auctionhouse.amount":         "bold white",
                            "auctionhouse.arrow":          "bold yellow",
                            "auctionhouse.error_code":     "bold red",
                            "auctionhouse.level_critical": "bold red reverse",
                            "auctionhouse.level_debug":    "bold dim",
                            "auctionhouse.level_error":    "bold red",
                            "auctionhouse.level_info":     "bold green",
                            "auctionhouse.level_warning":  "bold yellow",
                            "auctionhouse.logger_name":    "magenta",
                            "auctionhouse.tag":            "bold magenta",
                            "auctionhouse.timestamp":      "bold cyan",
                        }
                    )
                    console = Console(theme=theme, highlight=False, stderr=True)
                    handler: logging.Handler = RichHandler(
                        console=console,
                        highlighter=AuctionHouseLogHighlighter(),
                        keywords=[],
                        rich_tracebacks=True,
                        omit_repeated_times=False,
                        show_path=False,
                        show_time=False,
                        show_level=False,
                        markup=False,
                    )
                else:
                    handler = logging.StreamHandler(sys.stderr)
                handler.setLevel(numeric_level)
                handler.setFormatter(formatter)
                package_logger.addHandler(handler)

            if file_output:
                log_file_path = log_file or LOG_FILE_PATH
                log_file_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.handlers.RotatingFileHandler(
                    filename=str(log_file_path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setLevel(numeric_level)
                file_handler.setFormatter(formatter)
                package_logger.addHandler(file_handler)

            self._configured = True


    def set_level(self, log_level: str) -> None:
        """
        Applies a logging level to the package logger and its handlers.

        Configures logging first when that has not happened yet.

        Args:
            log_level (str): Logging level name (DEBUG, INFO, etc.).
        """
        if not self._configured:
            self.configure(log_level=log_level)
            return

        numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
        with self._lock:
            package_logger = logging.getLogger("auctionhouse")
            package_logger.setLevel(numeric_level)
            for handler in package_logger.handlers:
                handler.setLevel(numeric_level)


    def get_logger(self, name: str) -> logging.Logger:
        """
        Retrieves a configured logger instance for a specific module.

        Args:
            name (str): The name of the logger (typically `__name__`).

        Returns:
            logging.Logger: A configured standard Python logger.
        """
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


    @property
    def is_configured(self) -> bool:
        """Returns True if the logging system has been successfully configured."""
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    A formatter class that sanitizes log output.

    Strips ANSI escape sequences and non-printable control characters so
    that caller-supplied strings (addresses, labels) cannot manipulate the
    terminal.
    """

    # Matches ANSI CSI sequences (colors, cursor moves) and single ESC chars
    _ansi_escape_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
    )
    # Matches control chars (0x00-0x1F) excluding Tab and Newline
    _control_chars_re = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
    _carriage_return_re = re.compile(r"\r")


    @classmethod
    def sanitize(cls, text: str) -> str:
        """
        Removes potentially dangerous characters from the provided text.

        Args:
            text (str): The raw log message.

        Returns:
            str: The sanitized message safe for terminal output.
        """
        if not text:
            return text
        text = cls._ansi_escape_re.sub("", text)
        text = cls._carriage_return_re.sub("", text)
        text = cls._control_chars_re.sub("", text)
        return text


    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class AuctionHouseLogHighlighter(RegexHighlighter):
    """Regex highlighter for marketplace logs (addresses, amounts, error codes)."""

    base_style = "auctionhouse."
    highlights = [
        r"(?P<arrow>(\-\->)|(<--)|(→))",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<amount>\b\d+ (lamports|units)\b)",
        r"(?P<error_code>\b[A-Z_]+\(6\d{3}\))",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<tag>\[.*?\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    """
    Public accessor of the logging system.
    Delegates to the Singleton LogManager, ensuring configuration is applied.

    Args:
        name (str): The name of the module requesting the logger.

    Returns:
        logging.Logger: The configured logger instance.
    """
    return _manager.get_logger(name)
