"""
Cosigner Logging System
=======================

Root-logger setup driven by the ``[logging]`` section of cosigner.toml.
Console output goes through ``rich`` with a highlighter for addresses,
operation hashes, sequence ids and rejection reasons; file output is an
optional rotating log. Every record is sanitized first, since payloads and
recipient identities are caller-controlled.

Usage:
    >>> from cosigner.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("[auth] seq=3 accepted")
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

from .config.loader import LoggingConfig
from .constants import LOG_BACKUP_COUNT, LOG_MAX_FILE_SIZE


COSIGNER_THEME = Theme(
    {
        "cosigner.address":        "cyan",
        "cosigner.hash":           "dim cyan",
        "cosigner.level_critical": "bold red reverse",
        "cosigner.level_debug":    "bold dim",
        "cosigner.level_error":    "bold red",
        "cosigner.level_info":     "bold green",
        "cosigner.level_warning":  "bold yellow",
        "cosigner.logger_name":    "magenta",
        "cosigner.reason":         "bold red",
        "cosigner.sequence":       "bold white",
        "cosigner.tag":            "bold magenta",
        "cosigner.timestamp":      "bold cyan",
    }
)


class CosignerLogHighlighter(RegexHighlighter):
    """
    Rich highlighter for engine logs: addresses, operation hashes,
    sequence ids, rejection reasons and bracketed tags.
    """

    base_style = "cosigner."
    highlights = [
        r"(?P<hash>\b0x[0-9a-fA-F]{64}\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<reason>\b(?:UNAUTHORIZED_SUBMITTER|EXPIRED|SEQUENCE_MISMATCH|BAD_SIGNATURE|MALFORMED_SIGNATURE)\b)",
        r"(?P<sequence>\bseq=\d+\b)",
        r"(?P<tag>\[.*?\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips ANSI escape sequences, carriage returns and other
    control characters (tab and newline survive) from every rendered record.
    Timestamps are UTC.
    """

    converter = time.gmtime

    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"      # CSI sequences
        r"|\x1b[@-Z\\-_]"               # lone ESC sequences
        r"|[\x00-\x08\x0B-\x1F\x7F]"    # control chars except \t and \n
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._unsafe_re.sub("", text)

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class LogManager:
    """
    Process-wide owner of the root logger configuration.

    A single instance exists per process. ``configure`` applies a
    ``LoggingConfig`` once; later calls are ignored unless ``force`` is set,
    which is how the CLI swaps the import-time defaults for the loaded
    configuration.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._config = None
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._config is not None

    @property
    def config(self) -> Optional[LoggingConfig]:
        """The LoggingConfig currently applied, if any."""
        return self._config

    def configure(self, config: Optional[LoggingConfig] = None, force: bool = False) -> None:
        """
        Install handlers on the root logger according to *config*.

        Args:
            config: Logging section to apply. Defaults to ``LoggingConfig()``.
            force: Replace an existing configuration.

        Raises:
            ConfigurationError: If *config* does not validate
        """
        config = config or LoggingConfig()
        config.validate()

        with self._lock:
            if self._config is not None and not force:
                return

            root_logger = logging.getLogger()
            for handler in list(root_logger.handlers):
                root_logger.removeHandler(handler)
                handler.close()
            root_logger.setLevel(config.numeric_level)

            formatter = TerminalSafeFormatter(
                fmt=config.format, datefmt=config.date_format + " UTC"
            )
            for handler in self._build_handlers(config):
                handler.setLevel(config.numeric_level)
                handler.setFormatter(formatter)
                root_logger.addHandler(handler)

            self._config = config

    @staticmethod
    def _build_handlers(config: LoggingConfig) -> list:
        if config.console_highlighting:
            console = RichHandler(
                console=Console(theme=COSIGNER_THEME, highlight=False, stderr=True),
                highlighter=CosignerLogHighlighter(),
                keywords=[],
                rich_tracebacks=True,
                show_path=False,
                show_time=False,
                show_level=False,
                markup=False,
            )
        else:
            console = logging.StreamHandler(sys.stderr)
        handlers = [console]

        if config.file_output:
            log_file = Path(config.file_path)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                filename=str(log_file),
                maxBytes=LOG_MAX_FILE_SIZE,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            ))
        return handlers

    def get_logger(self, name: str) -> logging.Logger:
        """Return ``logging.getLogger(name)``, applying defaults on first use."""
        if self._config is None:
            self.configure()
        return logging.getLogger(name)


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    return _manager.get_logger(name)
