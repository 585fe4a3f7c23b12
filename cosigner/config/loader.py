"""
Cosigner TOML Configuration Loader

Loads cosigner.toml with environment variable overrides. Variables may also
come from a ``.env`` file in the working directory; real environment
variables win over it.

Environment variable mapping:
    [engine] native_prefix          → COSIGNER_NATIVE_PREFIX
    [engine] batch_prefix           → COSIGNER_BATCH_PREFIX
    [engine] min_signers            → COSIGNER_MIN_SIGNERS
    [engine] max_batch_recipients   → COSIGNER_MAX_BATCH_RECIPIENTS
    [logging] level                 → COSIGNER_LOG_LEVEL
    [logging] format                → COSIGNER_LOG_FORMAT
    [logging] date_format           → COSIGNER_LOG_DATE_FORMAT
    [logging] console_highlighting  → COSIGNER_LOG_HIGHLIGHTING
    [logging] file_output           → COSIGNER_LOG_FILE_OUTPUT
    [logging] file_path             → COSIGNER_LOG_FILE
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from dotenv import dotenv_values

from ..constants import (
    DEFAULT_BATCH_PREFIX,
    DEFAULT_LOG_DATE_FORMAT,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_BATCH_RECIPIENTS,
    DEFAULT_MIN_SIGNERS,
    DEFAULT_NATIVE_PREFIX,
    LOG_LEVELS,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def _coerce_int(name: str, value: Any) -> int:
    """Accept ints and integer strings; anything else is a ConfigurationError."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            pass
    raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().casefold()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


@dataclass
class EngineConfig:
    """[engine] section."""
    native_prefix: str = DEFAULT_NATIVE_PREFIX
    batch_prefix: str = DEFAULT_BATCH_PREFIX
    min_signers: int = DEFAULT_MIN_SIGNERS
    max_batch_recipients: int = DEFAULT_MAX_BATCH_RECIPIENTS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        return cls(
            native_prefix=data.get("native_prefix", DEFAULT_NATIVE_PREFIX),
            batch_prefix=data.get("batch_prefix", DEFAULT_BATCH_PREFIX),
            min_signers=_coerce_int(
                "min_signers", data.get("min_signers", DEFAULT_MIN_SIGNERS)),
            max_batch_recipients=_coerce_int(
                "max_batch_recipients",
                data.get("max_batch_recipients", DEFAULT_MAX_BATCH_RECIPIENTS)),
        )

    def apply_env(self, env: Optional[Mapping[str, str]] = None) -> None:
        """Override from environment variables."""
        env = os.environ if env is None else env
        if v := env.get("COSIGNER_NATIVE_PREFIX"):
            self.native_prefix = v
        if v := env.get("COSIGNER_BATCH_PREFIX"):
            self.batch_prefix = v
        if v := env.get("COSIGNER_MIN_SIGNERS"):
            self.min_signers = _coerce_int("COSIGNER_MIN_SIGNERS", v)
        if v := env.get("COSIGNER_MAX_BATCH_RECIPIENTS"):
            self.max_batch_recipients = _coerce_int("COSIGNER_MAX_BATCH_RECIPIENTS", v)

    def validate(self) -> None:
        for name in ("native_prefix", "batch_prefix"):
            prefix = getattr(self, name)
            if not isinstance(prefix, str) or not prefix or not prefix.isascii():
                raise ConfigurationError(f"{name} must be a non-empty ASCII string")
        if self.native_prefix == self.batch_prefix:
            raise ConfigurationError("native_prefix and batch_prefix must differ")
        if _coerce_int("min_signers", self.min_signers) < 2:
            raise ConfigurationError("min_signers must be >= 2")
        if _coerce_int("max_batch_recipients", self.max_batch_recipients) < 1:
            raise ConfigurationError("max_batch_recipients must be >= 1")


@dataclass
class LoggingConfig:
    """[logging] section, consumed by LogManager.configure."""
    level: str = DEFAULT_LOG_LEVEL
    format: str = DEFAULT_LOG_FORMAT
    date_format: str = DEFAULT_LOG_DATE_FORMAT
    console_highlighting: bool = True
    file_output: bool = False
    file_path: str = DEFAULT_LOG_FILE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=data.get("level", DEFAULT_LOG_LEVEL),
            format=data.get("format", DEFAULT_LOG_FORMAT),
            date_format=data.get("date_format", DEFAULT_LOG_DATE_FORMAT),
            console_highlighting=_coerce_bool(
                "console_highlighting", data.get("console_highlighting", True)),
            file_output=_coerce_bool("file_output", data.get("file_output", False)),
            file_path=data.get("file_path", DEFAULT_LOG_FILE),
        )

    def apply_env(self, env: Optional[Mapping[str, str]] = None) -> None:
        env = os.environ if env is None else env
        if v := env.get("COSIGNER_LOG_LEVEL"):
            self.level = v
        if v := env.get("COSIGNER_LOG_FORMAT"):
            self.format = v
        if v := env.get("COSIGNER_LOG_DATE_FORMAT"):
            self.date_format = v
        if v := env.get("COSIGNER_LOG_HIGHLIGHTING"):
            self.console_highlighting = _coerce_bool("COSIGNER_LOG_HIGHLIGHTING", v)
        if v := env.get("COSIGNER_LOG_FILE_OUTPUT"):
            self.file_output = _coerce_bool("COSIGNER_LOG_FILE_OUTPUT", v)
        if v := env.get("COSIGNER_LOG_FILE"):
            self.file_path = v

    @property
    def numeric_level(self) -> int:
        return getattr(logging, self.level.upper())

    def validate(self) -> None:
        if not isinstance(self.level, str) or self.level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.level}")

        # Render a dummy record so unknown fields fail here, not on the first log call
        try:
            formatter = logging.Formatter(fmt=self.format, validate=True)
            formatter.format(logging.LogRecord(
                name="cosigner", level=logging.INFO, pathname="", lineno=0,
                msg="check", args=(), exc_info=None,
            ))
        except (ValueError, KeyError, TypeError) as e:
            raise ConfigurationError(f"Invalid log format {self.format!r}: {e}") from e

        if not isinstance(self.date_format, str) or "%" not in self.date_format:
            raise ConfigurationError(f"Invalid log date format: {self.date_format!r}")
        try:
            time.strftime(self.date_format)
        except ValueError as e:
            raise ConfigurationError(f"Invalid log date format {self.date_format!r}: {e}") from e

        if self.file_output and not self.file_path:
            raise ConfigurationError("file_output needs a file_path")


@dataclass
class CosignerConfig:
    """
    Unified configuration.

    Loads every section of cosigner.toml and applies environment variable
    overrides.
    """
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CosignerConfig":
        """Create CosignerConfig from a parsed TOML dict."""
        return cls(
            engine=EngineConfig.from_dict(data.get("engine", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str,
                  env: Optional[Mapping[str, str]] = None) -> "CosignerConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides).

        Raises:
            ConfigurationError: If the file is not valid TOML or holds
                values of the wrong type
        """
        path = Path(config_path)
        if not path.exists():
            logger.debug("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env(env)
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env(env)
        return cfg

    def apply_env(self, env: Optional[Mapping[str, str]] = None) -> None:
        """Apply environment variable overrides to all sections."""
        self.engine.apply_env(env)
        self.logging.apply_env(env)

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.engine.validate()
        self.logging.validate()
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "engine": {
                "native_prefix": self.engine.native_prefix,
                "batch_prefix": self.engine.batch_prefix,
                "min_signers": self.engine.min_signers,
                "max_batch_recipients": self.engine.max_batch_recipients,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "date_format": self.logging.date_format,
                "console_highlighting": self.logging.console_highlighting,
                "file_output": self.logging.file_output,
                "file_path": self.logging.file_path,
            },
        }


def load_environment(dotenv_path: str = ".env") -> Dict[str, str]:
    """Environment seen by the loader: ``.env`` entries under real variables."""
    env = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
    env.update(os.environ)
    return env


def load_config(path: Optional[str] = None, dotenv_path: str = ".env") -> CosignerConfig:
    """
    Load and validate configuration.

    Resolution order:
        1. Explicit *path* argument
        2. COSIGNER_CONFIG (environment or .env)
        3. ./cosigner.toml in current directory
        4. Defaults (with env overrides)
    """
    env = load_environment(dotenv_path)
    if path is None:
        path = env.get("COSIGNER_CONFIG", "cosigner.toml")

    cfg = CosignerConfig.from_file(path, env)
    cfg.validate()
    return cfg
