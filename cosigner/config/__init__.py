"""
Cosigner Configuration

Loads cosigner.toml; environment variables override TOML values.
"""

from .loader import (
    CosignerConfig,
    EngineConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "CosignerConfig",
    "EngineConfig",
    "LoggingConfig",
    "load_config",
]
