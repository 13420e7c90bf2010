"""Configuration module"""

from .settings import (
    Settings,
    KamailioConfig,
    ExporterConfig,
    LoggingConfig,
    ConfigValidationError,
    parse_labels,
)

__all__ = [
    "Settings",
    "KamailioConfig",
    "ExporterConfig",
    "LoggingConfig",
    "ConfigValidationError",
    "parse_labels",
]
