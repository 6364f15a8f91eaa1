"""Configuration loading and validation for runner monitoring."""

from runner_monitor.config.effective import EffectiveConfig, resolve_effective_config
from runner_monitor.config.errors import (
    ConfigError,
    ConfigValidationError,
    MissingConfigurationError,
)
from runner_monitor.config.loader import ConfigLoader
from runner_monitor.config.schemas import (
    FetchSection,
    MonitorConfig,
    NotificationSection,
    RepositoryConfig,
)


__all__ = [
    "ConfigError",
    "ConfigLoader",
    "ConfigValidationError",
    "EffectiveConfig",
    "FetchSection",
    "MissingConfigurationError",
    "MonitorConfig",
    "NotificationSection",
    "RepositoryConfig",
    "resolve_effective_config",
]
