"""YAML configuration loader with validation."""

import hashlib
import time
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from runner_monitor.config.errors import ConfigValidationError
from runner_monitor.config.schemas import MonitorConfig


logger = structlog.get_logger()


class ConfigLoader:
    """Loads and validates ``monitor.yaml``.

    Validation errors are collected with dotted field locations so the CLI
    can print them one per line.
    """

    def __init__(self, pass_id: str = "") -> None:
        """Initialize the loader.

        Args:
            pass_id: Identifier of the pass the config is loaded for.
        """
        self._pass_id = pass_id
        self._checksum: str | None = None
        self._validation_errors: list[dict[str, str]] = []

    @property
    def checksum(self) -> str | None:
        """SHA-256 of the last loaded file."""
        return self._checksum

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Get validation errors if any."""
        return self._validation_errors.copy()

    def load(self, config_path: Path) -> MonitorConfig:
        """Load and validate a configuration file.

        Args:
            config_path: Path to the YAML file.

        Returns:
            The validated configuration.

        Raises:
            ConfigValidationError: If the file is missing, unparsable, or invalid.
        """
        start_time = time.perf_counter()
        log = logger.bind(
            component="config",
            pass_id=self._pass_id,
            file_path=str(config_path),
        )
        log.info("loading_config_file")

        try:
            content_bytes = config_path.read_bytes()
        except FileNotFoundError as e:
            self._validation_errors = [
                {"loc": str(config_path), "msg": str(e), "type": "file_not_found"}
            ]
            log.error("config_file_not_found")
            raise ConfigValidationError(
                self._validation_errors, str(config_path)
            ) from e

        self._checksum = hashlib.sha256(content_bytes).hexdigest()

        try:
            parsed = yaml.safe_load(content_bytes.decode("utf-8")) or {}
            config = MonitorConfig.model_validate(parsed)
        except yaml.YAMLError as e:
            self._validation_errors = [
                {"loc": str(config_path), "msg": str(e), "type": "yaml_parse_error"}
            ]
            log.error("config_yaml_error", error=str(e))
            raise ConfigValidationError(
                self._validation_errors, str(config_path)
            ) from e
        except ValidationError as e:
            self._validation_errors = [
                {
                    "loc": ".".join(str(loc) for loc in err["loc"]),
                    "msg": err["msg"],
                    "type": err["type"],
                }
                for err in e.errors()
            ]
            log.error(
                "config_validation_failed",
                validation_error_count=len(self._validation_errors),
                errors=self._validation_errors,
            )
            raise ConfigValidationError(
                self._validation_errors, str(config_path)
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        log.info(
            "config_file_loaded",
            file_sha256=self._checksum,
            repository_count=len(config.repositories),
            config_validation_duration_ms=round(duration_ms, 2),
        )
        return config
