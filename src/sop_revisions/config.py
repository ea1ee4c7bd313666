"""
Configuration management for SOP revisions.

Handles loading and managing configuration from files and environment
variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import ConfigurationError


logger = logging.getLogger(__name__)


@dataclass
class RevisionConfig:
    """Main configuration for the revision-control engine."""

    # Restore points kept per document, oldest evicted first
    max_restore_points: int = 10

    # Batches larger than this are tagged "major-revision"
    major_revision_threshold: int = 10

    # Stability score tuning
    stability_change_budget: float = 20.0
    stability_reference_hours: float = 24.0

    # Content-change significance buckets (trivial / minor / significant)
    significance_thresholds: Tuple[float, float, float] = (0.05, 0.2, 0.5)

    # Feedback intake
    low_confidence_threshold: float = 0.8
    max_clauses: int = 5
    min_clause_length: int = 10

    # File-backed repository location used by the CLI
    storage_path: Path = field(default_factory=lambda: Path(".sop_versions"))

    def validate(self) -> None:
        """Reject values the engine cannot work with."""
        if self.max_restore_points < 1:
            raise ConfigurationError("max_restore_points must be at least 1")
        if self.stability_change_budget <= 0 or self.stability_reference_hours <= 0:
            raise ConfigurationError("stability tuning values must be positive")
        low, mid, high = self.significance_thresholds
        if not 0 <= low <= mid <= high <= 1:
            raise ConfigurationError(
                "significance_thresholds must be ascending values between 0 and 1"
            )
        if self.max_clauses < 1:
            raise ConfigurationError("max_clauses must be at least 1")


class ConfigManager:
    """Manages configuration from multiple sources."""

    ENV_PREFIX = "SOP_REVISIONS_"

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or Path.home() / ".sop-revisions"
        self.config_file = self.config_dir / "config.yaml"
        self._config: Optional[RevisionConfig] = None

    def load_config(self) -> RevisionConfig:
        """Load configuration from all sources."""
        if self._config:
            return self._config

        config = RevisionConfig()

        if self.config_file.exists():
            config = self._merge_configs(config, self._load_from_file())

        config = self._merge_configs(config, self._load_from_env())
        config.validate()

        self._config = config
        return config

    def _load_from_file(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(self.config_file, "r") as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config file {self.config_file}: {e}")
            return {}

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Any] = {}

        int_settings = ["max_restore_points", "major_revision_threshold", "max_clauses", "min_clause_length"]
        float_settings = [
            "stability_change_budget",
            "stability_reference_hours",
            "low_confidence_threshold",
        ]

        for name in int_settings + float_settings:
            value = os.getenv(f"{self.ENV_PREFIX}{name.upper()}")
            if not value:
                continue
            try:
                env_config[name] = int(value) if name in int_settings else float(value)
            except ValueError:
                logger.warning(f"Ignoring invalid value for {self.ENV_PREFIX}{name.upper()}: {value!r}")

        storage_path = os.getenv(f"{self.ENV_PREFIX}STORAGE_PATH")
        if storage_path:
            env_config["storage_path"] = storage_path

        return env_config

    def _merge_configs(self, base: RevisionConfig, override: Dict[str, Any]) -> RevisionConfig:
        """Merge an override dictionary into the configuration."""
        for key in (
            "max_restore_points",
            "major_revision_threshold",
            "max_clauses",
            "min_clause_length",
        ):
            if key in override:
                setattr(base, key, int(override[key]))

        for key in (
            "stability_change_budget",
            "stability_reference_hours",
            "low_confidence_threshold",
        ):
            if key in override:
                setattr(base, key, float(override[key]))

        if "significance_thresholds" in override:
            thresholds = tuple(float(v) for v in override["significance_thresholds"])
            if len(thresholds) != 3:
                raise ConfigurationError("significance_thresholds needs exactly three values")
            base.significance_thresholds = thresholds

        if "storage_path" in override:
            base.storage_path = Path(override["storage_path"])

        return base

    def save_config(self, config: RevisionConfig) -> None:
        """Save configuration to file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        config_dict = {
            "max_restore_points": config.max_restore_points,
            "major_revision_threshold": config.major_revision_threshold,
            "stability_change_budget": config.stability_change_budget,
            "stability_reference_hours": config.stability_reference_hours,
            "significance_thresholds": list(config.significance_thresholds),
            "low_confidence_threshold": config.low_confidence_threshold,
            "max_clauses": config.max_clauses,
            "min_clause_length": config.min_clause_length,
            "storage_path": str(config.storage_path),
        }

        with open(self.config_file, "w") as f:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2)

        self._config = config

    def create_default_config(self) -> Path:
        """Create a default configuration file."""
        self.save_config(RevisionConfig())
        return self.config_file

    def get_config_info(self) -> Dict[str, Any]:
        """Get information about current configuration."""
        config = self.load_config()

        return {
            "config_file": str(self.config_file),
            "config_exists": self.config_file.exists(),
            "storage_path": str(config.storage_path),
            "max_restore_points": config.max_restore_points,
            "significance_thresholds": list(config.significance_thresholds),
        }


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the global config manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def load_config() -> RevisionConfig:
    """Load the current configuration."""
    return get_config_manager().load_config()
