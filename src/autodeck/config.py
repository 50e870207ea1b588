"""
Configuration management for AutoDeck.

Loads and validates TOML config against strict bounds.
All tunable parameters are bounded and validated at startup.
"""

import copy
import os
from pathlib import Path
from typing import Dict, Any, Optional
import toml
import logging

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when config validation fails."""
    pass


class Config:
    """Configuration loader and validator."""

    PARAM_BOUNDS = {
        "analysis": {
            "hop_size": (256, 2048),
            "frame_size": (256, 8192),
            "bpm_min": (30, 120),
            "bpm_max": (120, 300),
            "min_duration_seconds": (1.0, 30.0),
            "max_analysis_seconds": (10.0, 600.0),
            "confidence_threshold": (0.0, 1.0),
        },
        "mixer": {
            "crossfade_seconds": (2, 20),
            "guard_margin_seconds": (0.0, 2.0),
            "swap_epsilon_seconds": (0.0, 1.0),
            "resume_ramp_seconds": (0.0, 2.0),
            "fallback_bpm": (60, 200),
        },
        "announce": {
            "enabled": None,  # Boolean, no bounds
        },
    }

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "analysis": {
            "hop_size": 512,
            "frame_size": 1024,
            "bpm_min": 60,
            "bpm_max": 200,
            "min_duration_seconds": 4.0,
            "max_analysis_seconds": 60.0,
            "confidence_threshold": 0.1,
        },
        "mixer": {
            "crossfade_seconds": 8,
            "guard_margin_seconds": 0.25,
            "swap_epsilon_seconds": 0.05,
            "resume_ramp_seconds": 0.05,
            "fallback_bpm": 120,
        },
        "announce": {
            "enabled": True,
        },
    }

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize config from dictionary."""
        self.data = config_dict
        self._validate()

    @classmethod
    def default(cls) -> "Config":
        """Config built purely from DEFAULT_CONFIG."""
        return cls(copy.deepcopy(cls.DEFAULT_CONFIG))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load config from TOML file.

        Args:
            config_path: Path to autodeck.toml. If None, uses AUTODECK_CONFIG_PATH
                        env var or defaults to configs/autodeck.toml.

        Returns:
            Config instance.

        Raises:
            ConfigError: If config is invalid or unreadable.
        """
        if config_path is None:
            config_path = os.getenv("AUTODECK_CONFIG_PATH", "configs/autodeck.toml")

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return cls.default()

        try:
            config_dict = toml.load(config_path)
        except Exception as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")

        logger.info(f"Loaded config from {config_path}")
        return cls(config_dict)

    def _validate(self) -> None:
        """
        Validate all config parameters against PARAM_BOUNDS.

        Raises:
            ConfigError: If any parameter is out of bounds or not numeric.
        """
        for section, params in self.PARAM_BOUNDS.items():
            if section not in self.data:
                logger.warning(f"Missing config section: {section}. Using defaults.")
                self.data[section] = copy.deepcopy(self.DEFAULT_CONFIG.get(section, {}))
                continue

            section_data = self.data[section]

            for param, bounds in params.items():
                if param not in section_data:
                    default_val = self.DEFAULT_CONFIG.get(section, {}).get(param)
                    if default_val is not None:
                        logger.warning(f"Missing param {section}.{param}. Using default: {default_val}")
                        section_data[param] = default_val
                    continue

                value = section_data[param]

                if bounds is None:
                    continue

                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigError(f"Parameter {section}.{param}={value!r} is not numeric")

                min_val, max_val = bounds
                if not (min_val <= value <= max_val):
                    raise ConfigError(
                        f"Parameter {section}.{param}={value} out of bounds "
                        f"[{min_val}, {max_val}]"
                    )

        analysis = self.data["analysis"]
        if analysis["bpm_min"] >= analysis["bpm_max"]:
            raise ConfigError(
                f"analysis.bpm_min={analysis['bpm_min']} must be below "
                f"analysis.bpm_max={analysis['bpm_max']}"
            )

        logger.debug("Config validation passed")

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["mixer"]"""
        return self.data.get(section, {})

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version})"
