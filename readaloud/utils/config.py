"""
Configuration loader for the read-aloud system.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class Config:
    """Configuration manager for read-aloud playback."""

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not self._config:
            self._load_config()

    def _get_project_root(self) -> Path:
        """Get the project root directory."""
        # Navigate up from readaloud/utils to project root
        current = Path(__file__).resolve()
        return current.parent.parent.parent

    def _get_config_path(self) -> Path:
        override = os.environ.get("READALOUD_CONFIG")
        if override:
            return Path(override)
        return self._get_project_root() / "config" / "settings.yaml"

    def _load_config(self) -> None:
        """Load configuration from YAML file, layered over the defaults."""
        config = self._get_defaults()
        config_path = self._get_config_path()

        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            for section, values in loaded.items():
                if isinstance(values, dict) and isinstance(config.get(section), dict):
                    config[section].update(values)
                else:
                    config[section] = values

        self._config = config

    def _get_defaults(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "speech": {
                "engine": "simulated",
                "rate": 1.0,
                "pitch": 1.0,
                "volume": 1.0,
            },
            "sync": {
                "highlight_delay_ms": 50,
                "transition_delay_ms": 200,
            },
            "scroll": {
                "duration_ms": 500,
                "easing": "ease-out",
                "threshold_px": 50,
                "hysteresis": 0.2,
                "settle_ms": 300,
            },
            "text": {
                "lines_per_page": 40,
            },
        }

    def reload(self) -> None:
        """Re-read the settings file."""
        self._load_config()

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Example:
            config.get("speech", "rate") -> 1.0
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
            if value is None:
                return default
        return value

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return self._get_project_root()

    @property
    def config_path(self) -> Path:
        return self._get_config_path()

    @property
    def speech_rate(self) -> float:
        """Get the speech rate multiplier."""
        return float(self.get("speech", "rate", default=1.0))

    @property
    def speech_pitch(self) -> float:
        return float(self.get("speech", "pitch", default=1.0))

    @property
    def speech_volume(self) -> float:
        return float(self.get("speech", "volume", default=1.0))

    @property
    def speech_engine(self) -> str:
        """Get the default speech engine name."""
        return self.get("speech", "engine", default="simulated")

    @property
    def highlight_delay_ms(self) -> int:
        return int(self.get("sync", "highlight_delay_ms", default=50))

    @property
    def transition_delay_ms(self) -> int:
        return int(self.get("sync", "transition_delay_ms", default=200))

    @property
    def scroll_hysteresis(self) -> float:
        """Get the fraction of the viewport height treated as centered."""
        return float(self.get("scroll", "hysteresis", default=0.2))

    @property
    def lines_per_page(self) -> int:
        return int(self.get("text", "lines_per_page", default=40))


# Singleton instance
config = Config()
