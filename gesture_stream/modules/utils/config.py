"""
Centralized configuration manager.
Loads a YAML config file and provides dot-path access with defaults.

Section dataclasses (StabilizerConfig, SessionConfig, ...) live next to
the component they configure and are built from ``get_section()``.
"""

import os
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
DEFAULT_CONFIG_PATH = os.path.join(_BASE_DIR, "config", "config.yaml")

# Schema: known sections and the expected types of their critical fields
_CONFIG_SCHEMA = {
    "extractor": {
        "kind": str,
        "min_skin_ratio": float,
    },
    "window": {
        "min_frames": int,
    },
    "classifier": {
        "backend": str,
        "seed": int,
    },
    "stabilizer": {
        "vote_capacity": int,
        "min_confidence": float,
        "decay_factor": float,
        "clear_threshold": float,
        "dedup_window_s": float,
        "history_capacity": int,
    },
    "session": {
        "min_interval_s": float,
        "init_timeout_s": float,
    },
    "camera": {
        "device_id": int,
        "width": int,
        "height": int,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """YAML-backed configuration.

    One instance is created by the application and handed to the
    components that need it.
    """

    def __init__(self, data: dict = None):
        self._data = data or {}

    @classmethod
    def load(cls, config_path: str = None, overrides: dict = None) -> "Config":
        """Load configuration from a YAML file.

        A missing file is not an error: the built-in defaults of each
        section dataclass apply.
        """
        config_path = config_path or DEFAULT_CONFIG_PATH
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            data = {}

        if not isinstance(data, dict):
            raise ValueError("Config root must be a mapping, got %s" % type(data).__name__)

        if overrides:
            data = _deep_merge(data, overrides)

        config = cls(data)
        config._validate()
        return config

    def _validate(self):
        """Validate known config fields against the schema; log mismatches."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if section is None:
                continue
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name in section:
                    value = section[field_name]
                    # Allow int where float is expected
                    if expected_type is float and isinstance(value, (int, float)):
                        continue
                    if not isinstance(value, expected_type):
                        warnings.append(
                            f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                            f"got {type(value).__name__} ({value!r})"
                        )

        for w in warnings:
            logger.warning("Config validation: %s", w)
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'stabilizer.min_confidence'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        value = self._data.get(section, {})
        return value if isinstance(value, dict) else {}

    @property
    def extractor(self) -> dict:
        return self.get_section("extractor")

    @property
    def window(self) -> dict:
        return self.get_section("window")

    @property
    def classifier(self) -> dict:
        return self.get_section("classifier")

    @property
    def stabilizer(self) -> dict:
        return self.get_section("stabilizer")

    @property
    def session(self) -> dict:
        return self.get_section("session")

    @property
    def camera(self) -> dict:
        return self.get_section("camera")

    @property
    def logging(self) -> dict:
        return self.get_section("logging")
