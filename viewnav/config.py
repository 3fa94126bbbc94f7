"""
Configuration Manager for viewnav
Handles API connection settings and navigation panel preferences
"""

import copy
import json
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

from viewnav_dnd import ORIENTATIONS

from .platform_utils import get_config_dir

logger = logging.getLogger(__name__)

# Increment this whenever the configuration format changes
CONFIG_VERSION = 1


class Config:
    """Configuration manager for viewnav"""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file or os.path.join(get_config_dir(), 'config.json')
        self._callbacks: List[Callable[[str, Any], None]] = []
        self.config_data = self.load_json_config()

    def connect(self, callback: Callable[[str, Any], None]):
        """Register ``callback(key, value)`` for setting changes"""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def load_json_config(self) -> Dict[str, Any]:
        """Load configuration from JSON file"""
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, 'r') as f:
                    config = json.load(f)

                # Purge outdated configurations
                stored_version = config.get('config_version', 0)
                if stored_version < CONFIG_VERSION:
                    backup_file = f"{self.config_file}.bak"
                    try:
                        os.replace(self.config_file, backup_file)
                        logger.warning(
                            "Outdated config version %s detected; backing up to %s and regenerating defaults",
                            stored_version,
                            backup_file,
                        )
                    except OSError:
                        os.remove(self.config_file)
                        logger.warning(
                            "Outdated config version %s detected; old config removed and new defaults generated",
                            stored_version,
                        )

                    config = self.get_default_config()
                    self.save_json_config(config)
                else:
                    config, updated = self._ensure_config_defaults(config)
                    if updated:
                        self.save_json_config(config)

                return config
            else:
                # Create default config
                default_config = self.get_default_config()
                self.save_json_config(default_config)
                return default_config
        except Exception as e:
            logger.error("Failed to load JSON config: %s", e)
            return self.get_default_config()

    def save_json_config(self, config_data: Dict[str, Any] = None):
        """Save configuration to JSON file"""
        try:
            if config_data is None:
                config_data = self.config_data

            os.makedirs(os.path.dirname(self.config_file), exist_ok=True)
            with open(self.config_file, 'w') as f:
                json.dump(config_data, f, indent=2)

            logger.debug("Configuration saved to JSON file")
        except Exception as e:
            logger.error("Failed to save JSON config: %s", e)

    def get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values"""
        return {
            'config_version': CONFIG_VERSION,
            'api': {
                'base_url': 'https://localhost:7273/api',
                'timeout': 30.0,
                'retry': {
                    'max_attempts': 3,
                    'delay': 1.0,
                    'backoff_multiplier': 2.0,
                },
            },
            'navigation': {
                'owner_id': '',
                'orientation': 'vertical',
                'autoscroll': {
                    'margin': 2,
                    'max_velocity': 2.0,
                },
            },
            'ui': {
                'status_timeout': 6,
            },
        }

    def get_setting(self, key: str, default=None):
        """Get a setting value"""
        try:
            # Navigate nested dictionary
            keys = key.split('.')
            value = self.config_data
            for k in keys:
                if isinstance(value, dict) and k in value:
                    value = value[k]
                else:
                    return default
            return value
        except Exception as e:
            logger.error("Failed to get setting %s: %s", key, e)
            return default

    def set_setting(self, key: str, value: Any):
        """Set a setting value"""
        try:
            # Navigate nested dictionary and set value
            keys = key.split('.')
            current = self.config_data
            for k in keys[:-1]:
                if k not in current or not isinstance(current[k], dict):
                    current[k] = {}
                current = current[k]
            current[keys[-1]] = value
            self.save_json_config()

            for callback in list(self._callbacks):
                callback(key, value)

            logger.debug("Setting %s = %s", key, value)

        except Exception as e:
            logger.error("Failed to set setting %s: %s", key, e)

    def get_orientation(self) -> str:
        orientation = self.get_setting('navigation.orientation', 'vertical')
        if orientation not in ORIENTATIONS:
            logger.warning("Unknown orientation %r; using vertical", orientation)
            return 'vertical'
        return orientation

    def reset_to_defaults(self):
        """Reset all settings to defaults"""
        self.config_data = self.get_default_config()
        self.save_json_config()
        logger.info("Configuration reset to defaults")

    def _ensure_config_defaults(self, config: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """Ensure newly added keys exist in the provided config dict."""
        return self._merge_defaults(config, self.get_default_config())

    def _merge_defaults(self, config: Dict[str, Any], defaults: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        updated = False
        for key, default_value in defaults.items():
            if key not in config:
                config[key] = copy.deepcopy(default_value)
                updated = True
            elif isinstance(default_value, dict):
                if not isinstance(config[key], dict):
                    config[key] = copy.deepcopy(default_value)
                    updated = True
                else:
                    _, nested_updated = self._merge_defaults(config[key], default_value)
                    updated = updated or nested_updated
        return config, updated
