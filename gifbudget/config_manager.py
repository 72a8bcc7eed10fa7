"""
Configuration Manager for GIF Budget
Handles loading presets and encoder settings from YAML files and CLI arguments
"""

import os
import copy
import logging
from typing import Dict, Any, List, Optional

import yaml

from .error_handler import ConstraintError
from .models import ConstraintSet, ProfileTable
from .profiles import parse_profile_table

logger = logging.getLogger(__name__)

CONFIG_FILES = ['gif_budget.yaml', 'logging.yaml']

DEFAULT_PRESET_ID = 'wechat'
DEFAULT_PRESET = {
    'name': 'WeChat sticker',
    'max_mb': 9,
    'max_width': 1024,
    'tolerance_mb': 1,
    'min_duration': 0,
    'max_duration': 4,
    'duration_epsilon': 0.02,
    'prefer_stable_timing': True,
    'verbose': False,
    'show_encoder_log': False,
}

POSITIVE_PRESET_KEYS = ('max_mb', 'tolerance_mb', 'max_width')
NON_NEGATIVE_PRESET_KEYS = ('min_duration', 'max_duration', 'duration_epsilon')


def packaged_config_dir() -> str:
    return os.path.join(os.path.abspath(os.path.dirname(__file__)), 'config')


class ConfigManager:
    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = config_dir or packaged_config_dir()
        self.config: Dict[str, Any] = {}
        self._load_all_configs()

    def _load_all_configs(self):
        """Load each config file from the config dir, falling back to packaged defaults"""
        for config_file in CONFIG_FILES:
            for directory in (self.config_dir, packaged_config_dir()):
                config_path = os.path.join(directory, config_file)
                if not os.path.exists(config_path):
                    continue
                with open(config_path, 'r', encoding='utf-8') as file:
                    config_data = yaml.safe_load(file)
                if config_data:
                    self.config.update(config_data)
                logger.debug(f"Loaded config from {config_path}")
                break
            else:
                logger.warning(f"Config file not found in '{self.config_dir}' or packaged defaults: {config_file}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: get('gif_budget.presets.wechat.max_mb')
        """
        value = self.config
        try:
            for key in key_path.split('.'):
                value = value[key]
            return value
        except (KeyError, TypeError):
            logger.debug(f"Configuration key '{key_path}' not found, using default: {default}")
            return default

    def update_from_args(self, args_dict: Dict[str, Any]):
        """Update configuration with command line arguments"""
        applied = 0
        for key, value in args_dict.items():
            if value is not None:
                old_value = self.get(key)
                self._set_nested_value(key, value)
                applied += 1
                logger.info(f"Configuration override applied: {key} = {value} (was: {old_value})")

        if not applied:
            logger.debug("No CLI configuration overrides to apply")

    def _set_nested_value(self, key_path: str, value: Any):
        """Set nested configuration value using dot notation"""
        keys = key_path.split('.')
        config_section = self.config
        for key in keys[:-1]:
            if not isinstance(config_section.get(key), dict):
                config_section[key] = {}
            config_section = config_section[key]
        config_section[keys[-1]] = value

    def list_presets(self) -> Dict[str, Dict[str, Any]]:
        presets = self.get('gif_budget.presets', {}) or {}
        if DEFAULT_PRESET_ID not in presets:
            presets = dict(presets)
            presets[DEFAULT_PRESET_ID] = dict(DEFAULT_PRESET)
        return presets

    def get_preset(self, preset_id: Optional[str] = None) -> Dict[str, Any]:
        """Return a preset merged over the built-in defaults"""
        preset_id = preset_id or self.get('gif_budget.default_preset', DEFAULT_PRESET_ID)
        presets = self.list_presets()
        if preset_id not in presets:
            raise ConstraintError(f"Unknown preset '{preset_id}' (available: {', '.join(sorted(presets))})")
        merged = copy.deepcopy(DEFAULT_PRESET)
        merged.update(presets[preset_id] or {})
        merged['id'] = preset_id
        return merged

    def constraints_for(self, preset_id: Optional[str] = None,
                        overrides: Optional[Dict[str, Any]] = None) -> ConstraintSet:
        """Build a validated ConstraintSet from a preset plus optional overrides"""
        preset = self.get_preset(preset_id)
        for key, value in (overrides or {}).items():
            if value is not None:
                preset[key] = value
        try:
            constraints = ConstraintSet.from_mb(
                float(preset['max_mb']),
                float(preset['tolerance_mb']),
                int(preset['max_width']),
                min_duration=float(preset['min_duration']),
                max_duration=float(preset['max_duration']),
                duration_epsilon=float(preset['duration_epsilon']),
                prefer_stable_timing=bool(preset['prefer_stable_timing']),
                verbose=bool(preset['verbose']),
                show_encoder_log=bool(preset['show_encoder_log']),
            )
        except (TypeError, ValueError) as e:
            raise ConstraintError(f"Invalid preset '{preset['id']}': {e}") from e
        constraints.validate()
        return constraints

    def get_custom_profiles(self) -> Optional[ProfileTable]:
        rows = self.get('gif_budget.profiles') or []
        if not rows:
            return None
        return parse_profile_table(rows)

    def get_encoder_config(self) -> Dict[str, Any]:
        encoder_cfg = self.get('gif_budget.encoder', {}) or {}
        return {
            'binary': str(encoder_cfg.get('binary') or 'ffmpeg'),
            'timeout': int(encoder_cfg.get('timeout_seconds', 120)),
            'workspace_dir': encoder_cfg.get('workspace_dir'),
        }

    def validate_config(self) -> bool:
        """Validate presets, the custom profile table and encoder settings"""
        errors: List[str] = []

        presets = self.get('gif_budget.presets', {})
        if presets is not None and not isinstance(presets, dict):
            errors.append("gif_budget.presets must be a mapping")
            presets = {}

        for preset_id, preset in (presets or {}).items():
            if not isinstance(preset, dict):
                errors.append(f"Preset '{preset_id}' must be a mapping")
                continue
            for key in POSITIVE_PRESET_KEYS:
                value = preset.get(key, DEFAULT_PRESET[key])
                if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                    errors.append(f"Invalid {key} for preset '{preset_id}': {value} (must be positive number)")
            for key in NON_NEGATIVE_PRESET_KEYS:
                value = preset.get(key, DEFAULT_PRESET[key])
                if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                    errors.append(f"Invalid {key} for preset '{preset_id}': {value} (must be non-negative number)")
            min_d = preset.get('min_duration', DEFAULT_PRESET['min_duration'])
            max_d = preset.get('max_duration', DEFAULT_PRESET['max_duration'])
            if isinstance(min_d, (int, float)) and isinstance(max_d, (int, float)) and min_d > max_d:
                errors.append(f"Preset '{preset_id}': min_duration {min_d} exceeds max_duration {max_d}")

        default_preset = self.get('gif_budget.default_preset', DEFAULT_PRESET_ID)
        if default_preset not in self.list_presets():
            errors.append(f"Default preset '{default_preset}' is not defined")

        try:
            self.get_custom_profiles()
        except ConstraintError as e:
            errors.append(f"gif_budget.profiles: {e}")

        timeout = self.get('gif_budget.encoder.timeout_seconds', 120)
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            errors.append(f"Invalid encoder timeout_seconds: {timeout} (must be positive number)")

        for error in errors:
            logger.error(error)
        if errors:
            return False
        logger.info("Configuration validation passed")
        return True
