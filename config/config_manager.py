"""Configuration management module for application settings."""

import json
import shutil
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from config.constants import ApplicationConstants, LiveLogConstants, LoggingConstants
from utils import common

logger = common.get_logger('config_manager')


@dataclass
class LiveLogSettings:
    """Live log core tuning and display toggles."""
    debounce_ms: int = LiveLogConstants.FILTER_DEBOUNCE_MS
    poll_interval_ms: int = LiveLogConstants.POLL_INTERVAL_MS
    queue_capacity: int = LiveLogConstants.EVENT_QUEUE_CAPACITY
    max_events_per_tick: int = LiveLogConstants.MAX_EVENTS_PER_TICK
    horizontal_scroll_step: int = LiveLogConstants.HORIZONTAL_SCROLL_STEP
    follow: bool = True
    level_colors: bool = True
    json_pretty: bool = False
    show_relative_time: bool = False
    line_wrap: bool = False
    saved_filters_path: str = ApplicationConstants.SAVED_FILTERS_PATH


@dataclass
class LoggingSettings:
    """Logging configuration."""
    log_level: str = LoggingConstants.DEFAULT_LOG_LEVEL
    log_to_file: bool = True


@dataclass
class AppConfig:
    """Main application configuration."""
    livelog: LiveLogSettings
    logging: LoggingSettings
    version: str = ApplicationConstants.APP_VERSION


# Environment variable -> (LiveLogSettings field, type)
ENV_OVERRIDES = {
    'BARK_DEBOUNCE_MS': ('debounce_ms', int),
    'BARK_POLL_INTERVAL_MS': ('poll_interval_ms', int),
    'BARK_QUEUE_CAPACITY': ('queue_capacity', int),
    'BARK_JSON_PRETTY': ('json_pretty', bool),
    'BARK_LINE_WRAP': ('line_wrap', bool),
}

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


def apply_env_overrides(settings: LiveLogSettings, environ: Mapping[str, str]) -> LiveLogSettings:
    """Apply ``BARK_*`` environment overrides onto live log settings in place."""
    for env_name, (field_name, kind) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue

        value: Any
        if kind is bool:
            lowered = raw.strip().lower()
            if lowered in _TRUE_VALUES:
                value = True
            elif lowered in _FALSE_VALUES:
                value = False
            else:
                logger.warning('Ignoring %s=%r: expected a boolean', env_name, raw)
                continue
        else:
            try:
                value = int(raw.strip())
            except ValueError:
                logger.warning('Ignoring %s=%r: expected an integer', env_name, raw)
                continue

        setattr(settings, field_name, value)
        logger.info('Applied %s override: %s=%r', env_name, field_name, value)

    _clamp_livelog_settings(settings)
    return settings


def _clamp_livelog_settings(settings: LiveLogSettings) -> None:
    """Reset out-of-range live log values to their defaults."""
    defaults = LiveLogSettings()
    if not (LiveLogConstants.MIN_FILTER_DEBOUNCE_MS <= settings.debounce_ms <= LiveLogConstants.MAX_FILTER_DEBOUNCE_MS):
        settings.debounce_ms = defaults.debounce_ms
        logger.warning('Filter debounce out of range, reset to %s ms', defaults.debounce_ms)
    if settings.poll_interval_ms < LiveLogConstants.MIN_POLL_INTERVAL_MS:
        settings.poll_interval_ms = defaults.poll_interval_ms
        logger.warning('Poll interval too low, reset to %s ms', defaults.poll_interval_ms)
    if settings.queue_capacity < LiveLogConstants.MIN_EVENT_QUEUE_CAPACITY:
        settings.queue_capacity = defaults.queue_capacity
        logger.warning('Event queue capacity too low, reset to %s', defaults.queue_capacity)
    if settings.max_events_per_tick < 1:
        settings.max_events_per_tick = defaults.max_events_per_tick
        logger.warning('Events per tick too low, reset to %s', defaults.max_events_per_tick)
    if settings.horizontal_scroll_step < 1:
        settings.horizontal_scroll_step = defaults.horizontal_scroll_step
        logger.warning('Horizontal scroll step too low, reset to %s', defaults.horizontal_scroll_step)


class ConfigManager:
    """Manages application configuration persistence and validation."""

    DEFAULT_CONFIG_PATH = ApplicationConstants.CONFIG_FILE_PATH
    BACKUP_CONFIG_PATH = ApplicationConstants.BACKUP_CONFIG_FILE_PATH

    def __init__(self, config_path: Optional[str] = None, backup_path: Optional[str] = None):
        self.config_path = Path(config_path or self.DEFAULT_CONFIG_PATH).expanduser()
        if backup_path:
            self.backup_path = Path(backup_path).expanduser()
        elif config_path:
            self.backup_path = self.config_path.with_suffix('.backup.json')
        else:
            self.backup_path = Path(self.BACKUP_CONFIG_PATH).expanduser()
        self._config: Optional[AppConfig] = None
        self._ensure_config_dir()

    def _ensure_config_dir(self):
        """Ensure configuration directory exists."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

    def _create_default_config(self) -> AppConfig:
        """Create default configuration."""
        return AppConfig(
            livelog=LiveLogSettings(),
            logging=LoggingSettings(),
        )

    def _validate_config(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and clean configuration dictionary."""
        default_config = asdict(self._create_default_config())

        # Merge with defaults for missing keys; unknown keys are dropped
        def merge_dict(default: Dict, user: Dict) -> Dict:
            result = default.copy()
            for key, value in user.items():
                if key in result:
                    if isinstance(value, dict) and isinstance(result[key], dict):
                        result[key] = merge_dict(result[key], value)
                    elif isinstance(result[key], dict):
                        logger.warning('Config section %s is not an object, using defaults', key)
                    else:
                        result[key] = value
            return result

        validated = merge_dict(default_config, config_dict if isinstance(config_dict, dict) else {})

        livelog_settings = validated['livelog']
        for item in fields(LiveLogSettings):
            default_value = default_config['livelog'][item.name]
            value = livelog_settings.get(item.name)
            if isinstance(default_value, bool):
                if not isinstance(value, bool):
                    livelog_settings[item.name] = default_value
                    logger.warning('Live log setting %s invalid, reset to %r', item.name, default_value)
            elif isinstance(default_value, int):
                if isinstance(value, bool) or not isinstance(value, int):
                    livelog_settings[item.name] = default_value
                    logger.warning('Live log setting %s invalid, reset to %r', item.name, default_value)
            elif not isinstance(value, str) or not value.strip():
                livelog_settings[item.name] = default_value
                logger.warning('Live log setting %s invalid, reset to %r', item.name, default_value)

        logging_settings = validated['logging']
        level = str(logging_settings.get('log_level', '')).upper()
        if level not in LoggingConstants.VALID_LOG_LEVELS:
            logging_settings['log_level'] = LoggingConstants.DEFAULT_LOG_LEVEL
            logger.warning('Log level invalid, reset to %s', LoggingConstants.DEFAULT_LOG_LEVEL)
        else:
            logging_settings['log_level'] = level
        if not isinstance(logging_settings.get('log_to_file'), bool):
            logging_settings['log_to_file'] = True

        return validated

    def _build_config(self, validated_dict: Dict[str, Any]) -> AppConfig:
        livelog = LiveLogSettings(**validated_dict['livelog'])
        _clamp_livelog_settings(livelog)
        return AppConfig(
            livelog=livelog,
            logging=LoggingSettings(**validated_dict['logging']),
            version=str(validated_dict.get('version', ApplicationConstants.APP_VERSION)),
        )

    def load_config(self) -> AppConfig:
        """Load configuration from file."""
        if self._config is not None:
            return self._config

        try:
            if self.config_path.exists():
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    config_dict = json.load(f)

                self._config = self._build_config(self._validate_config(config_dict))
                logger.info('Configuration loaded from %s', self.config_path)
            else:
                self._config = self._create_default_config()
                logger.info('Created default configuration')

        except (OSError, json.JSONDecodeError) as e:
            logger.error('Failed to load config: %s', e)
            if self.backup_path.exists():
                try:
                    logger.info('Attempting to load from backup')
                    with open(self.backup_path, 'r', encoding='utf-8') as f:
                        config_dict = json.load(f)
                    self._config = self._build_config(self._validate_config(config_dict))
                    logger.info('Configuration loaded from backup')
                except (OSError, json.JSONDecodeError) as backup_error:
                    logger.error('Backup config also failed: %s', backup_error)
                    self._config = self._create_default_config()
            else:
                self._config = self._create_default_config()

        return self._config

    def save_config(self, config: Optional[AppConfig] = None):
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            logger.warning('No configuration to save')
            return

        if self.config_path.exists():
            try:
                shutil.copy2(self.config_path, self.backup_path)
            except OSError as e:
                logger.warning('Failed to create config backup: %s', e)

        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(asdict(config), f, indent=4, ensure_ascii=False)
        except OSError as e:
            logger.error('Failed to save config: %s', e)
            raise

        self._config = config
        logger.info('Configuration saved to %s', self.config_path)

    def get_livelog_settings(self) -> LiveLogSettings:
        """Get live log settings."""
        return self.load_config().livelog

    def update_livelog_settings(self, **kwargs):
        """Update live log settings."""
        config = self.load_config()
        for key, value in kwargs.items():
            if hasattr(config.livelog, key):
                setattr(config.livelog, key, value)
            else:
                logger.warning('Unknown live log setting ignored: %s', key)
        _clamp_livelog_settings(config.livelog)
        self.save_config(config)

    def reset_to_defaults(self):
        """Reset configuration to defaults."""
        self._config = self._create_default_config()
        self.save_config()
        logger.info('Configuration reset to defaults')
