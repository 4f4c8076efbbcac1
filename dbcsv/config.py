# dbcsv/config.py
"""
Configuration management for CSV conversion defaults.
Supports YAML configuration files whose ``settings`` section overrides the
built-in defaults in :mod:`dbcsv.defaults`.
"""

import datetime as dt
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional

from .defaults import settings

try:
    import yaml
except ImportError:
    raise ImportError("PyYAML is required. Install with: pip install PyYAML")

import pytz

logger = logging.getLogger(__name__)

CONFIG_CANDIDATES = ('dbcsv.yml', 'dbcsv.yaml')

_OFFSET_PATTERN = re.compile(r'^([+-])(\d{2}):?(\d{2})$')


class ConfigManager:
    """
    Manage dbcsv configuration from YAML files.

    Configuration File Structure
    ----------------------------
    ::

        # dbcsv.yml
        settings:
          delimiter: "|"
          byte_encoding: hex
          float_format: "%.4f"
          default_timezone: America/Chicago
          logging:
            directory: /var/log/exports
            level: DEBUG

    Configuration Locations
    -----------------------
    ConfigManager searches for configuration files in this order:

    1. File specified in config_file parameter
    2. ``./dbcsv.yml`` (current directory)
    3. ``./dbcsv.yaml`` (current directory)
    4. ``~/.config/dbcsv.yml`` (user config directory)
    5. ``~/.config/dbcsv.yaml`` (user config directory)

    Parameters
    ----------
    config_file : str or Path, optional
        Path to YAML config file. If None, searches standard locations.

    Raises
    ------
    FileNotFoundError
        If no config file exists in any search location
    ValueError
        If config file is invalid or malformed
    """

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()

        # Apply global settings
        self._apply_settings()

    def _find_config_file(self, config_file: Optional[str]) -> Path:
        """Find the configuration file."""
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            return path

        candidates = [Path(name) for name in CONFIG_CANDIDATES]
        candidates += [Path.home() / '.config' / name for name in CONFIG_CANDIDATES]
        for candidate in candidates:
            if candidate.exists():
                return candidate

        raise FileNotFoundError(
            "No config file found. Looked in: " +
            ", ".join(str(c) for c in candidates)
        )

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate configuration file."""
        try:
            with open(self.config_file, 'r') as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to load config file {self.config_file}: {e}")

        if not isinstance(config, dict):
            raise ValueError(f"Invalid config file {self.config_file}.")
        if not isinstance(config.get('settings', {}), dict):
            raise ValueError(f"Invalid config file {self.config_file}: 'settings' must be a dictionary")

        logger.info(f"Loaded config from {self.config_file}")
        return config

    def _apply_settings(self) -> None:
        """Merge the file's settings into the global defaults."""
        config_settings = self.config.get('settings') or {}
        settings.update(config_settings)

        default_tz = config_settings.get('default_timezone')
        if default_tz:
            # fail at load time rather than on the first naive datetime
            get_timezone(default_tz)
            logger.info(f"Set default timezone to: {default_tz}")

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value from the config.

        Args:
            key: Setting key (supports dot notation like 'logging.level')
            default: Default value if key not found

        Returns:
            Setting value or default
        """
        return _lookup(self.config.get('settings') or {}, key, default)

    def set_setting(self, key: str, value: Any) -> None:
        """
        Set a setting value and save config.

        Args:
            key: Setting key (supports dot notation)
            value: Setting value
        """
        current = self.config.setdefault('settings', {})
        keys = key.split('.')
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        current[keys[-1]] = value

        with open(self.config_file, 'w') as f:
            yaml.safe_dump(self.config, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved setting '{key}' to {self.config_file}")

        self._apply_settings()


def _lookup(source: Dict[str, Any], key: str, default: Any = None) -> Any:
    value = source
    for k in key.split('.'):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    return value


_config_manager: Optional[ConfigManager] = None
_config_searched = False


def set_config_file(config_file: str) -> None:
    """Set the configuration file to use globally."""
    global _config_manager, _config_searched
    _config_manager = ConfigManager(config_file)
    _config_searched = True


def _get_config_manager() -> Optional[ConfigManager]:
    global _config_manager, _config_searched
    if _config_manager is None and not _config_searched:
        _config_searched = True
        try:
            _config_manager = ConfigManager()
        except FileNotFoundError:
            logger.debug("No config file found, using built-in defaults")
    return _config_manager


def get_setting(key: str, default: Any = None, config_file: Optional[str] = None) -> Any:
    """
    Get a setting value from configuration.

    Values from a config file take precedence over the built-in defaults. When
    no config file exists the built-in defaults are used.

    Args:
        key: Setting key (supports dot notation like 'logging.level')
        default: Default value if key not found
        config_file: Optional path to config file

    Returns:
        Setting value or default

    Example:
        delimiter = get_setting('delimiter', ',')
        level = get_setting('logging.level', 'INFO')
    """
    if config_file:
        return ConfigManager(config_file).get_setting(key, default)

    _get_config_manager()
    return _lookup(settings, key, default)


def get_timezone(name: Optional[str] = None) -> dt.tzinfo:
    """
    Resolve a timezone name.

    Accepts ``UTC``, fixed offsets like ``+05:00`` or ``-0800``, and IANA names
    like ``America/New_York``. When name is None the ``default_timezone``
    setting is used.

    Raises:
        ValueError: If the name cannot be resolved
    """
    if name is None:
        name = get_setting('default_timezone') or 'UTC'
    if name.upper() in ('UTC', 'Z', 'GMT'):
        return pytz.utc

    offset_match = _OFFSET_PATTERN.match(name)
    if offset_match:
        sign = 1 if offset_match.group(1) == '+' else -1
        total_minutes = sign * (int(offset_match.group(2)) * 60 + int(offset_match.group(3)))
        return dt.timezone(dt.timedelta(minutes=total_minutes))

    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone: {name}")
