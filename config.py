"""
Configuration settings for the Geo Mover simulation
Defaults live in the dictionaries below; config.yaml overrides them per section
"""

import copy
import os
import logging
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Movement engine options (all distances in coordinate degrees)
ENGINE_CONFIG = {
    'epsilon': 1e-5,        # arrival threshold
    'min_speed': 1e-6,      # slider minimum, degrees per frame
    'max_speed': 1e-4,      # slider maximum, degrees per frame
    'default_speed': 1e-5,
    'speed_step': 1e-6,     # slider granularity
    'clamp_step': False,    # True clamps each step to the remaining distance
}

# Location provider configuration
LOCATION_CONFIG = {
    'allow': True,           # False behaves like a refused permission prompt
    'source': 'fixed',       # 'fixed' or 'ip'
    'latitude': 44.4268,     # demo fix used by the 'fixed' source
    'longitude': 26.1025,
    'ip_url': 'http://ip-api.com/json',
    'timeout': 10,           # seconds
}

# ASCII map display configuration
DISPLAY_CONFIG = {
    'terminal_width': 80,
    'terminal_height': 25,
    'region_delta': 0.005,   # degrees shown around the initial fix
    'frame_rate': 60,        # engine steps per second
    'render_interval': 0.1,  # seconds between screen refreshes
    'use_colors': True,
    'current_symbol': '@',
    'target_symbol': 'X',
    'colors': {
        'current': 'blue',
        'target': 'red',
        'border': 'cyan',
        'active': 'green',
        'inactive': 'yellow',
        'error': 'red',
    },
}

# Telnet / SSH server configuration
SERVER_CONFIG = {
    'port': 8023,
    'ssh_port': 8024,
    'terminal_width': None,   # None means detect from the client
    'terminal_height': None,
    'keepalive_interval': 30,
    'debug': False,
}

DEFAULT_CONFIG_FILE = 'config.yaml'

SECTIONS = {
    'engine': ENGINE_CONFIG,
    'location': LOCATION_CONFIG,
    'display': DISPLAY_CONFIG,
    'server': SERVER_CONFIG,
}


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge overrides into a copy of base"""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def default_settings() -> Dict[str, Dict[str, Any]]:
    """Fresh copy of every configuration section"""
    return {name: copy.deepcopy(section) for name, section in SECTIONS.items()}


def load_settings(path: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load settings from a YAML file layered over the defaults

    Args:
        path: YAML file to read. Falls back to $GEOMOVER_CONFIG, then config.yaml

    Returns:
        Dictionary keyed by section name ('engine', 'location', 'display', 'server')
    """
    if path is None:
        path = os.environ.get('GEOMOVER_CONFIG', DEFAULT_CONFIG_FILE)

    settings = default_settings()

    if not os.path.exists(path):
        logger.info(f"No config file at {path}, using defaults")
        return settings

    with open(path, 'r') as file:
        data = yaml.safe_load(file) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    for name, overrides in data.items():
        if name not in settings:
            logger.warning(f"Ignoring unknown config section '{name}' in {path}")
            continue
        if not isinstance(overrides, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        settings[name] = _merge(settings[name], overrides)

    logger.info(f"Loaded settings from {path}")
    return settings
