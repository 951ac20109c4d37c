"""
Configuration management system
JSON config files with defaults for every engine component
"""

from .config_manager import ConfigManager, ConfigSection
from .config_loader import load_config, save_config

__all__ = [
    'ConfigManager',
    'ConfigSection',
    'load_config',
    'save_config'
]
