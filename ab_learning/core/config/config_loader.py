"""
Configuration loader utilities
"""

from .config_manager import ConfigManager


def load_config(path: str) -> ConfigManager:
    """
    Load configuration from a JSON file

    Args:
        path: Path to config file

    Returns:
        ConfigManager with file values layered over the defaults
    """
    config = ConfigManager()
    config.load(path)
    config.config_path = path
    return config


def save_config(config: ConfigManager, path: str):
    """
    Save configuration to file

    Args:
        config: ConfigManager instance
        path: Path to save config file
    """
    config.save(path)
