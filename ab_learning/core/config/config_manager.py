"""
Configuration Manager
Manages all tunable parameters of the learning engine
Supports change tracking and change listeners
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class ConfigSection:
    """A section of configuration"""
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'data': self.data,
            'description': self.description
        }

    def update(self, updates: Dict[str, Any]):
        self.data.update(updates)
        logger.debug(f"Config section '{self.name}' updated: {updates}")


class ConfigManager:
    """
    Central configuration manager

    Features:
    - Load/save from JSON files
    - Defaults for every section, overridden key by key on load
    - Change tracking
    - Change listeners
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize config manager

        Args:
            config_path: JSON file to load (defaults only if None or missing)
        """
        self.config_path = config_path
        self.sections: Dict[str, ConfigSection] = {}
        self._change_history: list = []
        self._listeners: list = []

        self._init_default_config()

        if self.config_path and os.path.exists(self.config_path):
            self.load()

    def _init_default_config(self):
        """Initialize default configuration sections"""
        self.add_section('bandits', {
            'initial_exploration': 0.3,
            'min_exploration': 0.05,
            'exploration_decay': 0.95,
            'min_trials_before_exploitation': 10,
            'seed': None
        }, "Thompson sampling and contextual selection")

        self.add_section('evaluation', {
            'n_trials': 10000,
            'confidence_threshold': 0.95
        }, "Monte-Carlo A/B evaluation")

        self.add_section('evolution', {
            'population_size': 5,
            'generations': 3,
            'mutation_rate': 0.2,
            'tournament_size': 3
        }, "Genetic algorithm evolution configuration")

        self.add_section('preference', {
            'boost': 0.1
        }, "Pairwise preference pseudo-count")

        self.add_section('maintenance', {
            'interval_seconds': 3600,
            'prune_min_trials': 20,
            'prune_max_win_rate': 0.05,
            'population_size': 5,
            'generations': 2
        }, "Periodic prune/evolve/decay cycle")

        self.add_section('generation', {
            'use_ollama': False,
            'base_url': 'http://localhost:11434',
            'model': 'qwen2.5-coder:1.5b',
            'timeout': 120,
            'temperature': 0.7,
            'max_tokens': 1000
        }, "Generative backend for crossover and mutation")

        self.add_section('retry', {
            'max_retries': 3,
            'strategy': 'exponential',
            'base_delay': 1.0,
            'max_delay': 60.0,
            'multiplier': 2.0
        }, "Retry logic for generative backend calls")

        self.add_section('storage', {
            'db_path': '.ab_learning/ab_learning.db'
        }, "SQLite storage")

        self.add_section('recording', {
            'enabled': False,
            'storage_path': '.ab_learning/decisions.db'
        }, "Decision recording and audit configuration")

    def add_section(self, name: str, data: Dict[str, Any], description: str = ""):
        """Add (or replace) a configuration section"""
        self.sections[name] = ConfigSection(name=name, data=dict(data), description=description)

    def get_section(self, name: str) -> Optional[ConfigSection]:
        return self.sections.get(name)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a configuration value"""
        section_obj = self.get_section(section)
        if section_obj:
            return section_obj.data.get(key, default)
        return default

    def set(self, section: str, key: str, value: Any):
        """Set a configuration value"""
        section_obj = self.get_section(section)
        if not section_obj:
            self.add_section(section, {})
            section_obj = self.get_section(section)

        old_value = section_obj.data.get(key)
        section_obj.data[key] = value

        self._track_change(section, key, old_value, value)
        self._notify_listeners(section, key, old_value, value)

    def update_section(self, section: str, updates: Dict[str, Any]):
        """Update multiple values in a section"""
        section_obj = self.get_section(section)
        if not section_obj:
            self.add_section(section, {})
            section_obj = self.get_section(section)

        old_values = section_obj.data.copy()
        section_obj.update(updates)

        for key, value in updates.items():
            old_value = old_values.get(key)
            self._track_change(section, key, old_value, value)
            self._notify_listeners(section, key, old_value, value)

    def _track_change(self, section: str, key: str, old_value: Any, new_value: Any):
        self._change_history.append({
            'timestamp': datetime.now().isoformat(),
            'section': section,
            'key': key,
            'old_value': old_value,
            'new_value': new_value
        })

        # Keep only last 1000 changes
        if len(self._change_history) > 1000:
            self._change_history = self._change_history[-1000:]

    def add_listener(self, callback: Callable[[str, str, Any, Any], None]):
        """Add a callback for configuration changes"""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[str, str, Any, Any], None]):
        """Remove a previously added callback; unknown callbacks are ignored"""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify_listeners(self, section: str, key: str, old_value: Any, new_value: Any):
        for listener in list(self._listeners):
            try:
                listener(section, key, old_value, new_value)
            except Exception as e:
                logger.error(f"Error in config listener: {e}")

    def load(self, path: Optional[str] = None):
        """
        Load configuration from a JSON file

        Values in the file override defaults key by key; keys the file does
        not mention keep their current value. Accepts both the full section
        form written by save() and plain {section: {key: value}} dicts.
        """
        load_path = path or self.config_path
        if not load_path or not os.path.exists(load_path):
            logger.warning(f"Config file not found: {load_path}, using defaults")
            return

        with open(load_path, 'r') as f:
            data = json.load(f)

        for section_name, section_data in data.items():
            if not isinstance(section_data, dict):
                continue
            values = section_data['data'] if 'data' in section_data else section_data
            existing = self.get_section(section_name)
            if existing:
                existing.data.update(values)
                if section_data.get('description'):
                    existing.description = section_data['description']
            else:
                self.add_section(section_name, values, section_data.get('description', ''))

        logger.info(f"Configuration loaded from {load_path}")

    def save(self, path: Optional[str] = None):
        """Save configuration to a JSON file"""
        save_path = path or self.config_path
        if not save_path:
            raise ValueError("No path given and no config_path set")

        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(save_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Configuration saved to {save_path}")

    def to_dict(self) -> Dict:
        return {name: section.to_dict() for name, section in self.sections.items()}

    def get_change_history(self, limit: int = 100) -> list:
        """Get recent configuration changes"""
        return self._change_history[-limit:]

    def reset_to_defaults(self):
        self.sections.clear()
        self._init_default_config()
        logger.info("Configuration reset to defaults")
