"""
Dict-backed configuration base class with YAML/JSON persistence.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union
import copy
import json
import yaml


class ConfigBase(ABC):
    """
    Base class for configuration sections.

    Values live in a plain dict and are mirrored as attributes, so a section
    reads like ``config.pid['kp']`` or ``config['frequency']``. Missing keys
    in a user supplied dict are filled from ``get_default_config``.
    """

    def __init__(self, config_dict: Optional[Dict] = None):
        """
        Args:
            config_dict: Overrides for the defaults. ``None`` means defaults only.
        """
        merged = self.get_default_config()
        if config_dict:
            self._deep_update_dict(merged, copy.deepcopy(config_dict))

        self._config = merged
        self._load_from_dict(merged)

    @abstractmethod
    def get_default_config(self) -> Dict[str, Any]:
        """Default values for this section."""
        pass

    def _load_from_dict(self, config_dict: Dict):
        for key, value in config_dict.items():
            setattr(self, key, value)

    def update(self, new_config: Dict, deep_update: bool = True):
        """
        Merge new values into the section and validate the result.

        The previous values are restored if validation fails.

        Args:
            new_config: Values to merge.
            deep_update: Recurse into nested dicts instead of replacing them.
        """
        previous = copy.deepcopy(self._config)
        if deep_update:
            self._deep_update_dict(self._config, copy.deepcopy(new_config))
        else:
            self._config.update(copy.deepcopy(new_config))
        self._load_from_dict(self._config)

        try:
            self.validate()
        except (ValueError, TypeError):
            self._config = previous
            self._load_from_dict(previous)
            raise

    def _deep_update_dict(self, original: Dict, new: Dict):
        for key, value in new.items():
            if key in original and isinstance(original[key], dict) and isinstance(value, dict):
                self._deep_update_dict(original[key], value)
            else:
                original[key] = value

    def to_dict(self) -> Dict:
        return copy.deepcopy(self._config)

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def save(self, filepath: Union[str, Path], format: str = 'yaml'):
        """
        Write the section to disk.

        Args:
            filepath: Target path; parent directories are created.
            format: 'yaml' or 'json'.
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        if format.lower() == 'yaml':
            with open(path, 'w') as f:
                yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        elif format.lower() == 'json':
            with open(path, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
        else:
            raise ValueError(f"Unsupported format: {format}")

    @classmethod
    def load(cls, filepath: Union[str, Path]):
        """Build a section from a .yaml/.yml/.json file."""
        path = Path(filepath)
        with open(path, 'r') as f:
            if path.suffix in ('.yaml', '.yml'):
                config_dict = yaml.safe_load(f) or {}
            elif path.suffix == '.json':
                config_dict = json.load(f)
            else:
                raise ValueError(f"Unsupported file format: {filepath}")

        config = cls(config_dict)
        config.validate()
        return config

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config

    def __str__(self):
        return f"{self.__class__.__name__}: {self.to_dict()}"

    def validate(self) -> bool:
        """Raise ConfigValidationError on invalid values. Subclasses override."""
        return True
