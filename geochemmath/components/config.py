"""
Configuration management for geochemmath.

This module provides functionality for managing configuration,
including loading from environment variables, files and default values.
"""

import os
import json
import logging
import threading
from typing import Dict, List, Optional, Any
from copy import deepcopy
import yaml

# Set up logging
logger = logging.getLogger(__name__)


def to_int(value: Any) -> Optional[int]:
    """
    Convert a value to an integer.

    Args:
        value: Value to convert

    Returns:
        Integer value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def to_float(value: Any) -> Optional[float]:
    """
    Convert a value to a float.

    Args:
        value: Value to convert

    Returns:
        Float value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def to_list(value: Any, separator: str = ',') -> Optional[List[str]]:
    """
    Convert a value to a list.

    Args:
        value: Value to convert
        separator: Separator for string values

    Returns:
        List value, or None if conversion failed
    """
    if value is None:
        return None

    if isinstance(value, (list, tuple)):
        return list(value)

    if isinstance(value, str):
        return [item.strip() for item in value.split(separator) if item.strip()]

    return None


def to_seed(value: Any) -> Optional[int]:
    """Random seed from a raw value; blank strings and 'none' mean no seed."""
    if isinstance(value, str) and value.strip().lower() in ('', 'none', 'null'):
        return None
    return to_int(value)


class Config:
    """
    Configuration manager for geochemmath.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            overrides: Optional configuration overrides
        """
        self._lock = threading.RLock()
        self._config = {}
        self._initialized = False

        # Load configuration
        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Load configuration from all sources.

        Args:
            overrides: Optional configuration overrides
        """
        with self._lock:
            config = self._get_defaults()
            config = self._apply_env_vars(config)

            if overrides:
                config = self._apply_overrides(config, overrides)

            config = self._apply_inferred_values(config)

            self._config = config
            self._initialized = True

            logger.info("Configuration loaded")

    def _get_defaults(self) -> Dict[str, Any]:
        """
        Get default configuration values.

        Returns:
            Default configuration
        """
        return {
            # Environment
            'analysis-env': 'dev',

            # Combinatorial scan
            'scan': {
                'threshold': 0.5,         # minimum |r|
                'p-threshold': 0.05,      # maximum p-value
                'methods': ['pearson'],
                'p-value-method': 'exact',
                'tie-method': 'average'
            },

            # PCA variable suggestions
            'grouping': {
                'threshold': 0.6,
                'domain-confidence': 0.75
            },

            # PCA
            'pca': {
                'n-components': 2,
                'eigen-solver': 'eigh'
            },

            # K-means on PCA scores
            'clustering': {
                'max-k': 6,
                'max-iters': 100,
                'random-seed': None
            },

            # Logging
            'logging': {
                'level': 'warn'
            }
        }

    def _apply_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variables to configuration.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        # Environment
        if 'ANALYSIS_ENV' in os.environ:
            config['analysis-env'] = os.environ['ANALYSIS_ENV']

        # Scan
        config['scan']['threshold'] = to_float(os.environ.get('SCAN_THRESHOLD', config['scan']['threshold']))
        config['scan']['p-threshold'] = to_float(os.environ.get('SCAN_P_THRESHOLD', config['scan']['p-threshold']))
        config['scan']['methods'] = to_list(os.environ.get('SCAN_METHODS', config['scan']['methods']))
        config['scan']['p-value-method'] = os.environ.get('P_VALUE_METHOD', config['scan']['p-value-method']).lower()
        config['scan']['tie-method'] = os.environ.get('TIE_METHOD', config['scan']['tie-method']).lower()

        # Grouping
        config['grouping']['threshold'] = to_float(os.environ.get('GROUPING_THRESHOLD', config['grouping']['threshold']))

        # PCA
        config['pca']['n-components'] = to_int(os.environ.get('PCA_N_COMPONENTS', config['pca']['n-components']))
        config['pca']['eigen-solver'] = os.environ.get('PCA_EIGEN_SOLVER', config['pca']['eigen-solver']).lower()

        # Clustering
        config['clustering']['max-k'] = to_int(os.environ.get('CLUSTER_MAX_K', config['clustering']['max-k']))
        config['clustering']['max-iters'] = to_int(os.environ.get('CLUSTER_MAX_ITERS', config['clustering']['max-iters']))
        if 'CLUSTER_RANDOM_SEED' in os.environ:
            config['clustering']['random-seed'] = to_seed(os.environ['CLUSTER_RANDOM_SEED'])

        # Logging
        config['logging']['level'] = os.environ.get('LOG_LEVEL', config['logging']['level']).lower()

        return config

    def _apply_overrides(self, config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply configuration overrides.

        Args:
            config: Current configuration
            overrides: Configuration overrides

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        def deep_update(d, u):
            for k, v in u.items():
                if isinstance(v, dict) and k in d and isinstance(d[k], dict):
                    d[k] = deep_update(d[k], v)
                else:
                    d[k] = v
            return d

        return deep_update(config, overrides)

    def _apply_inferred_values(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply inferred configuration values.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        config['analysis-env-string'] = str(config['analysis-env'])

        return config

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            path: Configuration path (dot-separated)
            default: Default value if not found

        Returns:
            Configuration value, or default if not found
        """
        if not self._initialized:
            self.load_config()

        value = self._config
        for component in path.split('.'):
            if isinstance(value, dict) and component in value:
                value = value[component]
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            path: Configuration path (dot-separated)
            value: Configuration value
        """
        with self._lock:
            if not self._initialized:
                self.load_config()

            components = path.split('.')
            config = self._config
            for component in components[:-1]:
                if component not in config:
                    config[component] = {}
                config = config[component]

            config[components[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns:
            Configuration dictionary
        """
        if not self._initialized:
            self.load_config()

        return deepcopy(self._config)

    def save_to_file(self, filepath: str) -> None:
        """
        Save configuration to a file.

        Args:
            filepath: Path to save configuration
        """
        if not self._initialized:
            self.load_config()

        if filepath.endswith('.json'):
            with open(filepath, 'w') as f:
                json.dump(self._config, f, indent=2)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'w') as f:
                yaml.dump(self._config, f, default_flow_style=False)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """
        Load configuration from a file.

        Args:
            filepath: Path to load configuration from
        """
        self.load_config(load_config_file(filepath))


def load_config_file(filepath: str) -> Dict[str, Any]:
    """
    Read configuration overrides from a JSON or YAML file.

    Args:
        filepath: Path to configuration file

    Returns:
        Configuration dictionary (empty for an empty file)
    """
    if filepath.endswith('.json'):
        with open(filepath, 'r') as f:
            return json.load(f)
    elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
        with open(filepath, 'r') as f:
            return yaml.safe_load(f) or {}
    else:
        raise ValueError(f"Unsupported configuration file format: {filepath}")


class ConfigManager:
    """
    Singleton manager for configuration.
    """

    _instance = None
    _lock = threading.RLock()

    @classmethod
    def get_config(cls, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Get the configuration instance.

        Args:
            overrides: Optional configuration overrides

        Returns:
            Config instance
        """
        with cls._lock:
            if cls._instance is None:
                cls._instance = Config(overrides)
            elif overrides:
                cls._instance.load_config(overrides)

            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance so the next get_config reloads from scratch."""
        with cls._lock:
            cls._instance = None
