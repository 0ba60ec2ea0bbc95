"""
Tests for the configuration module.
"""

import pytest
import json
import sys
import os
import yaml

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from geochemmath.components.config import (
    Config, ConfigManager, to_int, to_float, to_list, to_seed, load_config_file
)

ENV_VARS = [
    'ANALYSIS_ENV', 'SCAN_THRESHOLD', 'SCAN_P_THRESHOLD', 'SCAN_METHODS',
    'P_VALUE_METHOD', 'TIE_METHOD', 'GROUPING_THRESHOLD', 'PCA_N_COMPONENTS',
    'PCA_EIGEN_SOLVER', 'CLUSTER_MAX_K', 'CLUSTER_MAX_ITERS',
    'CLUSTER_RANDOM_SEED', 'LOG_LEVEL'
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Run every test without configuration environment variables."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    ConfigManager.reset()
    yield
    ConfigManager.reset()


class TestConverters:
    """Tests for the value conversion helpers."""

    def test_to_int(self):
        assert to_int('5') == 5
        assert to_int(None) is None
        assert to_int('five') is None

    def test_to_float(self):
        assert to_float('0.25') == 0.25
        assert to_float('abc') is None

    def test_to_list(self):
        assert to_list('pearson, spearman') == ['pearson', 'spearman']
        assert to_list(['pearson']) == ['pearson']
        assert to_list(('a', 'b')) == ['a', 'b']
        assert to_list(3) is None

    def test_to_seed(self):
        assert to_seed('42') == 42
        assert to_seed('none') is None
        assert to_seed('') is None
        assert to_seed(None) is None


class TestConfig:
    """Tests for the Config class."""

    def test_defaults(self):
        """Test the default values."""
        config = Config()

        assert config.get('analysis-env') == 'dev'
        assert config.get('analysis-env-string') == 'dev'
        assert config.get('scan.threshold') == 0.5
        assert config.get('scan.p-threshold') == 0.05
        assert config.get('scan.methods') == ['pearson']
        assert config.get('scan.p-value-method') == 'exact'
        assert config.get('scan.tie-method') == 'average'
        assert config.get('grouping.threshold') == 0.6
        assert config.get('pca.n-components') == 2
        assert config.get('clustering.max-k') == 6
        assert config.get('clustering.random-seed') is None
        assert config.get('logging.level') == 'warn'

    def test_env_overrides(self, monkeypatch):
        """Test values taken from environment variables."""
        monkeypatch.setenv('ANALYSIS_ENV', 'prod')
        monkeypatch.setenv('SCAN_THRESHOLD', '0.8')
        monkeypatch.setenv('SCAN_METHODS', 'pearson,spearman')
        monkeypatch.setenv('P_VALUE_METHOD', 'LEGACY')
        monkeypatch.setenv('PCA_N_COMPONENTS', '3')
        monkeypatch.setenv('CLUSTER_RANDOM_SEED', '7')
        monkeypatch.setenv('LOG_LEVEL', 'DEBUG')

        config = Config()

        assert config.get('analysis-env-string') == 'prod'
        assert config.get('scan.threshold') == 0.8
        assert config.get('scan.methods') == ['pearson', 'spearman']
        assert config.get('scan.p-value-method') == 'legacy'
        assert config.get('pca.n-components') == 3
        assert config.get('clustering.random-seed') == 7
        assert config.get('logging.level') == 'debug'

    def test_overrides_deep_update(self):
        """Test that nested overrides keep sibling values."""
        config = Config({'scan': {'threshold': 0.9}, 'clustering': {'random-seed': 1}})

        assert config.get('scan.threshold') == 0.9
        assert config.get('scan.p-threshold') == 0.05
        assert config.get('clustering.random-seed') == 1
        assert config.get('clustering.max-k') == 6

    def test_get_missing(self):
        config = Config()
        assert config.get('scan.missing') is None
        assert config.get('nope.nothing', 'fallback') == 'fallback'

    def test_set(self):
        """Test setting nested values."""
        config = Config()
        config.set('scan.threshold', 0.3)
        config.set('extra.nested.value', 1)

        assert config.get('scan.threshold') == 0.3
        assert config.get('extra.nested.value') == 1

    def test_to_dict_is_a_copy(self):
        config = Config()
        data = config.to_dict()
        data['scan']['threshold'] = 0.99

        assert config.get('scan.threshold') == 0.5

    def test_save_and_load_json(self, tmp_path):
        """Test a JSON round trip through a file."""
        path = str(tmp_path / 'config.json')
        config = Config({'scan': {'threshold': 0.75}})
        config.save_to_file(path)

        with open(path) as f:
            assert json.load(f)['scan']['threshold'] == 0.75

        loaded = Config()
        loaded.load_from_file(path)
        assert loaded.get('scan.threshold') == 0.75

    def test_save_and_load_yaml(self, tmp_path):
        """Test a YAML round trip through a file."""
        path = str(tmp_path / 'config.yaml')
        Config({'pca': {'eigen-solver': 'power'}}).save_to_file(path)

        with open(path) as f:
            assert yaml.safe_load(f)['pca']['eigen-solver'] == 'power'

        loaded = Config()
        loaded.load_from_file(path)
        assert loaded.get('pca.eigen-solver') == 'power'

    def test_unsupported_format(self, tmp_path):
        config = Config()
        with pytest.raises(ValueError):
            config.save_to_file(str(tmp_path / 'config.ini'))
        with pytest.raises(ValueError):
            load_config_file(str(tmp_path / 'config.ini'))

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / 'empty.yml'
        path.write_text('')
        assert load_config_file(str(path)) == {}


class TestConfigManager:
    """Tests for the shared configuration instance."""

    def test_singleton(self):
        first = ConfigManager.get_config()
        second = ConfigManager.get_config()
        assert first is second

    def test_overrides_reload(self):
        config = ConfigManager.get_config()
        ConfigManager.get_config({'scan': {'threshold': 0.42}})

        assert config.get('scan.threshold') == 0.42

    def test_reset(self):
        first = ConfigManager.get_config()
        ConfigManager.reset()
        assert ConfigManager.get_config() is not first
