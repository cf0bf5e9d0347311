"""
chronokv Configuration Tests

Defaults, JSON file merge, CHRONOKV_* environment overrides and rejection
of invalid values.

Run: python -m pytest test/test_config.py -v
"""

import json
import os
import tempfile

import pytest

from chronokv.config import ConfigError, DEFAULT_CONFIG, loadConfig, validateConfig


@pytest.fixture
def configFile():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, 'config.json')

        def write(content):
            with open(path, 'w') as f:
                f.write(content if isinstance(content, str) else json.dumps(content))
            return path

        yield write


class TestLoadConfig:

    def test_defaults_without_file_or_env(self):
        config = loadConfig(None, environ={})
        assert config['backend']['type'] == 'sqlite'
        assert config['server']['port'] == 3000
        assert config['logging']['logDir'] is None

    def test_defaults_not_mutated(self):
        config = loadConfig(None, environ={'CHRONOKV_PORT': '4000'})
        config['backend']['sqlite']['dbPath'] = 'elsewhere.db'
        assert DEFAULT_CONFIG['server']['port'] == 3000
        assert DEFAULT_CONFIG['backend']['sqlite']['dbPath'] == 'data/kv_store.db'

    def test_missing_file_is_skipped(self):
        config = loadConfig('/nonexistent/chronokv.json', environ={})
        assert config['server']['port'] == 3000

    def test_file_merges_over_defaults(self, configFile):
        path = configFile({"backend": {"type": "memory"}, "server": {"port": 8080}})
        config = loadConfig(path, environ={})
        assert config['backend']['type'] == 'memory'
        assert config['server']['port'] == 8080
        # Untouched siblings survive the merge
        assert config['server']['host'] == '0.0.0.0'
        assert config['backend']['sqlite']['dbPath'] == 'data/kv_store.db'

    def test_env_overrides_file(self, configFile):
        path = configFile({"backend": {"type": "memory"}, "server": {"port": 8080}})
        config = loadConfig(path, environ={
            'CHRONOKV_BACKEND': 'mongodb',
            'CHRONOKV_MONGODB_URI': 'mongodb://db:27017',
            'CHRONOKV_PORT': '9000',
            'CHRONOKV_LOG_LEVEL': 'DEBUG'
        })
        assert config['backend']['type'] == 'mongodb'
        assert config['backend']['mongodb']['uri'] == 'mongodb://db:27017'
        assert config['server']['port'] == 9000
        assert config['logging']['level'] == 'DEBUG'

    def test_malformed_file(self, configFile):
        path = configFile('{"backend": ')
        with pytest.raises(ConfigError):
            loadConfig(path, environ={})

    def test_non_object_file(self, configFile):
        path = configFile('[1, 2]')
        with pytest.raises(ConfigError):
            loadConfig(path, environ={})

    def test_shipped_config_is_valid(self):
        shipped = os.path.join(os.path.dirname(__file__), '..', 'chronokv', 'config.json')
        config = loadConfig(shipped, environ={})
        assert config['backend']['type'] in ('sqlite', 'mongodb', 'memory')


class TestValidateConfig:

    def test_unknown_backend(self):
        with pytest.raises(ConfigError):
            loadConfig(None, environ={'CHRONOKV_BACKEND': 'redis'})

    @pytest.mark.parametrize("port", ['0', '65536', 'http', '-1'])
    def test_bad_port(self, port):
        with pytest.raises(ConfigError):
            loadConfig(None, environ={'CHRONOKV_PORT': port})

    def test_non_positive_timeout(self, configFile):
        path = configFile({"server": {"operationTimeoutSeconds": 0}})
        with pytest.raises(ConfigError):
            loadConfig(path, environ={})

    def test_normalizes_numbers(self, configFile):
        path = configFile({"backend": {"sqlite": {"busyTimeoutSeconds": "2.5"}},
                           "server": {"maxBodyBytes": "1024"}})
        config = loadConfig(path, environ={})
        assert config['backend']['sqlite']['busyTimeoutSeconds'] == 2.5
        assert config['server']['maxBodyBytes'] == 1024

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            validateConfig({"backend": {"type": "sqlite"}})
