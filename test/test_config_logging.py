"""
Configuration loading and logging tests.

Run: python -m pytest test/test_config_logging.py -v
"""

import logging
import os
import sys
import tempfile
import orjson
import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from speedwatch.main import DEFAULT_CONFIG, loadConfig
from speedwatch.logging import getLogger
from speedwatch.logging.logger import StructuredFormatter
from speedwatch.core.ingest import Ingest


@pytest.fixture
def configFile():
    """Write a JSON config file and yield its path"""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, 'config.json')
        with open(path, 'wb') as f:
            f.write(orjson.dumps({
                'port': 8081,
                'adminKey': 'from-file',
                'dbPath': '/tmp/file.db',
                'logging': {'level': 'DEBUG'}
            }))
        yield path


class TestLoadConfig:

    def test_defaults(self):
        config = loadConfig(None, environ={})
        assert config['host'] == '0.0.0.0'
        assert config['port'] == 3000
        assert config['adminKey'] == 'changeme'
        assert config['dbPath'] == 'violations.db'
        assert config['logging'] == {'logDir': None, 'level': 'INFO'}

    def test_defaults_not_mutated(self, configFile):
        loadConfig(configFile, environ={'LOG_DIR': '/tmp/logs'})
        assert DEFAULT_CONFIG['port'] == 3000
        assert DEFAULT_CONFIG['logging']['logDir'] is None

    def test_file_overrides_defaults(self, configFile):
        config = loadConfig(configFile, environ={})
        assert config['port'] == 8081
        assert config['adminKey'] == 'from-file'
        assert config['logging'] == {'logDir': None, 'level': 'DEBUG'}

    def test_environment_overrides_file(self, configFile):
        config = loadConfig(configFile, environ={
            'PORT': '9000', 'ADMIN_KEY': 'env-secret', 'DB_FILE': '/data/v.db',
            'LOG_DIR': '/var/log/speedwatch', 'LOG_LEVEL': 'WARNING'
        })
        assert config['port'] == 9000
        assert config['adminKey'] == 'env-secret'
        assert config['dbPath'] == '/data/v.db'
        assert config['logging'] == {'logDir': '/var/log/speedwatch', 'level': 'WARNING'}

    @pytest.mark.parametrize("content", [b'[1, 2]', b'"text"', b'{"logging": []}'])
    def test_non_object_config_rejected(self, content):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'config.json')
            with open(path, 'wb') as f:
                f.write(content)
            with pytest.raises(ValueError, match="JSON object"):
                loadConfig(path, environ={})

    def test_bad_port_rejected(self):
        with pytest.raises(ValueError, match="PORT"):
            loadConfig(None, environ={'PORT': 'eighty'})


class TestLogging:

    def test_name_detected_from_class(self):
        ingest = Ingest(store=None)
        assert ingest.log.name == 'speedwatch.core.ingest.Ingest'

    def test_explicit_name(self):
        assert getLogger('speedwatch.test').name == 'speedwatch.test'

    def test_structured_fields_appended(self):
        formatter = StructuredFormatter('%(levelname)s - %(message)s')
        record = logging.LogRecord('speedwatch.test', logging.INFO, __file__, 1,
                                   "Violation stored", None, None)
        record.device = 'ESP32-01'
        record.id = 7

        assert formatter.format(record) == "INFO - Violation stored [device=ESP32-01, id=7]"
        # Original message is left untouched for other handlers
        assert record.msg == "Violation stored"

    def test_kwargs_become_fields(self):
        log = getLogger('speedwatch.test.kwargs')
        captured = []

        class Capture(logging.Handler):
            def emit(self, record):
                captured.append(record)

        handler = Capture()
        log.addHandler(handler)
        try:
            log.warning("Rejected admin request", remote='10.0.0.5')
        finally:
            log.removeHandler(handler)

        assert captured[0].remote == '10.0.0.5'
        assert captured[0].getMessage() == "Rejected admin request"
