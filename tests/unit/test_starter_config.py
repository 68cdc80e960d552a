"""
Unit tests for starter.json loading and validation.
"""
import json
import pytest

from starter.starter_config import ConfigError, DEFAULT_STARTER_CONFIG, load_config, parse_config


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_writes_default(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            load_config(str(tmp_path))

        assert exc_info.value.created is True
        written = json.loads((tmp_path / 'starter.json').read_text())
        assert written == DEFAULT_STARTER_CONFIG

    def test_invalid_json(self, tmp_path):
        (tmp_path / 'starter.json').write_text('{not json')

        with pytest.raises(ConfigError) as exc_info:
            load_config(str(tmp_path))
        assert exc_info.value.created is False

    def test_loads_valid_file(self, work_dir):
        cfg = load_config(str(work_dir))
        assert cfg['owner'] == 'operator'
        assert cfg['webserverPort'] == 5055
        assert cfg['servers'][0]['id'] == 'srv-1'
        assert cfg['servers'][0]['type'] == 'remote'


class TestParseConfig:
    """Tests for parse_config."""

    def test_defaults(self):
        cfg = parse_config({})
        assert cfg == {'owner': '', 'webserverPort': None, 'servers': []}

    def test_type_defaults_to_local(self):
        cfg = parse_config({'servers': [{'id': 'a', 'command': 'server.exe'}]})
        assert cfg['servers'][0]['type'] == 'local'
        assert cfg['servers'][0]['command'] == ['server.exe']

    @pytest.mark.parametrize('document', [
        [],
        {'servers': {}},
        {'servers': ['srv-1']},
        {'servers': [{'name': 'no id'}]},
        {'servers': [{'id': 'a', 'type': 'cloud'}]},
        {'servers': [{'id': 'a', 'type': 'local'}]},
        {'servers': [{'id': 'a', 'type': 'remote', 'port': '80'}]},
        {'servers': [{'id': 'a', 'type': 'remote'}, {'id': 'a', 'type': 'remote'}]},
        {'webserverPort': 'http'},
    ])
    def test_rejects_invalid_documents(self, document):
        with pytest.raises(ConfigError):
            parse_config(document)
