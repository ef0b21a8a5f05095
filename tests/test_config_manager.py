"""
Basic tests for configuration management module.

Tests basic functionality of the PreprocessorConfig class including
configuration loading, precedence, validation, and access methods.
"""

import pytest
import tempfile
import json
from pathlib import Path

import yaml

import sys
sys.path.append(str(Path(__file__).parent.parent / "src"))

from config_manager import PreprocessorConfig
from logging_utils import ConfigurationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep WRFCMAQ_* variables from the calling shell out of the tests"""
    for name in ['WRFCMAQ_PATH_TEMPLATE', 'WRFCMAQ_START_DATE', 'WRFCMAQ_END_DATE',
                 'WRFCMAQ_RECORD_INTERVAL', 'WRFCMAQ_FILE_INTERVAL',
                 'WRFCMAQ_LOG_LEVEL', 'WRFCMAQ_LOG_FILE']:
        monkeypatch.delenv(name, raising=False)


def test_config_initialization():
    """Test that configuration initializes with defaults"""
    config = PreprocessorConfig()

    assert 'input' in config.to_dict()
    assert 'processing' in config.to_dict()
    assert 'species_groups' in config.to_dict()
    assert config.get('input.record_interval') == '1h'
    assert config.get('input.file_interval') == '24h'


def test_config_get_method():
    """Test configuration get method with dot notation"""
    config = PreprocessorConfig()

    assert config.get('processing.log_level') == 'INFO'

    missing_value = config.get('nonexistent.key', 'default_value')
    assert missing_value == 'default_value'


def test_config_sections():
    """Test configuration section access methods"""
    config = PreprocessorConfig()

    input_config = config.get_input_config()
    assert isinstance(input_config, dict)
    assert 'path_template' in input_config

    processing_config = config.get_processing_config()
    assert isinstance(processing_config, dict)
    assert processing_config['report_progress'] is True


def test_config_from_json_file():
    """Test loading configuration from JSON file"""
    test_config = {
        'input': {
            'path_template': './DATA/wrfcmaq_[DATE].nc',
            'start_date': '20050101',
            'end_date': '20050103'
        }
    }

    with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
        json.dump(test_config, f)
        temp_file = f.name

    try:
        config = PreprocessorConfig(config_file=temp_file)

        # File values override defaults, untouched defaults remain
        assert config.get('input.path_template') == './DATA/wrfcmaq_[DATE].nc'
        assert config.get('input.start_date') == '20050101'
        assert config.get('input.record_interval') == '1h'

    finally:
        Path(temp_file).unlink()


def test_config_from_yaml_file(tmp_path):
    """Test loading configuration from YAML file"""
    config_file = tmp_path / "wrfcmaq.yaml"
    config_file.write_text(yaml.dump({
        'input': {'record_interval': '3h'},
        'processing': {'report_progress': False}
    }))

    config = PreprocessorConfig(config_file=str(config_file))

    assert config.get('input.record_interval') == '3h'
    assert config.get('processing.report_progress') is False


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigurationError):
        PreprocessorConfig(config_file=str(tmp_path / "missing.yaml"))


def test_unsupported_config_format(tmp_path):
    config_file = tmp_path / "wrfcmaq.toml"
    config_file.write_text("[input]\n")

    with pytest.raises(ConfigurationError):
        PreprocessorConfig(config_file=str(config_file))


def test_environment_overrides_file(tmp_path, monkeypatch):
    """Test that environment variables take precedence over the file"""
    config_file = tmp_path / "wrfcmaq.json"
    config_file.write_text(json.dumps({'input': {'start_date': '20050101', 'end_date': '20050201'}}))
    monkeypatch.setenv('WRFCMAQ_START_DATE', '20050115')

    config = PreprocessorConfig(config_file=str(config_file))

    assert config.get('input.start_date') == '20050115'
    assert config.get('input.end_date') == '20050201'


def test_config_cli_override(monkeypatch):
    """Test CLI argument override"""
    monkeypatch.setenv('WRFCMAQ_LOG_LEVEL', 'WARNING')
    cli_args = {
        'processing': {
            'log_level': 'DEBUG'
        }
    }

    config = PreprocessorConfig(cli_args=cli_args)

    # CLI args win over environment and defaults
    assert config.get('processing.log_level') == 'DEBUG'


def test_species_group_override():
    """Test that a configured group replaces the default as a whole"""
    config = PreprocessorConfig(cli_args={
        'species_groups': {'pno': {'ANO3I': 1.0, 'ANO3J': 1.0}}
    })

    groups = config.get_species_groups()

    assert groups['pno'].as_dict() == {'ANO3I': 1.0, 'ANO3J': 1.0}
    assert groups['pno'].units == groups['ps'].units
    assert groups['total_pm25'].variables == ('TotalPM25',)


def test_new_species_group():
    config = PreprocessorConfig(cli_args={'species_groups': {'so4': {'ASO4I': 1.0, 'ASO4J': 1.0}}})
    assert 'so4' in config.get_species_groups()


def test_species_group_cannot_shadow_quantity():
    """Test that group names must not collide with derived or raw quantities"""
    with pytest.raises(ConfigurationError) as exc_info:
        PreprocessorConfig(cli_args={'species_groups': {'p': {'PRES': 1.0}, 'so4': {'ASO4I': 1.0}}})

    assert exc_info.value.context['species_groups'] == ['p']


@pytest.mark.parametrize("overrides", [
    {'input': {'path_template': './DATA/wrfcmaq.nc'}},
    {'input': {'record_interval': 'hourly'}},
    {'input': {'record_interval': '24h', 'file_interval': '1h'}},
    {'input': {'record_interval': '1h', 'file_interval': '90m'}},
    {'input': {'start_date': '20050201', 'end_date': '20050101'}},
    {'input': {'start_date': '2005-02-01', 'end_date': '20050301'}},
    {'processing': {'log_level': 'CHATTY'}},
    {'processing': {'report_progress': 'yes'}},
    {'species_groups': {'pno': {}}},
    {'species_groups': {'pno': {'ANO3I': 'one'}}},
    {'species_groups': {'t': {'TEMP2': 1.0}}},
    {'species_groups': {'height': {'ZH': 1.0}}},
])
def test_config_validation_errors(overrides):
    """Test that invalid settings are rejected at load time"""
    with pytest.raises(ConfigurationError):
        PreprocessorConfig(cli_args=overrides)


def test_require():
    config = PreprocessorConfig(cli_args={'input': {'start_date': '20050101'}})

    assert config.require('input.start_date') == '20050101'
    with pytest.raises(ConfigurationError):
        config.require('input.path_template')


def test_save_and_reload(tmp_path):
    """Test that a saved configuration loads back to the same values"""
    config = PreprocessorConfig(cli_args={
        'input': {'path_template': './DATA/wrfcmaq_[DATE].nc', 'start_date': '20050101', 'end_date': '20050102'}
    })
    output = tmp_path / "saved.yaml"

    config.save_config(str(output))
    reloaded = PreprocessorConfig(config_file=str(output))

    assert reloaded.to_dict() == config.to_dict()


def test_to_dict_is_a_copy():
    config = PreprocessorConfig()
    config.to_dict()['input']['record_interval'] = '6h'

    assert config.get('input.record_interval') == '1h'


if __name__ == '__main__':
    pytest.main([__file__])
