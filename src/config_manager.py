"""
Unified Configuration System for WRF-CMAQ Preprocessing

This module provides centralized configuration management with clear hierarchy:
1. Built-in defaults (lowest priority)
2. Configuration files (YAML/JSON)
3. Environment variables
4. Command-line arguments (highest priority)
"""

import copy
import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from cmaq_variables import CMAQ_SPECIES_GROUPS, QUANTITY_REGISTRY
from logging_utils import ConfigurationError
from time_utils import DATE_PLACEHOLDER, parse_date, parse_duration
from variable_groups import VariableGroup


class PreprocessorConfig:
    """
    Unified configuration system for WRF-CMAQ preprocessing.

    Sections:
        input: Output file template, simulation window and intervals
        processing: Logging settings
        species_groups: Overrides of the default chemistry aggregates,
            as {quantity: {variable: weight}}
    """

    def __init__(self, config_file: Optional[str] = None, cli_args: Optional[Dict] = None):
        """
        Initialize configuration system with proper precedence order.

        Args:
            config_file: Path to YAML or JSON configuration file
            cli_args: Dictionary of command-line arguments (highest priority)
        """
        self.config_file = config_file
        self.cli_args = cli_args or {}
        self._config = {}
        self._load_configuration()

    def _load_configuration(self):
        """Load configuration with proper precedence order"""
        self._config = self._get_default_config()

        if self.config_file:
            file_config = self._load_config_file(self.config_file)
            self._merge_config(self._config, file_config)

        env_config = self._load_environment_config()
        self._merge_config(self._config, env_config)

        if self.cli_args:
            self._merge_config(self._config, self.cli_args)

        self._validate_configuration()

    def _get_default_config(self) -> Dict[str, Any]:
        """Built-in default configuration"""
        return {
            'input': {
                'path_template': None,  # e.g. ./DATA/CMAQ/wrfcmaq_[DATE].nc
                'start_date': None,  # YYYYMMDD
                'end_date': None,  # YYYYMMDD, exclusive
                'record_interval': '1h',
                'file_interval': '24h',
                'date_format': '%Y-%m-%d'
            },
            'processing': {
                'log_level': 'INFO',
                'log_file': None,
                'report_progress': True
            },
            'species_groups': {}
        }

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file"""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}",
                                     {'config_file': str(config_path)})

        with open(config_path, 'r') as f:
            if config_path.suffix.lower() in ['.yaml', '.yml']:
                try:
                    return yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
            elif config_path.suffix.lower() == '.json':
                try:
                    return json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
            else:
                raise ConfigurationError(f"Unsupported config file format: {config_path.suffix}")

    def _load_environment_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        env_config = {}

        env_mappings = {
            'WRFCMAQ_PATH_TEMPLATE': 'input.path_template',
            'WRFCMAQ_START_DATE': 'input.start_date',
            'WRFCMAQ_END_DATE': 'input.end_date',
            'WRFCMAQ_RECORD_INTERVAL': 'input.record_interval',
            'WRFCMAQ_FILE_INTERVAL': 'input.file_interval',
            'WRFCMAQ_LOG_LEVEL': 'processing.log_level',
            'WRFCMAQ_LOG_FILE': 'processing.log_file'
        }

        for env_var, config_path in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                self._set_nested_config(env_config, config_path, value)

        return env_config

    def _set_nested_config(self, config_dict: Dict, path: str, value: Any):
        """Set nested configuration value using dot notation path"""
        keys = path.split('.')
        current = config_dict

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        # Dates stay strings; only booleans are converted
        if isinstance(value, str) and value.lower() in ['true', 'false']:
            value = value.lower() == 'true'

        current[keys[-1]] = value

    def _merge_config(self, base_config: Dict, override_config: Dict):
        """Deep merge configuration dictionaries"""
        for key, value in override_config.items():
            if key in base_config and isinstance(base_config[key], dict) and isinstance(value, dict) \
                    and key != 'species_groups':
                self._merge_config(base_config[key], value)
            elif key == 'species_groups' and isinstance(value, dict):
                # Each group is replaced as a whole, never merged member by member
                base_config.setdefault(key, {}).update(value)
            else:
                base_config[key] = value

    def _validate_configuration(self):
        """Validate final configuration"""
        for section in ['input', 'processing', 'species_groups']:
            if section not in self._config:
                raise ConfigurationError(f"Required configuration section missing: {section}")

        self._validate_input_config()
        self._validate_processing_config()
        self._validate_species_groups()

    def _validate_input_config(self):
        """Validate input section configuration"""
        input_config = self._config['input']

        template = input_config.get('path_template')
        if template is not None and DATE_PLACEHOLDER not in str(template):
            raise ConfigurationError(f"path_template must contain the {DATE_PLACEHOLDER} placeholder: {template}",
                                     {'path_template': template})

        record_interval = parse_duration(input_config.get('record_interval'), 'record_interval')
        file_interval = parse_duration(input_config.get('file_interval'), 'file_interval')
        if file_interval < record_interval:
            raise ConfigurationError("file_interval must not be shorter than record_interval",
                                     {'record_interval': str(record_interval), 'file_interval': str(file_interval)})
        if file_interval % record_interval != timedelta(0):
            raise ConfigurationError("file_interval must be a whole multiple of record_interval",
                                     {'record_interval': str(record_interval), 'file_interval': str(file_interval)})

        start, end = input_config.get('start_date'), input_config.get('end_date')
        if start is not None and end is not None:
            if parse_date(end, 'end date') < parse_date(start, 'start date'):
                raise ConfigurationError(f"end_date {end} is before start_date {start}")

    def _validate_processing_config(self):
        """Validate processing section configuration"""
        processing = self._config['processing']

        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if str(processing.get('log_level', 'INFO')).upper() not in valid_log_levels:
            raise ConfigurationError(f"log_level must be one of: {valid_log_levels}")

        if not isinstance(processing.get('report_progress', True), bool):
            raise ConfigurationError("Processing parameter 'report_progress' must be boolean")

    def _validate_species_groups(self):
        """Validate species group overrides by building them"""
        groups = self._config.get('species_groups') or {}
        reserved = sorted(name for name in groups if name in QUANTITY_REGISTRY)
        if reserved:
            raise ConfigurationError(f"Species groups {reserved} would shadow meteorology or land use quantities",
                                     {'species_groups': reserved})
        self.get_species_groups()

    # Public interface methods
    def get(self, path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation path.

        Args:
            path: Dot-separated path to configuration value (e.g., 'input.start_date')
            default: Default value if path not found

        Returns:
            Configuration value or default if not found
        """
        keys = path.split('.')
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def get_input_config(self) -> Dict[str, Any]:
        """Get input-specific configuration"""
        return self._config['input']

    def get_processing_config(self) -> Dict[str, Any]:
        """Get processing-specific configuration"""
        return self._config['processing']

    def get_species_groups(self) -> Dict[str, VariableGroup]:
        """
        Species groups with configuration overrides applied.

        Returns:
            Dictionary of quantity name to VariableGroup
        """
        groups = dict(CMAQ_SPECIES_GROUPS)
        for name, weights in (self._config.get('species_groups') or {}).items():
            units = groups[name].units if name in groups else ''
            groups[name] = VariableGroup.from_mapping(name, weights, units)
        return groups

    def require(self, path: str) -> Any:
        """
        Get a configuration value that must be set.

        Raises:
            ConfigurationError: If the value is missing
        """
        value = self.get(path)
        if value is None:
            raise ConfigurationError(f"Required configuration value missing: {path}", {'path': path})
        return value

    def to_dict(self) -> Dict[str, Any]:
        """Return complete configuration as dictionary"""
        return copy.deepcopy(self._config)

    def save_config(self, output_path: str):
        """
        Save current configuration to file.

        Args:
            output_path: Path where to save configuration file
        """
        output_path = Path(output_path)

        if output_path.suffix.lower() in ['.yaml', '.yml']:
            with open(output_path, 'w') as f:
                yaml.dump(self._config, f, default_flow_style=False, indent=2, sort_keys=False)
        elif output_path.suffix.lower() == '.json':
            with open(output_path, 'w') as f:
                json.dump(self._config, f, indent=2)
        else:
            raise ConfigurationError(f"Unsupported output format: {output_path.suffix}")
