"""
Configuration Loader Module

Handles loading and parsing YAML configuration files for host pool rollouts.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional
import yaml


logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    'azure': {
        'vm_resource_group': None,
    },
    'repository': {
        'images_dir': 'LatestImages',
        'template_file': 'Templates/hostpool-template.json',
        'parameters_file': 'Templates/hostpool-parameters.json',
        'staging_dir': None,
    },
    'naming': {
        'host_pool': '{env}-app-avd-{folder_name}',
        'vm_name_prefix': '{env}-sn-{segment}',
        'workspace': '{env}-ws-avd',
        'desktop_friendly_name': 'Schuecal_{segment}',
        'application_group': '{host_pool}-DAG',
        'deployment_name': '{host_pool}-deployment',
        'image_resource_id': (
            '/subscriptions/{subscription_id}/resourceGroups/{resource_group}'
            '/providers/Microsoft.Compute/images/{folder_name}'
        ),
        'segment_index': 3,
        'min_segments': 4,
    },
    'parameters': {
        'host_pool_name': 'hostpoolName',
        'host_pool_friendly_name': 'hostpoolFriendlyName',
        'token_expiration': 'tokenExpirationTime',
        'vm_image_resource_id': 'vmCustomImageSourceId',
        'vm_name_prefix': 'vmNamePrefix',
        'workspace_name': 'workSpaceName',
    },
    'timing': {
        'token_validity_days': 20,
        'propagation_delay_seconds': 3600,
        'warmup_delay_seconds': 300,
    },
    'restart': {
        'max_parallel': 1,
        'readiness_polling': {
            'enabled': False,
            'interval_seconds': 30,
        },
    },
    'desktop': {
        'name': 'SessionDesktop',
        'retry_attempts': 3,
        'retry_delay_seconds': 10,
    },
}

# Secrets are read from the environment only, never from the YAML file
SECRET_ENV_VARS = {
    'tenant_id': 'AZURE_TENANT_ID',
    'client_id': 'AZURE_CLIENT_ID',
    'client_secret': 'AZURE_CLIENT_SECRET',
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class ConfigLoader:
    """Load and parse YAML configuration files."""

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize the ConfigLoader.

        Args:
            config_path: Path to the YAML configuration file
            environ: Environment mapping used for secrets (defaults to os.environ)
        """
        self.config_path = config_path
        self.config: Dict[str, Any] = {}
        self.environ = os.environ if environ is None else environ

    def load(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Dictionary containing the parsed configuration merged over defaults

        Raises:
            FileNotFoundError: If the configuration file doesn't exist
            yaml.YAMLError: If the YAML is malformed
        """
        path = config_path or self.config_path

        if not path:
            raise ValueError("No configuration path provided")

        config_file = Path(path)

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error parsing YAML configuration: {e}")

        if not isinstance(raw, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")

        return self.load_dict(raw, base_dir=config_file.parent)

    def load_dict(self, raw: Dict[str, Any], base_dir: Optional[Path] = None) -> Dict[str, Any]:
        """
        Build the effective configuration from an already parsed mapping.

        Args:
            raw: Parsed configuration mapping
            base_dir: Directory relative repository paths are resolved against

        Returns:
            Effective configuration dictionary
        """
        self.config = _deep_merge(DEFAULTS, raw)
        self._drop_file_secrets()
        self._apply_environment()
        self._resolve_paths(base_dir)
        return self.config

    def _drop_file_secrets(self):
        """Discard identity values written into the file; they are read from the environment."""
        azure = self.config.get('azure')
        if not isinstance(azure, dict):
            return
        for key in SECRET_ENV_VARS:
            if key in azure:
                del azure[key]
                logger.warning(
                    "Ignoring azure.%s in the configuration file; set %s instead",
                    key, SECRET_ENV_VARS[key],
                )

    def _apply_environment(self):
        """Fill Azure identity values from the environment."""
        azure = self.config.setdefault('azure', {})

        if not azure.get('subscription_id') and self.environ.get('AZURE_SUBSCRIPTION_ID'):
            azure['subscription_id'] = self.environ['AZURE_SUBSCRIPTION_ID']

        for key, env_var in SECRET_ENV_VARS.items():
            value = self.environ.get(env_var)
            if value:
                azure[key] = value

        if not azure.get('vm_resource_group'):
            azure['vm_resource_group'] = azure.get('resource_group')

    def _resolve_paths(self, base_dir: Optional[Path]):
        """Resolve a relative repository root against the config file location."""
        repository = self.config.get('repository', {})
        root = repository.get('root')
        if root and base_dir is not None and not Path(root).is_absolute():
            repository['root'] = str((base_dir / root).resolve())

    def validate_structure(self) -> bool:
        """
        Perform basic structure validation.

        Returns:
            True if basic structure is valid

        Raises:
            ValueError: If required fields are missing
        """
        required_fields = ['environment', 'azure', 'repository']

        for field in required_fields:
            if field not in self.config:
                raise ValueError(f"Required field '{field}' missing from configuration")

        for field in ['subscription_id', 'resource_group']:
            if not self.config['azure'].get(field):
                raise ValueError(f"Required field 'azure.{field}' missing from configuration")

        if not self.config['repository'].get('root'):
            raise ValueError("Required field 'repository.root' missing from configuration")

        return True


def redact(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the configuration with secrets masked."""
    safe = copy.deepcopy(config)
    azure = safe.get('azure', {})
    for key in SECRET_ENV_VARS:
        if azure.get(key):
            azure[key] = '<redacted>'
    return safe
