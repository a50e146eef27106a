"""
Parameter Builder Module

Builds the deployment spec for a new image and renders the ARM parameter document.
"""

import copy
import json
import logging
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml

from .image_watcher import utc_now
from .models import DeploymentSpec, ImageVersionRecord
from .naming import ImageNameConvention


logger = logging.getLogger(__name__)

PARAMETERS_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentParameters.json#"


class ParameterBuilder:
    """Materialize deployment parameters from an image record."""

    def __init__(self, config: Dict[str, Any], clock: Callable[[], datetime] = utc_now):
        """
        Initialize the ParameterBuilder.

        Args:
            config: Effective rollout configuration
            clock: Returns the current aware UTC time
        """
        self.config = config
        self.clock = clock
        self.naming = config.get('naming', {})
        self.parameter_keys: Dict[str, str] = config.get('parameters', {})
        self.convention = ImageNameConvention.from_config(config)

    def build_spec(self, image: ImageVersionRecord) -> DeploymentSpec:
        """
        Build the deployment spec for an image.

        Args:
            image: The newly published image

        Returns:
            DeploymentSpec with a fresh registration token expiry

        Raises:
            MalformedImageNameError: If the folder name violates the convention
        """
        segment = self.convention.segment(image.folder_name)
        azure = self.config.get('azure', {})
        context = {
            'env': self.config.get('environment', ''),
            'folder_name': image.folder_name,
            'segment': segment,
            'subscription_id': azure.get('subscription_id', ''),
            'resource_group': azure.get('resource_group', ''),
        }
        host_pool = self.naming['host_pool'].format(**context)
        context['host_pool'] = host_pool

        validity = self.config.get('timing', {}).get('token_validity_days', 20)
        expiration = self.clock().astimezone(timezone.utc) + timedelta(days=validity)

        return DeploymentSpec(
            host_pool_name=host_pool,
            host_pool_friendly_name=host_pool,
            token_expiration=expiration,
            vm_image_resource_id=self.naming['image_resource_id'].format(**context),
            vm_name_prefix=self.naming['vm_name_prefix'].format(**context),
            workspace_name=self.naming['workspace'].format(**context),
            desktop_friendly_name=self.naming['desktop_friendly_name'].format(**context),
            application_group_name=self.naming['application_group'].format(**context),
            deployment_name=self.naming.get('deployment_name', '{host_pool}-deployment').format(**context),
        )

    def load_documents(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Stage and parse the template and parameter documents.

        Both files are copied from the repository to the staging directory
        first; the staged copies are what gets parsed.

        Returns:
            Tuple of (template, parameters)
        """
        repository = self.config.get('repository', {})
        root = Path(repository['root'])
        staging = Path(repository.get('staging_dir') or tempfile.gettempdir())
        staging.mkdir(parents=True, exist_ok=True)

        documents = []
        for key in ('template_file', 'parameters_file'):
            source = root / repository[key]
            if not source.exists():
                raise FileNotFoundError(f"Repository document not found: {source}")
            staged = staging / source.name
            shutil.copy2(source, staged)
            logger.debug("Staged %s to %s", source, staged)
            with open(staged, 'r', encoding='utf-8') as f:
                documents.append(json.load(f))

        return documents[0], documents[1]

    def render_parameters(self, document: Dict[str, Any], spec: DeploymentSpec) -> Dict[str, Any]:
        """
        Overwrite the DeploymentSpec-controlled values of a parameter document.

        Every other key is passed through verbatim and in its original order.
        The input document is not modified.

        Args:
            document: ARM deployment parameter document
            spec: Deployment spec supplying the new values

        Returns:
            Rendered parameter document
        """
        rendered = copy.deepcopy(document) if document else {
            "$schema": PARAMETERS_SCHEMA,
            "contentVersion": "1.0.0.0",
        }
        parameters = rendered.setdefault('parameters', {})

        values = {
            'host_pool_name': spec.host_pool_name,
            'host_pool_friendly_name': spec.host_pool_friendly_name,
            'token_expiration': spec.token_expiration_iso,
            'vm_image_resource_id': spec.vm_image_resource_id,
            'vm_name_prefix': spec.vm_name_prefix,
            'workspace_name': spec.workspace_name,
        }

        for field_name, value in values.items():
            key = self.parameter_keys.get(field_name)
            if not key:
                continue
            entry = parameters.get(key)
            if isinstance(entry, dict):
                entry['value'] = value
            else:
                parameters[key] = {'value': value}

        return rendered

    @staticmethod
    def deployment_parameters(document: Dict[str, Any]) -> Dict[str, Any]:
        """The 'parameters' body the deployment API expects."""
        return document.get('parameters', {})

    def save_parameters(self, document: Dict[str, Any], output_path: str, fmt: Optional[str] = 'json'):
        """
        Save a rendered parameter document.

        Args:
            document: Rendered parameter document
            output_path: Destination file
            fmt: 'json' or 'yaml'
        """
        path = Path(output_path)
        with open(path, 'w', encoding='utf-8') as f:
            if fmt == 'yaml':
                yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(document, f, indent=2)
