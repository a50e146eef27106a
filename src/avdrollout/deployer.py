"""
Deployer Module

Submits the host pool template to Azure Resource Manager and waits for the result.
"""

import logging
from typing import Any, Dict

from .errors import AzureSDKNotInstalledError, DeploymentFailedError
from .models import DeploymentResult


logger = logging.getLogger(__name__)


def _as_payload(value: Any) -> Any:
    """Turn an SDK error model into plain data where possible."""
    if value is None:
        return None
    as_dict = getattr(value, 'as_dict', None)
    if callable(as_dict):
        return as_dict()
    return value


class DeploymentExecutor:
    """Run incremental, create-or-update ARM deployments in one resource group."""

    def __init__(self, resource_client: Any, resource_group: str):
        """
        Initialize the DeploymentExecutor.

        Args:
            resource_client: azure.mgmt.resource ResourceManagementClient
            resource_group: Target resource group
        """
        self.client = resource_client
        self.resource_group = resource_group

    def deploy(self, template: Dict[str, Any], parameters: Dict[str, Any],
               deployment_name: str) -> DeploymentResult:
        """
        Deploy a template and block until it reaches a terminal state.

        Args:
            template: ARM template body
            parameters: ARM parameters body (name -> {'value': ...})
            deployment_name: Deployment name; reusing it updates in place

        Returns:
            DeploymentResult for a succeeded deployment

        Raises:
            DeploymentFailedError: If the deployment fails; no retry is attempted
        """
        try:
            from azure.core.exceptions import HttpResponseError
            from azure.mgmt.resource.resources.models import (
                Deployment,
                DeploymentMode,
                DeploymentProperties,
            )
        except ImportError as exc:
            raise AzureSDKNotInstalledError('azure-mgmt-resource') from exc

        deployment = Deployment(
            properties=DeploymentProperties(
                mode=DeploymentMode.INCREMENTAL,
                template=template,
                parameters=parameters,
            )
        )

        logger.info("Starting deployment %s", deployment_name)
        try:
            poller = self.client.deployments.begin_create_or_update(
                self.resource_group,
                deployment_name,
                deployment,
            )
            result = poller.result()
        except HttpResponseError as e:
            details = _as_payload(getattr(e, 'error', None)) or e.message
            raise DeploymentFailedError(deployment_name, str(e.message), details) from e

        properties = getattr(result, 'properties', None)
        state = str(getattr(properties, 'provisioning_state', '') or '')
        if state.lower() != 'succeeded':
            details = _as_payload(getattr(properties, 'error', None))
            raise DeploymentFailedError(
                deployment_name,
                f"terminal state {state or 'unknown'}",
                details,
            )

        outputs = getattr(properties, 'outputs', None) or {}
        logger.info("Deployment %s succeeded", deployment_name)
        return DeploymentResult(
            deployment_name=deployment_name,
            provisioning_state=state,
            outputs=dict(outputs),
        )
