"""
Azure Session Module

Scoped Azure credential and management clients for a single rollout run.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import AzureSDKNotInstalledError


logger = logging.getLogger(__name__)


class AzureSession:
    """
    Authenticated handle to the Azure management APIs.

    Use as a context manager; every client created through the session and
    the credential itself are closed on exit, whatever the exit path.
    """

    def __init__(self, config: Dict[str, Any], credential: Any = None):
        """
        Initialize the AzureSession.

        Args:
            config: Effective rollout configuration
            credential: Pre-built credential (a service principal is built otherwise)
        """
        azure = config.get('azure', {})
        self.subscription_id = azure.get('subscription_id')
        self._tenant_id = azure.get('tenant_id')
        self._client_id = azure.get('client_id')
        self._client_secret = azure.get('client_secret')
        self._credential = credential
        self._owns_credential = credential is None
        self._clients: Dict[str, Any] = {}

    def __enter__(self) -> 'AzureSession':
        if self._credential is None:
            self._credential = self._build_credential()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def credential(self) -> Any:
        if self._credential is None:
            self._credential = self._build_credential()
        return self._credential

    def _build_credential(self) -> Any:
        try:
            from azure.identity import ClientSecretCredential, DefaultAzureCredential
        except ImportError as exc:
            raise AzureSDKNotInstalledError('azure-identity') from exc

        if self._tenant_id and self._client_id and self._client_secret:
            logger.debug("Authenticating with service principal credentials")
            return ClientSecretCredential(
                tenant_id=self._tenant_id,
                client_id=self._client_id,
                client_secret=self._client_secret,
            )

        logger.debug("Authenticating with the default Azure credential chain")
        return DefaultAzureCredential()

    @property
    def resource_client(self) -> Any:
        """ARM resource management client."""
        if 'resource' not in self._clients:
            try:
                from azure.mgmt.resource import ResourceManagementClient
            except ImportError as exc:
                raise AzureSDKNotInstalledError('azure-mgmt-resource') from exc
            self._clients['resource'] = ResourceManagementClient(self.credential, self.subscription_id)
        return self._clients['resource']

    @property
    def desktop_client(self) -> Any:
        """Desktop virtualization (host pool) client."""
        if 'desktop' not in self._clients:
            try:
                from azure.mgmt.desktopvirtualization import DesktopVirtualizationMgmtClient
            except ImportError as exc:
                raise AzureSDKNotInstalledError('azure-mgmt-desktopvirtualization') from exc
            self._clients['desktop'] = DesktopVirtualizationMgmtClient(self.credential, self.subscription_id)
        return self._clients['desktop']

    @property
    def compute_client(self) -> Any:
        """Compute client used for VM restarts."""
        if 'compute' not in self._clients:
            try:
                from azure.mgmt.compute import ComputeManagementClient
            except ImportError as exc:
                raise AzureSDKNotInstalledError('azure-mgmt-compute') from exc
            self._clients['compute'] = ComputeManagementClient(self.credential, self.subscription_id)
        return self._clients['compute']

    def close(self):
        """Close every client and the credential."""
        errors: List[Exception] = []
        resources: List[Optional[Any]] = list(self._clients.values())
        if self._owns_credential:
            resources.append(self._credential)

        for resource in resources:
            close = getattr(resource, 'close', None)
            if close is None:
                continue
            try:
                close()
            except Exception as e:
                errors.append(e)

        self._clients.clear()
        if self._owns_credential:
            self._credential = None

        for error in errors:
            logger.warning("Error while closing Azure session: %s", error)
