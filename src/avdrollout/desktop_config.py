"""
Desktop Configuration Module

Post-deployment fixups on the published desktop of a host pool.
"""

import logging
import time
from typing import Any, Callable, Optional

from .errors import AzureSDKNotInstalledError, ConfigurationUpdateFailedError


logger = logging.getLogger(__name__)


class DesktopConfigurator:
    """Rename the default published desktop of a desktop application group."""

    def __init__(self, desktop_client: Any, resource_group: str,
                 desktop_name: str = 'SessionDesktop', retry_attempts: int = 3,
                 retry_delay: float = 10, sleeper: Callable[[float], Any] = time.sleep):
        """
        Initialize the DesktopConfigurator.

        Args:
            desktop_client: azure.mgmt.desktopvirtualization client
            resource_group: Resource group holding the application group
            desktop_name: Published desktop to rename
            retry_attempts: Total attempts before giving up
            retry_delay: Seconds between attempts
            sleeper: Called with the delay between attempts
        """
        self.client = desktop_client
        self.resource_group = resource_group
        self.desktop_name = desktop_name
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.sleeper = sleeper

    def rename_default_desktop(self, application_group: str, friendly_name: str):
        """
        Set the friendly name of the published desktop.

        Safe to repeat with the same name.

        Args:
            application_group: Desktop application group of the host pool
            friendly_name: Name end users see in their client

        Raises:
            ConfigurationUpdateFailedError: If every attempt failed
        """
        try:
            from azure.core.exceptions import AzureError
            from azure.mgmt.desktopvirtualization.models import DesktopPatch
        except ImportError as exc:
            raise AzureSDKNotInstalledError('azure-mgmt-desktopvirtualization') from exc

        target = f"{application_group}/{self.desktop_name}"
        last_error: Optional[Exception] = None

        for attempt in range(1, self.retry_attempts + 1):
            try:
                self.client.desktops.update(
                    self.resource_group,
                    application_group,
                    self.desktop_name,
                    desktop=DesktopPatch(friendly_name=friendly_name),
                )
                logger.info("Renamed %s to '%s'", target, friendly_name)
                return
            except AzureError as e:
                last_error = e
                logger.warning(
                    "Renaming %s failed (attempt %d/%d): %s",
                    target, attempt, self.retry_attempts, e,
                )
                if attempt < self.retry_attempts:
                    self.sleeper(self.retry_delay)

        raise ConfigurationUpdateFailedError(target, self.retry_attempts, last_error)

    # TODO: grant the end-user group 'Desktop Virtualization User' on the
    # application group once the group object id is part of the configuration.
