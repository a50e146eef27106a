"""
Errors Module

Exception taxonomy for the host-pool rollout pipeline.
"""

from typing import Any, Optional


class RolloutError(Exception):
    """Base class for all rollout pipeline errors."""


class ImageNotFoundError(RolloutError):
    """No image folder could be found in the repository."""

    def __init__(self, location: str):
        self.location = location
        super().__init__(f"No image folders found under {location}")


class MalformedImageNameError(RolloutError):
    """An image folder name does not follow the dot-separated convention."""

    def __init__(self, folder_name: str, segments: int, required: int):
        self.folder_name = folder_name
        self.segments = segments
        self.required = required
        super().__init__(
            f"Image folder '{folder_name}' has {segments} dot-separated "
            f"segments, at least {required} required"
        )


class DeploymentFailedError(RolloutError):
    """The resource manager deployment reached a failed terminal state."""

    def __init__(self, deployment_name: str, message: str, details: Any = None):
        self.deployment_name = deployment_name
        self.details = details
        super().__init__(f"Deployment '{deployment_name}' failed: {message}")


class ConfigurationUpdateFailedError(RolloutError):
    """Renaming the published desktop failed after all retries."""

    def __init__(self, target: str, attempts: int, last_error: Optional[Exception] = None):
        self.target = target
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Updating '{target}' failed after {attempts} attempt(s): {last_error}"
        )


class HostRestartFailedError(RolloutError):
    """One or more session hosts could not be restarted."""

    def __init__(self, failures: dict):
        self.failures = dict(failures)
        hosts = ', '.join(sorted(self.failures))
        super().__init__(f"Restart failed for {len(self.failures)} host(s): {hosts}")


class PipelineCancelledError(RolloutError):
    """The run was cancelled between stages."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Rollout cancelled before stage '{stage}'")


class AzureSDKNotInstalledError(RolloutError):
    """A required Azure SDK package is missing."""

    def __init__(self, package: str):
        self.package = package
        super().__init__(
            f"Azure SDK package '{package}' is not installed. "
            f"Install it with: pip install {package}"
        )
