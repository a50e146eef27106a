"""
Models Module

Data records passed between the rollout pipeline stages.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


TOKEN_TIME_FORMAT = '%Y-%m-%dT%H:%M:%S.%fZ'


class HostStatus(str, Enum):
    """Session host status as reported by the desktop control plane."""

    AVAILABLE = 'Available'
    UNAVAILABLE = 'Unavailable'
    UPGRADING = 'Upgrading'
    SHUTDOWN = 'Shutdown'
    NEEDS_ASSISTANCE = 'NeedsAssistance'
    DISCONNECTED = 'Disconnected'
    UNKNOWN = 'Unknown'

    @classmethod
    def parse(cls, value: Any) -> 'HostStatus':
        """Map a raw service value onto a known status."""
        if isinstance(value, Enum):
            value = value.value
        for status in cls:
            if status.value.lower() == str(value).lower():
                return status
        return cls.UNKNOWN


class RolloutStatus(str, Enum):
    """Terminal outcome of a pipeline run."""

    NO_CHANGE = 'no_change'
    DRY_RUN = 'dry_run'
    COMPLETED = 'completed'
    COMPLETED_WITH_FAILURES = 'completed_with_failures'


@dataclass(frozen=True)
class ImageVersionRecord:
    """A published image build folder."""

    folder_name: str
    last_write: datetime


@dataclass(frozen=True)
class DeploymentSpec:
    """Everything that varies between two host pool deployments."""

    host_pool_name: str
    host_pool_friendly_name: str
    token_expiration: datetime
    vm_image_resource_id: str
    vm_name_prefix: str
    workspace_name: str
    desktop_friendly_name: str
    application_group_name: str
    deployment_name: str

    @property
    def token_expiration_iso(self) -> str:
        """Registration token expiry as a Z-suffixed ISO-8601 string."""
        value = self.token_expiration.astimezone(timezone.utc)
        return value.strftime(TOKEN_TIME_FORMAT)


@dataclass(frozen=True)
class SessionHostRecord:
    """A session host bound to a host pool."""

    name: str
    vm_name: str
    status: HostStatus = HostStatus.UNKNOWN


@dataclass
class DeploymentResult:
    """Terminal state of a resource manager deployment."""

    deployment_name: str
    provisioning_state: str
    outputs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WaveResult:
    """Outcome of one restart wave."""

    wave: int
    hosts: List[str] = field(default_factory=list)
    restarted: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failures


@dataclass
class RolloutResult:
    """Summary of a full pipeline run."""

    status: RolloutStatus
    image: Optional[ImageVersionRecord] = None
    spec: Optional[DeploymentSpec] = None
    deployment: Optional[DeploymentResult] = None
    waves: List[WaveResult] = field(default_factory=list)

    @property
    def failed_hosts(self) -> Dict[str, str]:
        """All per-host restart failures, keyed by "wave<n>:<vm name>"."""
        failures: Dict[str, str] = {}
        for wave in self.waves:
            for vm_name, error in wave.failures.items():
                failures[f"wave{wave.wave}:{vm_name}"] = error
        return failures
