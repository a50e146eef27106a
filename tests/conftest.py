"""Pytest configuration and shared fixtures for avd-rollout tests."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List
from unittest.mock import MagicMock

import pytest

from avdrollout.config_loader import ConfigLoader


NOW = datetime(2024, 5, 17, 8, 30, 15, 250000, tzinfo=timezone.utc)
FOLDER = "build.2024.05.17.03"

PARAMETER_DOCUMENT: Dict[str, Any] = {
    "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentParameters.json#",
    "contentVersion": "1.0.0.0",
    "parameters": {
        "location": {"value": "westeurope"},
        "hostpoolName": {"value": "placeholder"},
        "hostpoolFriendlyName": {"value": "placeholder"},
        "hostpoolType": {"value": "Pooled"},
        "tokenExpirationTime": {"value": "2000-01-01T00:00:00.000Z"},
        "vmCustomImageSourceId": {"value": ""},
        "vmNamePrefix": {"value": "old"},
        "vmNumberOfInstances": {"value": 4},
        "workSpaceName": {"value": "old-ws"},
        "tags": {"value": {"owner": "platform"}},
    },
}

TEMPLATE_DOCUMENT: Dict[str, Any] = {
    "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#",
    "contentVersion": "1.0.0.0",
    "parameters": {},
    "resources": [],
}


def set_mtime(path: Path, when: datetime):
    """Set a path's modification time."""
    stamp = when.timestamp()
    os.utime(path, (stamp, stamp))


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Fixed UTC clock."""
    return lambda: NOW


@pytest.fixture
def repository(tmp_path: Path) -> Path:
    """Image repository with today's build folder and the deployment documents."""
    root = tmp_path / "images"
    images = root / "LatestImages"
    images.mkdir(parents=True)

    older = images / "build.2024.05.10.01"
    older.mkdir()
    set_mtime(older, datetime(2024, 5, 10, 22, 0, tzinfo=timezone.utc))

    latest = images / FOLDER
    latest.mkdir()
    set_mtime(latest, datetime(2024, 5, 17, 2, 15, tzinfo=timezone.utc))

    templates = root / "Templates"
    templates.mkdir()
    (templates / "hostpool-template.json").write_text(json.dumps(TEMPLATE_DOCUMENT), encoding="utf-8")
    (templates / "hostpool-parameters.json").write_text(json.dumps(PARAMETER_DOCUMENT), encoding="utf-8")
    return root


@pytest.fixture
def config(repository: Path, tmp_path: Path) -> Dict[str, Any]:
    """Effective configuration pointing at the test repository."""
    loader = ConfigLoader(environ={})
    return loader.load_dict({
        "environment": "we",
        "azure": {
            "subscription_id": "sub-123",
            "resource_group": "rg-avd",
        },
        "repository": {
            "root": str(repository),
            "staging_dir": str(tmp_path / "staging"),
        },
        "timing": {
            "propagation_delay_seconds": 3600,
            "warmup_delay_seconds": 300,
        },
        "desktop": {
            "retry_delay_seconds": 0,
        },
    })


class SessionHost:
    """Stand-in for the SDK's SessionHost model."""

    def __init__(self, name: str, status: str = "Available"):
        self.name = name
        self.status = status


def make_hosts(pool: str, *vm_names: str, status: str = "Available") -> List[SessionHost]:
    return [SessionHost(f"{pool}/{vm}.corp.example.com", status) for vm in vm_names]


@pytest.fixture
def azure_session() -> MagicMock:
    """Session exposing mocked management clients."""
    session = MagicMock()
    result = MagicMock()
    result.properties.provisioning_state = "Succeeded"
    result.properties.outputs = {"hostPoolId": {"value": "/hostpools/x"}}
    session.resource_client.deployments.begin_create_or_update.return_value.result.return_value = result
    session.desktop_client.session_hosts.list.return_value = []
    return session


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def folder_name() -> str:
    return FOLDER


@pytest.fixture
def host_factory() -> Callable[..., List[SessionHost]]:
    return make_hosts


@pytest.fixture
def parameter_document() -> Dict[str, Any]:
    return json.loads(json.dumps(PARAMETER_DOCUMENT))
