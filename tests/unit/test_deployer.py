"""Unit tests for the deployment executor."""

import logging
from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import HttpResponseError

from avdrollout.deployer import DeploymentExecutor
from avdrollout.errors import DeploymentFailedError


TEMPLATE = {"resources": []}
PARAMETERS = {"hostpoolName": {"value": "we-app-avd-x"}}


def _client(state: str = "Succeeded", error=None, outputs=None) -> MagicMock:
    client = MagicMock()
    result = MagicMock()
    result.properties.provisioning_state = state
    result.properties.error = error
    result.properties.outputs = outputs
    client.deployments.begin_create_or_update.return_value.result.return_value = result
    return client


class TestDeploy:
    """Tests for DeploymentExecutor.deploy."""

    def test_submits_incremental_deployment(self) -> None:
        client = _client(outputs={"hostPoolId": {"value": "/x"}})

        result = DeploymentExecutor(client, "rg-avd").deploy(TEMPLATE, PARAMETERS, "pool-deployment")

        args = client.deployments.begin_create_or_update.call_args.args
        assert args[0] == "rg-avd"
        assert args[1] == "pool-deployment"
        properties = args[2].properties
        assert properties.mode == "Incremental"
        assert properties.template == TEMPLATE
        assert properties.parameters == PARAMETERS
        assert result.provisioning_state == "Succeeded"
        assert result.outputs == {"hostPoolId": {"value": "/x"}}

    def test_blocks_on_result(self) -> None:
        client = _client()

        DeploymentExecutor(client, "rg-avd").deploy(TEMPLATE, PARAMETERS, "d")

        client.deployments.begin_create_or_update.return_value.result.assert_called_once()

    def test_redeploy_reuses_deployment_name(self) -> None:
        client = _client()
        executor = DeploymentExecutor(client, "rg-avd")

        executor.deploy(TEMPLATE, PARAMETERS, "pool-deployment")
        executor.deploy(TEMPLATE, PARAMETERS, "pool-deployment")

        names = {call.args[1] for call in client.deployments.begin_create_or_update.call_args_list}
        assert names == {"pool-deployment"}

    def test_provider_error_raises_with_details(self) -> None:
        client = MagicMock()
        client.deployments.begin_create_or_update.return_value.result.side_effect = HttpResponseError(
            message="InvalidTemplateDeployment"
        )

        with pytest.raises(DeploymentFailedError) as exc_info:
            DeploymentExecutor(client, "rg-avd").deploy(TEMPLATE, PARAMETERS, "d")

        assert "InvalidTemplateDeployment" in str(exc_info.value)
        assert exc_info.value.details is not None

    def test_failed_terminal_state_raises(self) -> None:
        error = MagicMock()
        error.as_dict.return_value = {"code": "Conflict", "message": "pool exists"}
        client = _client(state="Failed", error=error)

        with pytest.raises(DeploymentFailedError) as exc_info:
            DeploymentExecutor(client, "rg-avd").deploy(TEMPLATE, PARAMETERS, "d")

        assert exc_info.value.details == {"code": "Conflict", "message": "pool exists"}
        assert exc_info.value.deployment_name == "d"

    def test_no_retry_on_failure(self) -> None:
        client = MagicMock()
        client.deployments.begin_create_or_update.side_effect = HttpResponseError(message="boom")

        with pytest.raises(DeploymentFailedError):
            DeploymentExecutor(client, "rg-avd").deploy(TEMPLATE, PARAMETERS, "d")

        assert client.deployments.begin_create_or_update.call_count == 1

    def test_resource_group_is_not_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="avdrollout")

        DeploymentExecutor(_client(), "rg-confidential").deploy(TEMPLATE, PARAMETERS, "pool-deployment")

        assert "pool-deployment" in caplog.text
        assert "rg-confidential" not in caplog.text
