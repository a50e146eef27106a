"""Unit tests for the post-deploy desktop configurator."""

from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import HttpResponseError, ServiceRequestError

from avdrollout.desktop_config import DesktopConfigurator
from avdrollout.errors import ConfigurationUpdateFailedError


class TestRenameDefaultDesktop:
    """Tests for DesktopConfigurator.rename_default_desktop."""

    def test_updates_session_desktop(self) -> None:
        client = MagicMock()

        DesktopConfigurator(client, "rg-avd").rename_default_desktop("pool-DAG", "Schuecal_17")

        args = client.desktops.update.call_args.args
        kwargs = client.desktops.update.call_args.kwargs
        assert args == ("rg-avd", "pool-DAG", "SessionDesktop")
        assert kwargs["desktop"].friendly_name == "Schuecal_17"

    def test_idempotent(self) -> None:
        client = MagicMock()
        configurator = DesktopConfigurator(client, "rg-avd")

        configurator.rename_default_desktop("pool-DAG", "Schuecal_17")
        configurator.rename_default_desktop("pool-DAG", "Schuecal_17")

        assert client.desktops.update.call_count == 2

    def test_retries_transient_errors(self) -> None:
        client = MagicMock()
        client.desktops.update.side_effect = [ServiceRequestError("reset"), None]
        sleeper = MagicMock()

        DesktopConfigurator(client, "rg-avd", retry_delay=5, sleeper=sleeper).rename_default_desktop(
            "pool-DAG", "Schuecal_17"
        )

        assert client.desktops.update.call_count == 2
        sleeper.assert_called_once_with(5)

    def test_gives_up_after_bounded_attempts(self) -> None:
        client = MagicMock()
        client.desktops.update.side_effect = HttpResponseError(message="NotFound")
        sleeper = MagicMock()

        with pytest.raises(ConfigurationUpdateFailedError) as exc_info:
            DesktopConfigurator(client, "rg-avd", retry_attempts=3, sleeper=sleeper).rename_default_desktop(
                "pool-DAG", "Schuecal_17"
            )

        assert client.desktops.update.call_count == 3
        assert sleeper.call_count == 2
        assert exc_info.value.attempts == 3
        assert exc_info.value.target == "pool-DAG/SessionDesktop"

    def test_unexpected_errors_propagate(self) -> None:
        client = MagicMock()
        client.desktops.update.side_effect = TypeError("bad call")

        with pytest.raises(TypeError):
            DesktopConfigurator(client, "rg-avd").rename_default_desktop("pool-DAG", "x")

        assert client.desktops.update.call_count == 1
