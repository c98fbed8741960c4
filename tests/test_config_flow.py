"""Tests for the Aqara Airer Config Flow."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from homeassistant.const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_PASSWORD,
    CONF_USERNAME,
)
from homeassistant.data_entry_flow import FlowResultType

from custom_components.aqara_airer import api
from custom_components.aqara_airer.config_flow import AqaraAirerConfigFlow
from custom_components.aqara_airer.const import (
    ERROR_API_ERROR,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_UNKNOWN,
)

USER_INPUT = {
    CONF_CLIENT_ID: "app_id_value",
    CONF_CLIENT_SECRET: "app_secret_value",
    CONF_USERNAME: "User@Example.com",
    CONF_PASSWORD: "password123",
}


@pytest.fixture
def flow() -> AqaraAirerConfigFlow:
    """Create an AqaraAirerConfigFlow instance for testing."""
    flow_instance = AqaraAirerConfigFlow()
    flow_instance.hass = Mock()
    flow_instance.async_set_unique_id = AsyncMock()
    flow_instance._abort_if_unique_id_configured = Mock()
    flow_instance.async_create_entry = Mock(
        return_value={"type": FlowResultType.CREATE_ENTRY},
    )
    flow_instance.async_show_form = Mock(return_value={"type": FlowResultType.FORM})
    return flow_instance


@pytest.fixture
def mock_client() -> Mock:
    """Create a mock client whose startup succeeds."""
    client = Mock()
    client.async_initialize = AsyncMock()
    return client


class TestAqaraAirerConfigFlowAsyncStepUser:
    """Tests for async_step_user method."""

    @pytest.mark.asyncio
    async def test_shows_form_when_no_input(
        self,
        flow: AqaraAirerConfigFlow,
    ) -> None:
        """Test that async_step_user shows form when no input provided."""
        result = await flow.async_step_user()
        flow.async_show_form.assert_called_once()
        assert flow.async_show_form.call_args[1]["errors"] == {}
        assert result["type"] == FlowResultType.FORM

    @pytest.mark.asyncio
    async def test_creates_entry_on_successful_startup(
        self,
        flow: AqaraAirerConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that a verified login creates an entry with the credentials."""
        with (
            patch("custom_components.aqara_airer.config_flow.get_async_client"),
            patch(
                "custom_components.aqara_airer.config_flow.api.AqaraAirerClient",
                return_value=mock_client,
            ) as client_class,
        ):
            result = await flow.async_step_user(dict(USER_INPUT))

        client_class.assert_called_once()
        assert client_class.call_args[0][1:] == (
            "app_id_value",
            "app_secret_value",
            "User@Example.com",
            "password123",
        )
        mock_client.async_initialize.assert_awaited_once()
        flow.async_set_unique_id.assert_called_once_with("user@example.com")
        flow._abort_if_unique_id_configured.assert_called_once()
        call_args = flow.async_create_entry.call_args
        assert call_args[1]["title"] == "Aqara Airer (User@Example.com)"
        assert call_args[1]["data"] == USER_INPUT
        assert result["type"] == FlowResultType.CREATE_ENTRY

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (api.AqaraAuthError("Account or password error"), ERROR_INVALID_AUTH),
            (api.AqaraTransportError("Connection refused"), ERROR_CANNOT_CONNECT),
            (api.AqaraRemoteError("Request failed: 500"), ERROR_API_ERROR),
            (RuntimeError("boom"), ERROR_UNKNOWN),
        ],
    )
    async def test_shows_error_on_startup_failure(
        self,
        flow: AqaraAirerConfigFlow,
        mock_client: Mock,
        error: Exception,
        expected: str,
    ) -> None:
        """Test that startup failures are reported on the form."""
        mock_client.async_initialize.side_effect = error
        with (
            patch("custom_components.aqara_airer.config_flow.get_async_client"),
            patch(
                "custom_components.aqara_airer.config_flow.api.AqaraAirerClient",
                return_value=mock_client,
            ),
        ):
            result = await flow.async_step_user(dict(USER_INPUT))

        flow.async_create_entry.assert_not_called()
        assert flow.async_show_form.call_args[1]["errors"]["base"] == expected
        assert result["type"] == FlowResultType.FORM
