"""Tests for the Aqara Airer coordinator."""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest
from homeassistant.helpers.update_coordinator import UpdateFailed

from custom_components.aqara_airer import api
from custom_components.aqara_airer.coordinator import AqaraAirerCoordinator
from custom_components.aqara_airer.models import AirerMotion, AirerState


@pytest.fixture
def mock_hass() -> Mock:
    """Create a mock Home Assistant instance."""
    return Mock()


@pytest.fixture
def mock_config_entry() -> Mock:
    """Create a mock config entry."""
    entry = Mock()
    entry.entry_id = "test_entry_id"
    return entry


@pytest.fixture
def mock_client() -> Mock:
    """Create a mock client reporting an idle airer."""
    client = Mock(spec=api.AqaraAirerClient)
    client.motion = None
    client.async_get_estimated_level = AsyncMock(return_value=45)
    client.async_get_position_state = AsyncMock(return_value=AirerMotion.STOPPED)
    client.async_get_light_status = AsyncMock(return_value=True)
    return client


@pytest.fixture
def coordinator(
    mock_hass: Mock,
    mock_client: Mock,
    mock_config_entry: Mock,
) -> AqaraAirerCoordinator:
    """Create a coordinator for testing."""
    return AqaraAirerCoordinator(mock_hass, mock_client, mock_config_entry)


class TestAqaraAirerCoordinatorInit:
    """Tests for coordinator initialization."""

    def test_init_sets_client_and_interval(
        self,
        coordinator: AqaraAirerCoordinator,
        mock_client: Mock,
    ) -> None:
        """Test that init stores the client and poll interval."""
        assert coordinator.client == mock_client
        assert coordinator.update_interval == timedelta(seconds=30)


class TestAqaraAirerCoordinatorUpdate:
    """Tests for _async_update_data."""

    @pytest.mark.asyncio
    async def test_update_returns_polled_state(
        self,
        coordinator: AqaraAirerCoordinator,
        mock_client: Mock,
    ) -> None:
        """Test that an idle airer is polled for level, motion and light."""
        state = await coordinator._async_update_data()
        assert state == AirerState(
            level=45, motion=AirerMotion.STOPPED, light_on=True
        )
        mock_client.async_get_position_state.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_uses_estimate_direction_while_moving(
        self,
        coordinator: AqaraAirerCoordinator,
        mock_client: Mock,
    ) -> None:
        """Test that a move in progress supplies the motion direction."""
        mock_client.motion = Mock(motion=AirerMotion.DECREASING)
        state = await coordinator._async_update_data()
        assert state.motion is AirerMotion.DECREASING
        mock_client.async_get_position_state.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "message"),
        [
            (api.AqaraAuthError("Token rejected"), "Authentication error"),
            (api.AqaraTransportError("Connection refused"), "Connection error"),
            (api.AqaraDeviceQueryError("Attribute missing"), "API error"),
            (api.AqaraRemoteError("Device offline"), "API error"),
        ],
    )
    async def test_update_raises_update_failed_on_client_errors(
        self,
        coordinator: AqaraAirerCoordinator,
        mock_client: Mock,
        error: Exception,
        message: str,
    ) -> None:
        """Test that client errors become UpdateFailed."""
        mock_client.async_get_estimated_level.side_effect = error
        with pytest.raises(UpdateFailed, match=message):
            await coordinator._async_update_data()
