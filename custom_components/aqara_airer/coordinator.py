"""Coordinator for the Aqara Airer integration."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import api
from .const import DEFAULT_POLL_INTERVAL, DOMAIN
from .models import AirerState

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)


class AqaraAirerCoordinator(DataUpdateCoordinator[AirerState]):
    """Coordinator that polls the airer level, motion and light state."""

    def __init__(
        self,
        hass: HomeAssistant,
        client: api.AqaraAirerClient,
        config_entry: ConfigEntry,
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=DOMAIN,
            update_interval=timedelta(seconds=DEFAULT_POLL_INTERVAL),
        )
        self.client = client

    async def _async_update_data(self) -> AirerState:
        """Fetch the current airer state from the cloud."""
        try:
            level = await self.client.async_get_estimated_level()
            motion = self.client.motion
            position_state = (
                motion.motion
                if motion is not None
                else await self.client.async_get_position_state()
            )
            light_on = await self.client.async_get_light_status()
        except api.AqaraAuthError as err:
            error_msg = f"Authentication error while polling airer: {err}"
            raise UpdateFailed(error_msg) from err
        except api.AqaraTransportError as err:
            error_msg = f"Connection error while polling airer: {err}"
            raise UpdateFailed(error_msg) from err
        except api.AqaraApiClientError as err:
            error_msg = f"API error while polling airer: {err}"
            raise UpdateFailed(error_msg) from err

        _LOGGER.debug(
            "Polled airer: level=%d, motion=%s, light_on=%s",
            level,
            position_state.name,
            light_on,
        )
        return AirerState(level=level, motion=position_state, light_on=light_on)
