"""Cover entity for the Aqara Airer.

The drying rack is exposed as a cover whose position is the rack level.
While a move is in progress the position comes from the client side motion
estimate and the entity rewrites its state periodically, once the move is
estimated to be complete the coordinator is asked for a fresh reading.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.cover import (
    ATTR_POSITION,
    CoverEntity,
    CoverEntityFeature,
)
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.device_registry import DeviceInfo

from . import api
from .const import DOMAIN, MANUFACTURER, MODEL_NAME, MOTION_REFRESH_INTERVAL
from .models import AirerMotion

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import AqaraAirerCoordinator

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the airer cover entity."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [AqaraAirerCover(entry_data["client"], entry_data["coordinator"])]
    )


def airer_device_info(did: str | None) -> DeviceInfo:
    """Return the device registry entry shared by the airer entities."""
    return DeviceInfo(
        identifiers={(DOMAIN, did or "")},
        manufacturer=MANUFACTURER,
        model=MODEL_NAME,
        name="Aqara Airer",
    )


class AqaraAirerCover(CoverEntity):
    """Cover entity controlling the level of the drying rack."""

    _attr_has_entity_name = True
    _attr_name = None
    _attr_should_poll = False
    _attr_supported_features = (
        CoverEntityFeature.OPEN
        | CoverEntityFeature.CLOSE
        | CoverEntityFeature.SET_POSITION
    )

    def __init__(
        self,
        client: api.AqaraAirerClient,
        coordinator: AqaraAirerCoordinator,
    ) -> None:
        """Initialize the cover.

        Args:
            client: Client for the airer's cloud account.
            coordinator: Coordinator polling the airer state.

        """
        self._client = client
        self._coordinator = coordinator
        self._attr_unique_id = f"{client.did}_cover"
        self._attr_device_info = airer_device_info(client.did)
        self._coordinator_listener_unsub = None
        self._motion_task: asyncio.Task[None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._removed = False

    @property
    def current_cover_position(self) -> int | None:
        """Return the estimated level while moving, else the polled level."""
        estimated = self._client.estimated_level()
        if estimated is not None:
            return estimated
        if self._coordinator.data is None:
            return None
        return self._coordinator.data.level

    @property
    def is_opening(self) -> bool:
        """Return True while the rack level is increasing."""
        return self._motion_state() == AirerMotion.INCREASING

    @property
    def is_closing(self) -> bool:
        """Return True while the rack level is decreasing."""
        return self._motion_state() == AirerMotion.DECREASING

    @property
    def is_closed(self) -> bool | None:
        """Return True when the rack is at level 0."""
        position = self.current_cover_position
        if position is None:
            return None
        return position == 0

    def _motion_state(self) -> AirerMotion | None:
        if self._client.motion is not None:
            return self._client.motion.motion
        if self._coordinator.data is None:
            return None
        return self._coordinator.data.motion

    async def async_added_to_hass(self) -> None:
        """Subscribe to coordinator updates."""
        await super().async_added_to_hass()
        self._coordinator_listener_unsub = self._coordinator.async_add_listener(
            self._handle_coordinator_update
        )

    async def async_will_remove_from_hass(self) -> None:
        """Unsubscribe from updates and stop tracking motion."""
        await super().async_will_remove_from_hass()
        self._removed = True

        if self._coordinator_listener_unsub is not None:
            self._coordinator_listener_unsub()
            self._coordinator_listener_unsub = None
        if self._motion_task is not None:
            self._motion_task.cancel()
            self._motion_task = None

    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        self.async_write_ha_state()

    async def async_set_cover_position(self, **kwargs: Any) -> None:  # noqa: ANN401
        """Move the rack to the requested level."""
        await self._async_move(kwargs[ATTR_POSITION])

    async def async_open_cover(self, **kwargs: Any) -> None:  # noqa: ANN401, ARG002
        """Move the rack to level 100."""
        await self._async_move(100)

    async def async_close_cover(self, **kwargs: Any) -> None:  # noqa: ANN401, ARG002
        """Move the rack to level 0."""
        await self._async_move(0)

    async def _async_move(self, level: int) -> None:
        _LOGGER.info("Setting airer level to %d", level)
        try:
            succeeded = await self._client.async_set_level(level, self._handle_stopped)
        except api.AqaraApiClientError as err:
            error_msg = f"Failed to set airer level to {level}: {err}"
            raise HomeAssistantError(error_msg) from err

        if not succeeded:
            error_msg = f"Airer rejected level {level}"
            raise HomeAssistantError(error_msg)

        self.async_write_ha_state()
        if self._motion_task is None or self._motion_task.done():
            self._motion_task = asyncio.create_task(self._async_track_motion())

    async def _async_track_motion(self) -> None:
        """Rewrite the state while the position is being estimated."""
        while self._client.motion is not None:
            await asyncio.sleep(MOTION_REFRESH_INTERVAL)
            self.async_write_ha_state()

    def _handle_stopped(self) -> None:
        if self._removed:
            return
        _LOGGER.debug("Airer move estimated complete")
        self.async_write_ha_state()
        self._refresh_task = asyncio.create_task(
            self._coordinator.async_request_refresh()
        )
