"""Light entity for the lamp built into the Aqara Airer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.light import ColorMode, LightEntity
from homeassistant.exceptions import HomeAssistantError

from . import api
from .const import DOMAIN
from .cover import airer_device_info

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
    """Set up the airer light entity."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [AqaraAirerLight(entry_data["client"], entry_data["coordinator"])]
    )


class AqaraAirerLight(LightEntity):
    """On/off light of the drying rack."""

    _attr_has_entity_name = True
    _attr_name = "Light"
    _attr_should_poll = False
    _attr_color_mode = ColorMode.ONOFF
    _attr_supported_color_modes = {ColorMode.ONOFF}  # noqa: RUF012

    def __init__(
        self,
        client: api.AqaraAirerClient,
        coordinator: AqaraAirerCoordinator,
    ) -> None:
        self._client = client
        self._coordinator = coordinator
        self._attr_unique_id = f"{client.did}_light"
        self._attr_device_info = airer_device_info(client.did)
        self._attr_is_on = (
            coordinator.data.light_on if coordinator.data is not None else None
        )
        self._coordinator_listener_unsub = None

    async def async_added_to_hass(self) -> None:
        """Subscribe to coordinator updates."""
        await super().async_added_to_hass()
        self._coordinator_listener_unsub = self._coordinator.async_add_listener(
            self._handle_coordinator_update
        )

    async def async_will_remove_from_hass(self) -> None:
        """Unsubscribe from coordinator updates."""
        await super().async_will_remove_from_hass()

        if self._coordinator_listener_unsub is not None:
            self._coordinator_listener_unsub()
            self._coordinator_listener_unsub = None

    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        if self._coordinator.data is not None:
            self._attr_is_on = self._coordinator.data.light_on
        self.async_write_ha_state()

    async def async_turn_on(self, **kwargs: Any) -> None:  # noqa: ANN401, ARG002
        """Turn the light on."""
        await self._async_set_light(is_on=True)

    async def async_turn_off(self, **kwargs: Any) -> None:  # noqa: ANN401, ARG002
        """Turn the light off."""
        await self._async_set_light(is_on=False)

    async def _async_set_light(self, *, is_on: bool) -> None:
        _LOGGER.info("Setting airer light %s", "on" if is_on else "off")
        try:
            succeeded = await self._client.async_set_light_status(is_on)
        except api.AqaraApiClientError as err:
            error_msg = f"Failed to switch airer light: {err}"
            raise HomeAssistantError(error_msg) from err

        if not succeeded:
            error_msg = "Airer rejected light update"
            raise HomeAssistantError(error_msg)

        self._attr_is_on = is_on
        self.async_write_ha_state()
