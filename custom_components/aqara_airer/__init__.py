from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_PASSWORD,
    CONF_USERNAME,
    Platform,
)
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady

from . import api
from .api import create_session_client
from .const import DOMAIN
from .coordinator import AqaraAirerCoordinator

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.COVER, Platform.LIGHT]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Setting up Aqara Airer integration for entry %s", entry.entry_id)

    client = api.AqaraAirerClient(
        create_session_client(hass),
        entry.data[CONF_CLIENT_ID],
        entry.data[CONF_CLIENT_SECRET],
        entry.data[CONF_USERNAME],
        entry.data[CONF_PASSWORD],
    )

    try:
        await client.async_initialize()
    except api.AqaraAuthError as err:
        _LOGGER.warning(
            "Authentication failed for entry %s: %s", entry.entry_id, str(err)
        )
        return False
    except api.AqaraTransportError as err:
        error_msg = f"Connection error during setup: {err}"
        raise ConfigEntryNotReady(error_msg) from err
    except api.AqaraApiClientError as err:
        error_msg = f"API error during setup: {err}"
        raise ConfigEntryNotReady(error_msg) from err

    if client.did is None:
        await client.async_shutdown()
        error_msg = "No airer found on the account yet"
        raise ConfigEntryNotReady(error_msg)

    coordinator = AqaraAirerCoordinator(hass, client, entry)
    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "client": client,
        "coordinator": coordinator,
    }
    _LOGGER.debug("Stored data for entry %s (device %s)", entry.entry_id, client.did)

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    _LOGGER.info(
        "Successfully set up Aqara Airer integration for entry %s", entry.entry_id
    )
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Unloading Aqara Airer integration for entry %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        _LOGGER.warning("Failed to unload some platforms for entry %s", entry.entry_id)
        return False

    entry_data = hass.data.get(DOMAIN, {}).pop(entry.entry_id, None)
    if entry_data is not None:
        await entry_data["client"].async_shutdown()
        _LOGGER.debug("Cleaned up data for entry %s", entry.entry_id)
    return True
