from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_PASSWORD, CONF_USERNAME
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady

from .api import ADTPulseClient, create_session_client
from .const import CONF_FINGERPRINT, CONF_SUBDOMAIN, DEFAULT_SUBDOMAIN, DOMAIN
from .coordinator import ADTPulseCoordinator, failure_message

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Setting up ADT Pulse integration for entry %s", entry.entry_id)

    if CONF_USERNAME not in entry.data or CONF_PASSWORD not in entry.data:
        _LOGGER.error("Missing credentials in configuration for entry %s", entry.entry_id)
        return False

    client = ADTPulseClient(
        entry.data[CONF_USERNAME],
        entry.data[CONF_PASSWORD],
        subdomain=entry.data.get(CONF_SUBDOMAIN, DEFAULT_SUBDOMAIN),
        fingerprint=entry.data.get(CONF_FINGERPRINT),
        client_factory=create_session_client(hass),
    )
    coordinator = ADTPulseCoordinator(hass, client, entry)

    try:
        await coordinator.async_config_entry_first_refresh()
    except ConfigEntryNotReady:
        await client.async_close()
        raise
    except Exception as err:
        _LOGGER.exception(
            "Unexpected error during setup for entry %s: %s", entry.entry_id, err
        )
        await client.async_close()
        return False

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "client": client,
        "coordinator": coordinator,
    }
    _LOGGER.info(
        "Successfully setup ADT Pulse integration for entry %s (%d sensors)",
        entry.entry_id,
        len(coordinator.data.sensors_info),
    )
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Unloading ADT Pulse integration for entry %s", entry.entry_id)

    entry_data = hass.data.get(DOMAIN, {}).pop(entry.entry_id, None)
    if entry_data is None:
        _LOGGER.debug("No data stored for entry %s", entry.entry_id)
        return True

    client: ADTPulseClient = entry_data["client"]
    result = await client.logout()
    if not result.success:
        _LOGGER.warning(
            "Sign out failed while unloading entry %s: %s",
            entry.entry_id,
            failure_message(result),
        )
    await client.async_close()

    _LOGGER.info(
        "Successfully unloaded ADT Pulse integration for entry %s", entry.entry_id
    )
    return True
