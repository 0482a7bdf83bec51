"""Coordinator for ADT Pulse integration."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import timedelta
from typing import TYPE_CHECKING

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .const import (
    DOMAIN,
    INITIAL_SYNC_CODE,
    KEEP_ALIVE_INTERVAL,
    MAX_LOGIN_RETRIES,
    SESSION_LIFESPAN,
    SUSPEND_SYNCING,
    SYNC_CHECK_INTERVAL,
)
from .models import ADTPulseData, FailureInfo, PortalResult

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .api import ADTPulseClient

_LOGGER = logging.getLogger(__name__)

PANEL_STATE_TO_ARM = {
    "Armed Away": "away",
    "Armed Night": "night",
    "Armed Stay": "stay",
    "Disarmed": "off",
}


def failure_message(result: PortalResult) -> str:
    """Return a readable reason for a failed result."""
    info = result.info
    if isinstance(info, FailureInfo):
        if info.message:
            return info.message
        if info.error:
            return info.error.get("message") or info.error.get("type", "")
        return str(info.kind)
    return f"{result.action} failed"


class ADTPulseCoordinator(DataUpdateCoordinator[ADTPulseData]):
    """Coordinator that keeps the portal session alive and polls for changes.

    A cheap sync check runs on every update. The full set of pages is only
    loaded when the sync code changes, or right after signing in.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        client: ADTPulseClient,
        config_entry: ConfigEntry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=timedelta(seconds=SYNC_CHECK_INTERVAL),
        )
        self.client = client
        self.config_entry = config_entry
        self._clock = clock
        self._session_started_at: float | None = None
        self._last_keep_alive_at: float | None = None
        self._failed_logins = 0
        self._suspended_until: float | None = None
        self.data = ADTPulseData(sync_code=INITIAL_SYNC_CODE)

    async def _async_update_data(self) -> ADTPulseData:
        """Sign in if needed, keep the session alive and refresh on change."""
        now = self._clock()
        data = self.data or ADTPulseData(sync_code=INITIAL_SYNC_CODE)

        if self._suspended_until is not None:
            if now < self._suspended_until:
                error_msg = (
                    f"Login suspended for {int(self._suspended_until - now)} more "
                    "seconds after repeated failures"
                )
                raise UpdateFailed(error_msg)
            self._suspended_until = None
            self._failed_logins = 0

        if (
            self.client.is_authenticated()
            and self._session_started_at is not None
            and now - self._session_started_at >= SESSION_LIFESPAN
        ):
            _LOGGER.info("Session lifespan reached, signing out to start a new one")
            result = await self.client.logout()
            if not result.success:
                _LOGGER.warning("Sign out failed: %s", failure_message(result))
            self._session_started_at = None

        force_refresh = False
        if not self.client.is_authenticated():
            await self._async_login(now)
            force_refresh = True

        if (
            self._last_keep_alive_at is not None
            and now - self._last_keep_alive_at >= KEEP_ALIVE_INTERVAL
        ):
            result = await self.client.perform_keep_alive()
            if result.success:
                self._last_keep_alive_at = now
            else:
                _LOGGER.warning("Keep alive failed: %s", failure_message(result))

        sync = await self.client.perform_sync_check()
        if not sync.success:
            error_msg = f"Sync check failed: {failure_message(sync)}"
            raise UpdateFailed(error_msg)

        sync_code = sync.info.sync_code
        if sync_code == data.sync_code and not force_refresh:
            return data

        _LOGGER.debug("Sync code changed from %s to %s", data.sync_code, sync_code)
        return await self._async_refresh_all(sync_code)

    async def async_set_panel_status(self, arm_to: str) -> None:
        """Arm or disarm the panel and refresh afterwards.

        Args:
            arm_to: Target state: away, disarmed, night, off or stay.

        Raises:
            HomeAssistantError: If the panel state could not be changed.

        """
        panel_status = self.data.panel_status if self.data else None
        arm_from = PANEL_STATE_TO_ARM.get(panel_status.state if panel_status else "")
        if arm_from is None:
            # Pick a source that never equals the target; buttons decide the rest.
            arm_from = "away" if arm_to in ("off", "disarmed") else "off"

        result = await self.client.set_panel_status(arm_from, arm_to)
        if not result.success:
            error_msg = f"Failed to set panel status to {arm_to}: {failure_message(result)}"
            raise HomeAssistantError(error_msg)

        if result.info.force_arm_required:
            _LOGGER.info("Panel was force armed to %s", arm_to)
        await self.async_request_refresh()

    async def _async_login(self, now: float) -> None:
        result = await self.client.login()
        if result.success:
            _LOGGER.info("Signed in to the ADT Pulse portal")
            self._failed_logins = 0
            self._session_started_at = now
            self._last_keep_alive_at = now
            return

        self._failed_logins += 1
        message = failure_message(result)
        if self._failed_logins >= MAX_LOGIN_RETRIES:
            self._suspended_until = now + SUSPEND_SYNCING
            _LOGGER.warning(
                "Login failed %d times, suspending login attempts for %d seconds",
                self._failed_logins,
                SUSPEND_SYNCING,
            )

        error_msg = f"Login failed: {message}"
        raise UpdateFailed(error_msg)

    async def _async_refresh_all(self, sync_code: str) -> ADTPulseData:
        results = await asyncio.gather(
            self.client.get_gateway_information(),
            self.client.get_panel_information(),
            self.client.get_panel_status(),
            self.client.get_sensors_information(),
            self.client.get_sensors_status(),
        )
        for result in results:
            if not result.success:
                error_msg = f"Failed to refresh {result.action}: {failure_message(result)}"
                raise UpdateFailed(error_msg)

        gateway, panel, panel_status, sensors_info, sensors_status = (
            result.info for result in results
        )
        _LOGGER.debug(
            "Refreshed portal data: %d sensors, panel %s",
            len(sensors_info),
            panel_status.state,
        )
        return ADTPulseData(
            sync_code=sync_code,
            gateway=gateway,
            panel=panel,
            panel_status=panel_status,
            sensors_info=sensors_info,
            sensors_status=sensors_status,
        )
