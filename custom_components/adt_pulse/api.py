"""API client for the ADT Pulse portal.

This module exposes ADTPulseClient, the surface the rest of the integration
talks to. Every public coroutine returns a PortalResult and never raises: the
engine's exceptions are turned into failure results at this boundary.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import create_async_httpx_client
from httpx_retries import Retry, RetryTransport

from .auth import ADTPulseAuth
from .const import CONDENSED_SENSOR_TYPES, DEFAULT_SUBDOMAIN, REQUEST_TIMEOUT, SETTLE_DELAY
from .detect import DriftDetector
from .driver import ADTPulseDriver
from .exceptions import ADTPulseError, ErrorKind
from .fingerprint import generate_fingerprint
from .models import Action, FailureInfo, PortalResult
from .reader import ADTPulseReader
from .session import ClientFactory, new_session

_LOGGER = logging.getLogger(__name__)


def serialize_error(err: BaseException) -> dict[str, str]:
    """Serialize an exception for a failure result."""
    return {"type": type(err).__name__, "message": str(err)}


def condense_sensor_type(device_type: str) -> str | None:
    """Map a portal device type to a short sensor kind.

    Args:
        device_type: Device type from the system page, e.g. "Door Sensor".

    Returns:
        Short kind such as "doorWindow", or None for unsupported devices.

    """
    return CONDENSED_SENSOR_TYPES.get(device_type)


def create_session_client(hass: HomeAssistant) -> ClientFactory:
    """Create a factory for Home Assistant HTTP clients with retry logic.

    The session calls the factory again on every reset, so each client starts
    with an empty cookie jar. Sessions close their own clients.

    Args:
        hass: Home Assistant instance.

    Returns:
        Callable returning a configured httpx AsyncClient.

    """

    def factory() -> httpx.AsyncClient:
        base_client = create_async_httpx_client(
            hass,
            auto_cleanup=False,
            follow_redirects=True,
            timeout=REQUEST_TIMEOUT,
        )
        retry = Retry(total=3, backoff_factor=0.5)
        base_client._transport = RetryTransport(  # noqa: SLF001
            transport=base_client._transport,  # noqa: SLF001
            retry=retry,
        )
        return base_client

    return factory


class ADTPulseClient:
    """Client for one ADT Pulse portal account."""

    def __init__(
        self,
        username: str,
        password: str,
        *,
        subdomain: str = DEFAULT_SUBDOMAIN,
        fingerprint: str | None = None,
        client_factory: ClientFactory | None = None,
        detector: DriftDetector | None = None,
        settle_delay: float = SETTLE_DELAY,
    ) -> None:
        """Initialize the client.

        Args:
            username: Portal username.
            password: Portal password.
            subdomain: Portal subdomain, "portal" or "portal-ca".
            fingerprint: Browser fingerprint to sign in with. A new one is
                generated when omitted.
            client_factory: Callable returning a fresh httpx AsyncClient.
            detector: Drift detector. Each client gets its own by default.
            settle_delay: Seconds to wait after a mutation before reloading.

        """
        self._session = new_session(subdomain, client_factory)
        self._detector = detector if detector is not None else DriftDetector()
        self._auth = ADTPulseAuth(
            self._session,
            username,
            password,
            fingerprint if fingerprint is not None else generate_fingerprint(),
            self._detector,
        )
        self._reader = ADTPulseReader(self._session, self._auth, self._detector)
        self._driver = ADTPulseDriver(
            self._session,
            self._auth,
            self._reader,
            self._detector,
            settle_delay,
        )
        self._mutation_lock = asyncio.Lock()

    @property
    def fingerprint(self) -> str:
        """Return the fingerprint this client signs in with."""
        return self._auth.fingerprint

    @property
    def detector(self) -> DriftDetector:
        """Return the drift detector observing this client's responses."""
        return self._detector

    def is_authenticated(self) -> bool:
        """Return whether the session is signed in."""
        return self._session.is_authenticated

    async def is_portal_accessible(self) -> PortalResult:
        """Check that the portal can be reached."""
        return await self._run(Action.IS_PORTAL_ACCESSIBLE, self._auth.is_portal_accessible)

    async def login(self) -> PortalResult:
        """Sign in. Info is a SessionInfo on success."""
        return await self._run(Action.LOGIN, self._auth.login)

    async def logout(self) -> PortalResult:
        """Sign out and reset the session. Info is a SessionInfo on success."""
        return await self._run(Action.LOGOUT, self._auth.logout)

    async def get_verification_methods(self) -> PortalResult:
        """Sign in and report whether the multi-factor challenge is required."""
        return await self._run(
            Action.GET_VERIFICATION_METHODS, self._auth.get_verification_methods
        )

    async def request_code(self, method_id: str) -> PortalResult:
        """Ask the portal to send a one-time code through a method."""
        return await self._run(
            Action.REQUEST_CODE, lambda: self._auth.request_code(method_id)
        )

    async def validate_code(self, otp_code: str) -> PortalResult:
        """Submit the one-time code."""
        return await self._run(
            Action.VALIDATE_CODE, lambda: self._auth.validate_code(otp_code)
        )

    async def get_trusted_devices(self) -> PortalResult:
        """List the devices trusted by the account."""
        return await self._run(Action.GET_TRUSTED_DEVICES, self._auth.get_trusted_devices)

    async def add_trusted_device(self, name: str) -> PortalResult:
        """Trust this browser under a display name."""
        return await self._run(
            Action.ADD_TRUSTED_DEVICE, lambda: self._auth.add_trusted_device(name)
        )

    async def complete_sign_in(self) -> PortalResult:
        """Finish the sign in after the multi-factor challenge."""
        return await self._run(Action.COMPLETE_SIGN_IN, self._auth.complete_sign_in)

    async def get_gateway_information(self) -> PortalResult:
        """Read the gateway details."""
        return await self._run(
            Action.GET_GATEWAY_INFORMATION, self._reader.get_gateway_information
        )

    async def get_panel_information(self) -> PortalResult:
        """Read the security panel details."""
        return await self._run(
            Action.GET_PANEL_INFORMATION, self._reader.get_panel_information
        )

    async def get_panel_status(self) -> PortalResult:
        """Read the panel arm state and status."""
        return await self._run(Action.GET_PANEL_STATUS, self._reader.get_panel_status)

    async def get_sensors_information(self) -> PortalResult:
        """Read the sensors configured on the system page."""
        return await self._run(
            Action.GET_SENSORS_INFORMATION, self._reader.get_sensors_information
        )

    async def get_sensors_status(self) -> PortalResult:
        """Read the live sensor statuses from the summary page."""
        return await self._run(Action.GET_SENSORS_STATUS, self._reader.get_sensors_status)

    async def perform_sync_check(self) -> PortalResult:
        """Fetch the current sync code."""
        return await self._run(Action.PERFORM_SYNC_CHECK, self._reader.perform_sync_check)

    async def perform_keep_alive(self) -> PortalResult:
        """Keep the portal session from expiring."""
        return await self._run(Action.PERFORM_KEEP_ALIVE, self._reader.perform_keep_alive)

    async def set_panel_status(self, arm_from: str, arm_to: str) -> PortalResult:
        """Move the panel between arm states.

        Only one mutation runs at a time; a second caller waits for the first.
        """
        async with self._mutation_lock:
            return await self._run(
                Action.SET_PANEL_STATUS,
                lambda: self._driver.set_panel_status(arm_from, arm_to),
            )

    async def arm_disarm_handler(
        self,
        relative_url: str,
        href: str,
        arm_state: str | None,
        arm: str,
        sat: str,
    ) -> PortalResult:
        """Submit a single arm/disarm transition."""
        async with self._mutation_lock:
            return await self._run(
                Action.ARM_DISARM_HANDLER,
                lambda: self._driver.arm_disarm_handler(
                    relative_url, href, arm_state, arm, sat
                ),
            )

    async def force_arm_handler(
        self, response: httpx.Response, relative_url: str
    ) -> PortalResult:
        """Accept a force-arm confirmation found in an arm/disarm response."""
        async with self._mutation_lock:
            return await self._run(
                Action.FORCE_ARM_HANDLER,
                lambda: self._driver.force_arm_handler(response, relative_url),
            )

    async def async_close(self) -> None:
        """Close the HTTP client and wait for pending drift checks."""
        await self._detector.async_wait()
        await self._session.http_client.aclose()

    async def _run(
        self, action: Action, operation: Callable[[], Awaitable[Any]]
    ) -> PortalResult:
        """Run an engine operation and wrap its outcome in a PortalResult."""
        _LOGGER.debug("Attempting %s", action)
        try:
            info = await operation()
        except ADTPulseError as err:
            _LOGGER.debug("%s failed (%s): %s", action, err.kind, err)
            failure = FailureInfo(kind=err.kind, message=str(err))
        except httpx.HTTPError as err:
            _LOGGER.debug("%s failed with a connection error: %s", action, err)
            failure = FailureInfo(
                kind=ErrorKind.PORTAL_UNREACHABLE,
                message=str(err) or type(err).__name__,
                error=serialize_error(err),
            )
        except Exception as err:
            _LOGGER.exception("Unexpected error during %s", action)
            failure = FailureInfo(kind=ErrorKind.UNKNOWN, error=serialize_error(err))
        else:
            _LOGGER.debug("%s succeeded", action)
            return PortalResult(action=action, success=True, info=info)

        return PortalResult(action=action, success=False, info=failure)
