"""
Configuration flow for ADT Pulse integration.

This module handles the setup of the ADT Pulse integration through Home
Assistant's config flow system, including the portal's multi-factor challenge.
"""

import logging
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import ConfigFlow, ConfigFlowResult
from homeassistant.const import CONF_PASSWORD, CONF_USERNAME

from .api import ADTPulseClient, create_session_client
from .const import (
    CONF_DEVICE_NAME,
    CONF_FINGERPRINT,
    CONF_METHOD_ID,
    CONF_OTP_CODE,
    CONF_SUBDOMAIN,
    DEFAULT_SUBDOMAIN,
    DOMAIN,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_INVALID_CODE,
    ERROR_INVALID_DEVICE_NAME,
    ERROR_UNKNOWN,
    MFA_STATUS_REQUIRED,
    SUBDOMAINS,
)
from .coordinator import failure_message
from .exceptions import ErrorKind
from .fingerprint import generate_fingerprint
from .models import FailureInfo, PortalResult, VerificationMethod

_LOGGER = logging.getLogger(__name__)

DEFAULT_DEVICE_NAME = "Home Assistant"


def _error_kind(result: PortalResult) -> ErrorKind:
    info = result.info
    return info.kind if isinstance(info, FailureInfo) else ErrorKind.UNKNOWN


class ADTPulseConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle configuration flow for ADT Pulse integration."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        super().__init__()
        self._client: ADTPulseClient | None = None
        self._data: dict[str, Any] = {}
        self._methods: list[VerificationMethod] = []

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Handle the initial step of the config flow.

        Args:
            user_input: User input data containing username, password and
                subdomain.

        Returns:
            ConfigFlowResult indicating the next step or errors.

        """
        errors: dict[str, str] = {}

        if user_input is not None:
            username = user_input[CONF_USERNAME]
            subdomain = user_input[CONF_SUBDOMAIN]

            await self.async_set_unique_id(f"{subdomain}:{username.lower()}")
            self._abort_if_unique_id_configured()

            self._data = {
                CONF_USERNAME: username,
                CONF_PASSWORD: user_input[CONF_PASSWORD],
                CONF_SUBDOMAIN: subdomain,
                CONF_FINGERPRINT: generate_fingerprint(),
            }
            await self._async_close_client()
            self._client = ADTPulseClient(
                username,
                user_input[CONF_PASSWORD],
                subdomain=subdomain,
                fingerprint=self._data[CONF_FINGERPRINT],
                client_factory=create_session_client(self.hass),
            )

            result = await self._client.get_verification_methods()
            if not result.success:
                kind = _error_kind(result)
                _LOGGER.warning("Sign in failed (%s): %s", kind, failure_message(result))
                if kind == ErrorKind.PORTAL_UNREACHABLE:
                    errors["base"] = ERROR_CANNOT_CONNECT
                elif kind == ErrorKind.UNEXPECTED_REDIRECT:
                    errors["base"] = ERROR_INVALID_AUTH
                else:
                    errors["base"] = ERROR_UNKNOWN
            elif result.info.status == MFA_STATUS_REQUIRED:
                self._methods = result.info.methods
                return await self.async_step_verify_method()
            else:
                return await self._async_create_entry()

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_USERNAME): str,
                    vol.Required(CONF_PASSWORD): str,
                    vol.Required(CONF_SUBDOMAIN, default=DEFAULT_SUBDOMAIN): vol.In(
                        SUBDOMAINS
                    ),
                }
            ),
            errors=errors,
        )

    async def async_step_verify_method(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Pick how the one-time code should be delivered."""
        errors: dict[str, str] = {}

        if user_input is not None:
            result = await self._client.request_code(user_input[CONF_METHOD_ID])
            if result.success:
                return await self.async_step_validate_code()
            _LOGGER.warning("Requesting a code failed: %s", failure_message(result))
            errors["base"] = ERROR_UNKNOWN

        return self.async_show_form(
            step_id="verify_method",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_METHOD_ID): vol.In(
                        {method.id: method.label for method in self._methods}
                    ),
                }
            ),
            errors=errors,
        )

    async def async_step_validate_code(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Enter the one-time code."""
        errors: dict[str, str] = {}

        if user_input is not None:
            result = await self._client.validate_code(user_input[CONF_OTP_CODE])
            if result.success:
                devices = await self._client.get_trusted_devices()
                if not devices.success:
                    _LOGGER.debug(
                        "Could not list trusted devices: %s", failure_message(devices)
                    )
                return await self.async_step_trusted_device()
            _LOGGER.warning("Code validation failed: %s", failure_message(result))
            if _error_kind(result) == ErrorKind.INVALID_INPUT:
                errors["base"] = ERROR_INVALID_CODE
            else:
                errors["base"] = ERROR_UNKNOWN

        return self.async_show_form(
            step_id="validate_code",
            data_schema=vol.Schema({vol.Required(CONF_OTP_CODE): str}),
            errors=errors,
        )

    async def async_step_trusted_device(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Trust this installation so later sign ins skip the challenge."""
        errors: dict[str, str] = {}

        if user_input is not None:
            result = await self._client.add_trusted_device(user_input[CONF_DEVICE_NAME])
            if result.success:
                return await self.async_step_complete_sign_in()
            _LOGGER.warning("Adding trusted device failed: %s", failure_message(result))
            if _error_kind(result) == ErrorKind.INVALID_INPUT:
                errors["base"] = ERROR_INVALID_DEVICE_NAME
            else:
                errors["base"] = ERROR_UNKNOWN

        return self.async_show_form(
            step_id="trusted_device",
            data_schema=vol.Schema(
                {vol.Required(CONF_DEVICE_NAME, default=DEFAULT_DEVICE_NAME): str}
            ),
            errors=errors,
        )

    async def async_step_complete_sign_in(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Finish the sign in and create the entry."""
        result = await self._client.complete_sign_in()
        if not result.success:
            _LOGGER.error("Completing sign in failed: %s", failure_message(result))
            await self._async_close_client()
            return self.async_abort(reason=ERROR_UNKNOWN)

        return await self._async_create_entry()

    async def _async_create_entry(self) -> ConfigFlowResult:
        await self._client.logout()
        await self._async_close_client()
        _LOGGER.info("Successfully signed in to the ADT Pulse portal")

        return self.async_create_entry(
            title=f"ADT Pulse ({self._data[CONF_USERNAME]})",
            data=self._data,
        )

    async def _async_close_client(self) -> None:
        if self._client is not None:
            await self._client.async_close()
            self._client = None
