"""Tests for the ADT Pulse Config Flow."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from homeassistant.const import CONF_PASSWORD, CONF_USERNAME
from homeassistant.data_entry_flow import FlowResultType

from custom_components.adt_pulse.config_flow import ADTPulseConfigFlow
from custom_components.adt_pulse.const import (
    CONF_DEVICE_NAME,
    CONF_FINGERPRINT,
    CONF_METHOD_ID,
    CONF_OTP_CODE,
    CONF_SUBDOMAIN,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_INVALID_CODE,
    ERROR_INVALID_DEVICE_NAME,
    ERROR_UNKNOWN,
    MFA_STATUS_NOT_REQUIRED,
    MFA_STATUS_REQUIRED,
)
from custom_components.adt_pulse.exceptions import ErrorKind
from custom_components.adt_pulse.models import (
    Action,
    FailureInfo,
    PortalResult,
    SessionInfo,
    VerificationMethod,
    VerificationMethodsInfo,
)

CONFIG_FLOW = "custom_components.adt_pulse.config_flow"
SMS_METHOD = VerificationMethod("sms-1", "SMS", "(***) ***-1234")
USER_INPUT = {
    CONF_USERNAME: "User@Example.com",
    CONF_PASSWORD: "password123",
    CONF_SUBDOMAIN: "portal",
}


def success(action: Action, info: object = None) -> PortalResult:
    """Build a successful portal result."""
    return PortalResult(action=action, success=True, info=info)


def failure(action: Action, kind: ErrorKind, message: str = "failed") -> PortalResult:
    """Build a failed portal result."""
    return PortalResult(
        action=action, success=False, info=FailureInfo(kind=kind, message=message)
    )


@pytest.fixture
def mock_hass() -> Mock:
    """Create a mock Home Assistant instance."""
    return Mock()


@pytest.fixture
def mock_client() -> Mock:
    """Create a mock ADT Pulse client that signs in without a challenge."""
    client = Mock()
    client.get_verification_methods = AsyncMock(
        return_value=success(
            Action.GET_VERIFICATION_METHODS,
            VerificationMethodsInfo(methods=[], status=MFA_STATUS_NOT_REQUIRED),
        )
    )
    client.request_code = AsyncMock(return_value=success(Action.REQUEST_CODE))
    client.validate_code = AsyncMock(return_value=success(Action.VALIDATE_CODE))
    client.get_trusted_devices = AsyncMock(
        return_value=success(Action.GET_TRUSTED_DEVICES, [])
    )
    client.add_trusted_device = AsyncMock(
        return_value=success(Action.ADD_TRUSTED_DEVICE)
    )
    client.complete_sign_in = AsyncMock(
        return_value=success(Action.COMPLETE_SIGN_IN, SessionInfo("sat", "1", "16"))
    )
    client.logout = AsyncMock(
        return_value=success(Action.LOGOUT, SessionInfo(None, None, None))
    )
    client.async_close = AsyncMock()
    return client


@pytest.fixture
def flow(mock_hass: Mock) -> ADTPulseConfigFlow:
    """Create an ADTPulseConfigFlow instance for testing."""
    flow_instance = ADTPulseConfigFlow()
    flow_instance.hass = mock_hass
    flow_instance.async_set_unique_id = AsyncMock()
    flow_instance._abort_if_unique_id_configured = Mock()
    flow_instance.async_create_entry = Mock(
        return_value={"type": FlowResultType.CREATE_ENTRY},
    )
    flow_instance.async_show_form = Mock(return_value={"type": FlowResultType.FORM})
    flow_instance.async_abort = Mock(return_value={"type": FlowResultType.ABORT})
    return flow_instance


@pytest.fixture
def challenged_flow(flow: ADTPulseConfigFlow, mock_client: Mock) -> ADTPulseConfigFlow:
    """Create a flow whose sign in is waiting on the multi-factor challenge."""
    flow._client = mock_client
    flow._methods = [SMS_METHOD]
    flow._data = {
        CONF_USERNAME: "User@Example.com",
        CONF_PASSWORD: "password123",
        CONF_SUBDOMAIN: "portal",
        CONF_FINGERPRINT: "fingerprint",
    }
    return flow


class TestADTPulseConfigFlowAsyncStepUser:
    """Tests for async_step_user method."""

    @pytest.mark.asyncio
    async def test_async_step_user_shows_form_when_no_input(
        self,
        flow: ADTPulseConfigFlow,
    ) -> None:
        """Test that async_step_user shows form when no input provided."""
        result = await flow.async_step_user()
        flow.async_show_form.assert_called_once()
        assert flow.async_show_form.call_args[1]["step_id"] == "user"
        assert result["type"] == FlowResultType.FORM

    @pytest.mark.asyncio
    async def test_async_step_user_creates_entry_without_challenge(
        self,
        flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that a sign in without a challenge creates the entry."""
        with (
            patch(f"{CONFIG_FLOW}.create_session_client") as mock_factory,
            patch(f"{CONFIG_FLOW}.ADTPulseClient", return_value=mock_client) as mock_cls,
        ):
            result = await flow.async_step_user(USER_INPUT)

        flow.async_set_unique_id.assert_called_once_with("portal:user@example.com")
        flow._abort_if_unique_id_configured.assert_called_once()
        mock_factory.assert_called_once_with(flow.hass)
        assert mock_cls.call_args[1]["subdomain"] == "portal"
        mock_client.logout.assert_awaited_once()
        mock_client.async_close.assert_awaited_once()

        call_args = flow.async_create_entry.call_args
        assert call_args[1]["title"] == "ADT Pulse (User@Example.com)"
        data = call_args[1]["data"]
        assert data[CONF_USERNAME] == "User@Example.com"
        assert data[CONF_PASSWORD] == "password123"
        assert data[CONF_SUBDOMAIN] == "portal"
        assert data[CONF_FINGERPRINT] == mock_cls.call_args[1]["fingerprint"]
        assert result["type"] == FlowResultType.CREATE_ENTRY

    @pytest.mark.asyncio
    async def test_async_step_user_moves_to_challenge(
        self,
        flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that a required challenge asks for a verification method."""
        mock_client.get_verification_methods.return_value = success(
            Action.GET_VERIFICATION_METHODS,
            VerificationMethodsInfo(methods=[SMS_METHOD], status=MFA_STATUS_REQUIRED),
        )
        with (
            patch(f"{CONFIG_FLOW}.create_session_client"),
            patch(f"{CONFIG_FLOW}.ADTPulseClient", return_value=mock_client),
        ):
            result = await flow.async_step_user(USER_INPUT)

        assert flow.async_show_form.call_args[1]["step_id"] == "verify_method"
        flow.async_create_entry.assert_not_called()
        mock_client.async_close.assert_not_awaited()
        assert result["type"] == FlowResultType.FORM

    @pytest.mark.parametrize(
        ("kind", "error"),
        [
            (ErrorKind.PORTAL_UNREACHABLE, ERROR_CANNOT_CONNECT),
            (ErrorKind.UNEXPECTED_REDIRECT, ERROR_INVALID_AUTH),
            (ErrorKind.MALFORMED_RESPONSE, ERROR_UNKNOWN),
        ],
    )
    @pytest.mark.asyncio
    async def test_async_step_user_shows_error_on_failure(
        self,
        flow: ADTPulseConfigFlow,
        mock_client: Mock,
        kind: ErrorKind,
        error: str,
    ) -> None:
        """Test that sign in failures map to form errors."""
        mock_client.get_verification_methods.return_value = failure(
            Action.GET_VERIFICATION_METHODS, kind
        )
        with (
            patch(f"{CONFIG_FLOW}.create_session_client"),
            patch(f"{CONFIG_FLOW}.ADTPulseClient", return_value=mock_client),
        ):
            result = await flow.async_step_user(USER_INPUT)

        assert flow.async_show_form.call_args[1]["errors"] == {"base": error}
        flow.async_create_entry.assert_not_called()
        assert result["type"] == FlowResultType.FORM


class TestADTPulseConfigFlowChallenge:
    """Tests for the multi-factor challenge steps."""

    @pytest.mark.asyncio
    async def test_async_step_verify_method_requests_code(
        self,
        challenged_flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that picking a method sends a code and asks for it."""
        result = await challenged_flow.async_step_verify_method({CONF_METHOD_ID: "sms-1"})

        mock_client.request_code.assert_awaited_once_with("sms-1")
        assert challenged_flow.async_show_form.call_args[1]["step_id"] == "validate_code"
        assert result["type"] == FlowResultType.FORM

    @pytest.mark.asyncio
    async def test_async_step_verify_method_shows_error_on_failure(
        self,
        challenged_flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that a failed code request stays on the method form."""
        mock_client.request_code.return_value = failure(
            Action.REQUEST_CODE, ErrorKind.SCHEMA_VALIDATION_FAILED
        )

        await challenged_flow.async_step_verify_method({CONF_METHOD_ID: "sms-1"})

        call_args = challenged_flow.async_show_form.call_args[1]
        assert call_args["step_id"] == "verify_method"
        assert call_args["errors"] == {"base": ERROR_UNKNOWN}

    @pytest.mark.asyncio
    async def test_async_step_validate_code_moves_to_trusted_device(
        self,
        challenged_flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that a valid code asks for a trusted device name."""
        await challenged_flow.async_step_validate_code({CONF_OTP_CODE: "123456"})

        mock_client.validate_code.assert_awaited_once_with("123456")
        mock_client.get_trusted_devices.assert_awaited_once()
        assert challenged_flow.async_show_form.call_args[1]["step_id"] == "trusted_device"

    @pytest.mark.asyncio
    async def test_async_step_validate_code_shows_invalid_code(
        self,
        challenged_flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that a malformed code is reported on the code form."""
        mock_client.validate_code.return_value = failure(
            Action.VALIDATE_CODE, ErrorKind.INVALID_INPUT
        )

        await challenged_flow.async_step_validate_code({CONF_OTP_CODE: "12"})

        call_args = challenged_flow.async_show_form.call_args[1]
        assert call_args["step_id"] == "validate_code"
        assert call_args["errors"] == {"base": ERROR_INVALID_CODE}
        mock_client.get_trusted_devices.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_async_step_trusted_device_creates_entry(
        self,
        challenged_flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that trusting the device completes sign in and creates the entry."""
        result = await challenged_flow.async_step_trusted_device(
            {CONF_DEVICE_NAME: "Home Assistant"}
        )

        mock_client.add_trusted_device.assert_awaited_once_with("Home Assistant")
        mock_client.complete_sign_in.assert_awaited_once()
        mock_client.logout.assert_awaited_once()
        mock_client.async_close.assert_awaited_once()
        assert challenged_flow.async_create_entry.call_args[1]["data"][
            CONF_FINGERPRINT
        ] == "fingerprint"
        assert result["type"] == FlowResultType.CREATE_ENTRY

    @pytest.mark.asyncio
    async def test_async_step_trusted_device_shows_invalid_name(
        self,
        challenged_flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that a rejected device name is reported on the device form."""
        mock_client.add_trusted_device.return_value = failure(
            Action.ADD_TRUSTED_DEVICE, ErrorKind.INVALID_INPUT
        )

        await challenged_flow.async_step_trusted_device({CONF_DEVICE_NAME: " "})

        call_args = challenged_flow.async_show_form.call_args[1]
        assert call_args["step_id"] == "trusted_device"
        assert call_args["errors"] == {"base": ERROR_INVALID_DEVICE_NAME}
        mock_client.complete_sign_in.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_async_step_complete_sign_in_aborts_on_failure(
        self,
        challenged_flow: ADTPulseConfigFlow,
        mock_client: Mock,
    ) -> None:
        """Test that a failed final sign in aborts the flow."""
        mock_client.complete_sign_in.return_value = failure(
            Action.COMPLETE_SIGN_IN, ErrorKind.UNEXPECTED_REDIRECT
        )

        result = await challenged_flow.async_step_complete_sign_in()

        challenged_flow.async_abort.assert_called_once_with(reason=ERROR_UNKNOWN)
        mock_client.async_close.assert_awaited_once()
        challenged_flow.async_create_entry.assert_not_called()
        assert result["type"] == FlowResultType.ABORT
