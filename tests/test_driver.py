"""Tests for the ADT Pulse arm/disarm driver."""

from urllib.parse import parse_qs

import httpx
import pytest
from pytest_httpx import HTTPXMock

from custom_components.adt_pulse.const import ARM_DISARM_HREF
from custom_components.adt_pulse.driver import ADTPulseDriver
from custom_components.adt_pulse.exceptions import (
    ForceArmUnavailableError,
    InvalidInputError,
    MalformedResponseError,
    NotAuthenticatedError,
)
from custom_components.adt_pulse.models import ArmDisarmInfo, ForceArmInfo
from custom_components.adt_pulse.session import PortalSession

from portal_pages import (
    ARM_DISARM_HTML,
    ARM_DISARM_URL,
    ARMED_AWAY_BUTTONS,
    ARMED_STAY_BUTTONS,
    DISARMED_BUTTONS,
    FORCE_ARM_HTML,
    PORTAL_VERSION,
    RUN_RRA_COMMAND_URL,
    SAT_CODE,
    SUMMARY_URL,
    build_summary_html,
    pending_button,
)

ARM_DISARM_PAGE = "quickcontrol/armDisarm.jsp"
CANCEL_ONLY_HTML = FORCE_ARM_HTML.replace(
    "setForceArm&amp;armstate=forcearm&amp;arm=stay",
    "setArmState&amp;armstate=off&amp;arm=off",
)


def form_of(request: httpx.Request) -> dict[str, list[str]]:
    """Decode a form-encoded request body."""
    return parse_qs(request.content.decode(), keep_blank_values=True)


class TestSetPanelStatusValidation:
    """Tests for set_panel_status input handling."""

    @pytest.mark.asyncio
    async def test_set_panel_status_rejects_unknown_state(
        self,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that an unknown target is rejected."""
        with pytest.raises(InvalidInputError, match="vacation"):
            await driver.set_panel_status("off", "vacation")

    @pytest.mark.asyncio
    async def test_set_panel_status_skips_equivalent_states(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that disarmed to off needs no request."""
        info = await driver.set_panel_status("disarmed", "off")
        assert info.force_arm_required is False
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_set_panel_status_fails_fast_when_signed_out(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
    ) -> None:
        """Test that a signed-out session sends nothing."""
        with pytest.raises(NotAuthenticatedError):
            await driver.set_panel_status("off", "away")
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_set_panel_status_raises_without_buttons(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that a summary without ready buttons is malformed."""
        httpx_mock.add_response(
            method="GET", url=SUMMARY_URL, text=build_summary_html(buttons=())
        )
        with pytest.raises(MalformedResponseError, match="Security buttons"):
            await driver.set_panel_status("off", "away")


class TestSetPanelStatus:
    """Tests for set_panel_status transitions."""

    @pytest.mark.asyncio
    async def test_set_panel_status_arms_stay_with_force_arm(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that arming stay with an open sensor accepts Arm Anyway."""
        httpx_mock.add_response(method="GET", url=SUMMARY_URL, text=build_summary_html())
        httpx_mock.add_response(method="POST", url=ARM_DISARM_URL, text=FORCE_ARM_HTML)
        httpx_mock.add_response(method="POST", url=RUN_RRA_COMMAND_URL, text="1.0-OKAY")
        httpx_mock.add_response(
            method="GET",
            url=SUMMARY_URL,
            text=build_summary_html("Armed Stay. 1 Sensor Open.", ARMED_STAY_BUTTONS),
        )

        info = await driver.set_panel_status("off", "stay")

        assert info.force_arm_required is True
        assert signed_in_session.is_clean_state is False

        arm_request = httpx_mock.get_request(method="POST", url=ARM_DISARM_URL)
        assert form_of(arm_request) == {
            "href": [ARM_DISARM_HREF],
            "armstate": ["off"],
            "arm": ["stay"],
            "sat": [SAT_CODE],
        }
        force_request = httpx_mock.get_request(method="POST", url=RUN_RRA_COMMAND_URL)
        assert form_of(force_request) == {
            "sat": [SAT_CODE],
            "href": ["rest/adt/ui/client/security/setForceArm"],
            "armstate": ["forcearm"],
            "arm": ["stay"],
        }
        assert force_request.headers["Referer"].endswith(ARM_DISARM_PAGE)
        assert "x-dtpc" in force_request.headers

    @pytest.mark.asyncio
    async def test_set_panel_status_disarms(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that an armed panel is disarmed through its Disarm button."""
        httpx_mock.add_response(
            method="GET",
            url=SUMMARY_URL,
            text=build_summary_html("Armed Away. All Quiet.", ARMED_AWAY_BUTTONS),
        )
        httpx_mock.add_response(method="POST", url=ARM_DISARM_URL, text=ARM_DISARM_HTML)
        httpx_mock.add_response(
            method="GET", url=SUMMARY_URL, text=build_summary_html(buttons=DISARMED_BUTTONS)
        )

        info = await driver.set_panel_status("away", "off")

        assert info.force_arm_required is False
        arm_request = httpx_mock.get_request(method="POST")
        assert form_of(arm_request)["armstate"] == ["away"]
        assert form_of(arm_request)["arm"] == ["off"]

    @pytest.mark.asyncio
    async def test_set_panel_status_disarms_before_arming(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that switching between armed modes disarms first."""
        httpx_mock.add_response(
            method="GET",
            url=SUMMARY_URL,
            text=build_summary_html("Armed Away. All Quiet.", ARMED_AWAY_BUTTONS),
        )
        httpx_mock.add_response(method="POST", url=ARM_DISARM_URL, text=ARM_DISARM_HTML)
        httpx_mock.add_response(method="GET", url=SUMMARY_URL, text=build_summary_html())
        httpx_mock.add_response(method="POST", url=ARM_DISARM_URL, text=ARM_DISARM_HTML)
        httpx_mock.add_response(
            method="GET",
            url=SUMMARY_URL,
            text=build_summary_html("Armed Stay. All Quiet.", ARMED_STAY_BUTTONS),
        )

        info = await driver.set_panel_status("away", "stay")

        assert info.force_arm_required is False
        arms = [
            form_of(request)["arm"]
            for request in httpx_mock.get_requests(method="POST", url=ARM_DISARM_URL)
        ]
        assert arms == [["off"], ["stay"]]


class TestArmDisarmHandler:
    """Tests for arm_disarm_handler method."""

    @pytest.mark.asyncio
    async def test_arm_disarm_handler_rejects_unknown_arm(
        self,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that an unknown arm literal is rejected."""
        with pytest.raises(InvalidInputError):
            await driver.arm_disarm_handler(
                ARM_DISARM_PAGE, ARM_DISARM_HREF, "off", "vacation", SAT_CODE
            )

    @pytest.mark.asyncio
    async def test_arm_disarm_handler_skips_same_state(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that arming to the current state sends nothing."""
        info = await driver.arm_disarm_handler(
            ARM_DISARM_PAGE, ARM_DISARM_HREF, "disarmed", "off", SAT_CODE
        )
        assert info == ArmDisarmInfo(force_arm_required=False, new_ready_buttons=[])
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_arm_disarm_handler_replaces_stuck_arming_night(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that a stuck Arming Night button becomes a usable Disarm."""
        httpx_mock.add_response(method="POST", url=ARM_DISARM_URL, text=ARM_DISARM_HTML)
        httpx_mock.add_response(
            method="GET",
            url=SUMMARY_URL,
            text=build_summary_html(
                "Armed Night. All Quiet.", (pending_button(0, "Arming Night"),)
            ),
        )

        info = await driver.arm_disarm_handler(
            ARM_DISARM_PAGE, ARM_DISARM_HREF, "off", "night", SAT_CODE
        )

        assert info.force_arm_required is False
        assert len(info.new_ready_buttons) == 1
        disarm = info.new_ready_buttons[0]
        assert disarm.text == "Disarm"
        assert disarm.url_params.arm == "off"
        assert disarm.url_params.arm_state == "night+stay"
        assert disarm.url_params.sat == SAT_CODE


class TestForceArmHandler:
    """Tests for force_arm_handler method."""

    @pytest.mark.asyncio
    async def test_force_arm_handler_not_required(
        self,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that a response without a confirmation needs no force arm."""
        response = httpx.Response(200, text=ARM_DISARM_HTML)
        info = await driver.force_arm_handler(response, ARM_DISARM_PAGE)
        assert info == ForceArmInfo(force_arm_required=False)

    @pytest.mark.asyncio
    async def test_force_arm_handler_raises_without_success_marker(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that a confirmation without the success marker fails."""
        httpx_mock.add_response(method="POST", url=RUN_RRA_COMMAND_URL, text="1.0-ERROR")
        response = httpx.Response(200, text=FORCE_ARM_HTML)

        with pytest.raises(ForceArmUnavailableError, match="1.0-OKAY"):
            await driver.force_arm_handler(response, ARM_DISARM_PAGE)

    @pytest.mark.asyncio
    async def test_force_arm_handler_raises_without_arm_anyway(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that a confirmation offering only Cancel fails."""
        response = httpx.Response(200, text=CANCEL_ONLY_HTML)

        with pytest.raises(ForceArmUnavailableError, match="Arm Anyway"):
            await driver.force_arm_handler(response, ARM_DISARM_PAGE)
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_force_arm_handler_requires_sign_in(
        self,
        httpx_mock: HTTPXMock,
        driver: ADTPulseDriver,
        session: PortalSession,
    ) -> None:
        """Test that a signed-out session never confirms a force arm."""
        session.portal_version = PORTAL_VERSION
        response = httpx.Response(200, text=FORCE_ARM_HTML)

        with pytest.raises(NotAuthenticatedError):
            await driver.force_arm_handler(response, ARM_DISARM_PAGE)
        assert httpx_mock.get_requests() == []
