"""Arm/disarm driver for the ADT Pulse portal.

The portal only offers the transitions its summary page buttons allow, so the
driver disarms first when needed, then arms to the target state. Arming with
open sensors answers with a confirmation page, which the force-arm handler
accepts on the user's behalf.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from .auth import ADTPulseAuth
from .const import (
    ARM_DISARM_HREF,
    ARM_DISARM_PATH,
    ARM_DISARM_RELATIVE_URL,
    ARM_VALUES,
    FORCE_ARM_SUCCESS_MARKER,
    PANEL_ARM_TARGETS,
    RUN_RRA_COMMAND_PATH,
    SETTLE_DELAY,
)
from .exceptions import (
    ForceArmUnavailableError,
    InvalidInputError,
    MalformedResponseError,
)
from .fingerprint import generate_dtpc_header
from .models import (
    ArmDisarmInfo,
    ArmUrlParams,
    ForceArmInfo,
    PendingButton,
    ReadyButton,
    SecurityButton,
    SetPanelStatusInfo,
)
from .parser import (
    parse_arm_disarm_message,
    parse_do_submit_handlers,
    parse_html,
    parse_security_buttons,
    ready_buttons,
)
from .reader import ADTPulseReader
from .session import PortalSession, request_path

if TYPE_CHECKING:
    from .detect import DriftDetector

_LOGGER = logging.getLogger(__name__)

DISARMED_STATES = ("disarmed", "off")
MAX_DISARM_ATTEMPTS = 5
STUCK_ARMING_NIGHT = "Arming Night"
ORB_SECURITY_BUTTONS = "#divOrbSecurityButtons input"
FORCE_ARM_INPUTS = ".p_armDisarmWrapper input"
FORCE_ARM_MESSAGE = ".p_armDisarmWrapper div:first-child"


def _normalize_arm(value: str) -> str:
    return "off" if value == "disarmed" else value


class ADTPulseDriver:
    """Panel state changes for a signed-in session.

    Not safe for concurrent use; callers serialize mutations.
    """

    def __init__(
        self,
        session: PortalSession,
        auth: ADTPulseAuth,
        reader: ADTPulseReader,
        detector: DriftDetector | None = None,
        settle_delay: float = SETTLE_DELAY,
    ) -> None:
        """Initialize the driver.

        Args:
            session: Portal session to mutate with.
            auth: Authentication engine, for its shared failure handling.
            reader: Reader used to reload the summary page.
            detector: Optional drift detector fed with security buttons.
            settle_delay: Seconds to wait after a mutation before reloading.

        """
        self._session = session
        self._auth = auth
        self._reader = reader
        self._detector = detector
        self._settle_delay = settle_delay

    async def set_panel_status(self, arm_from: str, arm_to: str) -> SetPanelStatusInfo:
        """Move the panel from one arm state to another.

        Args:
            arm_from: Current state: away, disarmed, night, off or stay.
            arm_to: Target state, from the same set.

        Returns:
            Whether force arming was needed to reach the target.

        Raises:
            InvalidInputError: If either state is unknown.
            NotAuthenticatedError: If the session is not signed in.
            MalformedResponseError: If no usable security buttons were found.

        """
        for value in (arm_from, arm_to):
            if value not in PANEL_ARM_TARGETS:
                error_msg = f'"{value}" is not a valid arm state'
                raise InvalidInputError(error_msg)

        target = _normalize_arm(arm_to)
        if _normalize_arm(arm_from) == target:
            _LOGGER.debug("Panel is already %s, nothing to do", arm_to)
            return SetPanelStatusInfo(force_arm_required=False)

        self._auth.require_authenticated()

        response = await self._reader.fetch_summary()
        buttons = self._replace_stuck_arming_night(self._parse_buttons(response.text))
        ready = ready_buttons(buttons)
        if not ready:
            error_msg = "Security buttons are not found on the summary page"
            raise MalformedResponseError(error_msg)

        attempts = 0
        while ready[0].url_params.arm_state not in DISARMED_STATES:
            if attempts >= MAX_DISARM_ATTEMPTS:
                error_msg = (
                    f"The panel is still {ready[0].url_params.arm_state} after "
                    f"{attempts} disarm attempts"
                )
                raise MalformedResponseError(error_msg)
            attempts += 1

            result = await self.arm_disarm_handler(
                ready[0].relative_url,
                ready[0].url_params.href,
                ready[0].url_params.arm_state,
                "off",
                ready[0].url_params.sat,
            )
            if not result.new_ready_buttons:
                error_msg = "Arm disarm handler failed to find new security buttons"
                raise MalformedResponseError(error_msg)
            ready = result.new_ready_buttons

        force_arm_required = False
        if target != "off":
            result = await self.arm_disarm_handler(
                ready[0].relative_url,
                ready[0].url_params.href,
                ready[0].url_params.arm_state,
                target,
                ready[0].url_params.sat,
            )
            force_arm_required = result.force_arm_required

        _LOGGER.info("Panel status changed from %s to %s", arm_from, arm_to)
        return SetPanelStatusInfo(force_arm_required=force_arm_required)

    async def arm_disarm_handler(
        self,
        relative_url: str,
        href: str,
        arm_state: str | None,
        arm: str,
        sat: str,
    ) -> ArmDisarmInfo:
        """Submit one arm/disarm transition and reload the summary page.

        Args:
            relative_url: Button handler URL, relative to the versioned root.
            href: Portal action reference from the button.
            arm_state: Current arm state literal from the button.
            arm: Target arm literal: away, night, off or stay.
            sat: Sat code from the button.

        Returns:
            Whether force arming was needed and the ready buttons afterwards.

        Raises:
            InvalidInputError: If the target literal is unknown.
            UnexpectedRedirectError: If the submission did not land on the
                arm/disarm page.
            ForceArmUnavailableError: If the confirmation could not complete.

        """
        if arm not in ARM_VALUES:
            error_msg = f'"{arm}" is not a valid arm target'
            raise InvalidInputError(error_msg)

        if arm_state == arm or (arm_state == "disarmed" and arm == "off"):
            _LOGGER.debug("Arm state is already %s", arm_state)
            return ArmDisarmInfo(force_arm_required=False, new_ready_buttons=[])

        self._auth.require_authenticated()

        session = self._session
        client = session.http_client
        response = await client.post(
            f"{session.versioned_url}/{relative_url}",
            data={"href": href, "armstate": arm_state or "", "arm": arm, "sat": sat},
            **session.request_config(
                {
                    "headers": {
                        "Cache-Control": "max-age=0",
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Origin": session.base_url,
                        "Referer": f"{session.versioned_url}/summary/summary.jsp",
                        "Sec-Fetch-Dest": "iframe",
                        "Sec-Fetch-Mode": "navigate",
                        "Sec-Fetch-Site": "same-origin",
                        "Sec-Fetch-User": None,
                    }
                }
            ),
        )
        await self._auth.expect_path(
            response, ARM_DISARM_PATH, "arm disarm page", client=client
        )

        force_arm_required = False
        if arm != "off":
            force_arm = await self.force_arm_handler(response, relative_url)
            force_arm_required = force_arm.force_arm_required

        # Literals the portal expects change once the session has mutated.
        session.is_clean_state = False

        await asyncio.sleep(self._settle_delay)

        summary = await self._reader.fetch_summary()
        buttons = self._replace_stuck_arming_night(self._parse_buttons(summary.text))
        ready = ready_buttons(buttons)

        if not ready and arm == "night" and arm_state in DISARMED_STATES:
            ready = [self._fake_disarm_button(relative_url, href, sat)]

        return ArmDisarmInfo(force_arm_required=force_arm_required, new_ready_buttons=ready)

    async def force_arm_handler(
        self, response: httpx.Response, relative_url: str
    ) -> ForceArmInfo:
        """Accept the force-arm confirmation if the portal asked for one.

        Args:
            response: Response of the arm/disarm submission.
            relative_url: URL the arm/disarm form was posted to.

        Returns:
            Whether force arming was required.

        Raises:
            NotAuthenticatedError: If the session is not signed in.
            ForceArmUnavailableError: If no "Arm Anyway" handler succeeded.

        """
        self._auth.require_authenticated()

        document = parse_html(response.text)
        handlers = parse_do_submit_handlers(document.select(FORCE_ARM_INPUTS))
        message = parse_arm_disarm_message(document.select_one(FORCE_ARM_MESSAGE))

        if not handlers or message is None:
            _LOGGER.debug("Force arming is not required")
            return ForceArmInfo(force_arm_required=False)

        _LOGGER.warning("Portal asked to confirm arming: %s", message)

        session = self._session
        error_msg: str | None = None
        for handler in handlers:
            params = handler.url_params
            if params.arm_state is None or params.arm is None:
                continue

            force_response = await session.http_client.post(
                f"{session.base_url}{handler.relative_url}",
                data={
                    "sat": params.sat,
                    "href": params.href,
                    "armstate": params.arm_state,
                    "arm": params.arm,
                },
                **session.request_config(
                    {
                        "headers": {
                            "Accept": "*/*",
                            "Content-type": "application/x-www-form-urlencoded",
                            "Origin": session.base_url,
                            "Referer": f"{session.versioned_url}/{relative_url}",
                            "Sec-Fetch-Dest": "empty",
                            "Sec-Fetch-Mode": "cors",
                            "Sec-Fetch-Site": "same-origin",
                            "Sec-Fetch-User": None,
                            "x-dtpc": generate_dtpc_header("force-arm"),
                        }
                    }
                ),
            )

            path = request_path(force_response)
            if not RUN_RRA_COMMAND_PATH.match(path):
                error_msg = f'"{path}" is not the force arm disarm page'
                continue
            if FORCE_ARM_SUCCESS_MARKER not in force_response.text:
                error_msg = (
                    "The response body of the force arm disarm page does not "
                    f'include "{FORCE_ARM_SUCCESS_MARKER}"'
                )
                continue

            _LOGGER.info("Force arming to %s completed", params.arm)
            return ForceArmInfo(force_arm_required=True)

        if error_msg is None:
            error_msg = (
                'Force arming failed because the "Arm Anyway" button was not found'
            )
        raise ForceArmUnavailableError(error_msg)

    def _parse_buttons(self, html: str) -> list[SecurityButton]:
        buttons = parse_security_buttons(parse_html(html).select(ORB_SECURITY_BUTTONS))
        if self._detector is not None:
            for button in buttons:
                if isinstance(button, ReadyButton):
                    payload = {"text": button.text, "loading_text": button.loading_text}
                else:
                    payload = {"loading_text": button.title}
                self._detector.observe("security-buttons", payload)
        return buttons

    def _replace_stuck_arming_night(
        self, buttons: list[SecurityButton]
    ) -> list[SecurityButton]:
        """Swap a stuck "Arming Night" button for a usable Disarm button.

        The portal sometimes leaves the button pending after arming night. The
        panel is armed by then, so a Disarm built from the backup sat code
        lets the state machine continue.
        """
        sat = self._session.backup_sat_code
        if sat is None:
            return buttons

        replaced = list(buttons)
        for index, button in enumerate(replaced):
            if isinstance(button, PendingButton) and button.title == STUCK_ARMING_NIGHT:
                _LOGGER.debug("Replacing stuck %s button", STUCK_ARMING_NIGHT)
                replaced[index] = self._fake_disarm_button(
                    ARM_DISARM_RELATIVE_URL, ARM_DISARM_HREF, sat
                )
        return replaced

    def _fake_disarm_button(self, relative_url: str, href: str, sat: str) -> ReadyButton:
        return ReadyButton(
            button_id="security_button_0",
            index=0,
            text="Disarm",
            loading_text="Disarming",
            relative_url=relative_url,
            total_buttons=1,
            change_access_code=False,
            url_params=ArmUrlParams(
                arm="off",
                arm_state="night" if self._session.is_clean_state else "night+stay",
                href=href,
                sat=sat,
            ),
        )
