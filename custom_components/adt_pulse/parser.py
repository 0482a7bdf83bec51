"""Page parser for ADT Pulse portal responses.

Pure functions that turn portal HTML and JSON bodies into models. Nothing in
here touches the network or the session.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any

from bs4 import BeautifulSoup, Tag

from .const import (
    ARM_STATE_VALUES,
    ARM_VALUES,
    FORCE_ARM_STATE,
    FORCE_ARM_VALUES,
    GATEWAY_LABELS,
    PANEL_LABELS,
)
from .exceptions import MalformedResponseError, SchemaValidationError
from .models import (
    ArmUrlParams,
    DoSubmitHandler,
    GatewayInfo,
    PanelInfo,
    PanelStatus,
    PendingButton,
    ReadyButton,
    SecurityButton,
    SensorInfo,
    SensorStatus,
    TrustedDevice,
    VerificationMethod,
)

_LOGGER = logging.getLogger(__name__)

WHITESPACE = re.compile(r"\s+")
HTML_LINE_BREAK = re.compile(r"<br( ?/)?>", re.IGNORECASE)
NETWORK_ID_PARAM = re.compile(r"[?&]networkid=([^&#']*)")
SAT_CODE_PARAM = re.compile(r"sat=([^&']*)")
ORB_TEXT_SUMMARY = re.compile(r"^([A-Za-z0-9 ]+)\. ?([A-Za-z0-9 ]*)\.?$")
EMERGENCY_KEYS = re.compile(r"([A-Za-z0-9]+: [A-Za-z0-9 ]+? \(Zone \d+\))")
ZONE_PREFIX = re.compile(r"^Zone ")
DEVICE_ID = re.compile(r"[?&]id=(\d+)")

MFA_CONFIG_KEYS = {
    "client_type": "xClientType",
    "locale": "locale",
    "login": "xLogin",
    "pre_auth_token": "xPreAuthToken",
    "sat_code": "sat",
}

SET_ARM_STATE_ARGS = 6
SET_ARM_STATE_PARAMS = ("href", "armstate", "arm", "sat")


def parse_html(body: str) -> BeautifulSoup:
    """Parse an HTML body."""
    return BeautifulSoup(body, "html.parser")


def clear_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return WHITESPACE.sub(" ", text).strip()


def clear_html_line_break(text: str) -> str:
    """Replace HTML line breaks with spaces and trim."""
    return HTML_LINE_BREAK.sub(" ", text).strip()


def tokenize_js_call(source: str, function_name: str) -> list[str] | None:
    """Read the single-quoted string arguments of an inline JavaScript call.

    Only calls whose every argument is a single-quoted string literal are
    understood, which is the shape the portal uses for its button handlers.

    Args:
        source: Attribute value such as an onclick handler.
        function_name: Name of the function being called.

    Returns:
        Argument values with escapes resolved, or None if the call is absent
        or has an unexpected shape.

    """
    start = source.find(f"{function_name}(")
    if start < 0:
        return None

    position = start + len(function_name) + 1
    length = len(source)
    args: list[str] = []

    while True:
        while position < length and source[position].isspace():
            position += 1
        if position < length and source[position] == ")" and not args:
            return args
        if position >= length or source[position] != "'":
            return None

        position += 1
        value: list[str] = []
        while position < length and source[position] != "'":
            if source[position] == "\\" and position + 1 < length:
                position += 1
            value.append(source[position])
            position += 1
        if position >= length:
            return None
        args.append("".join(value))
        position += 1

        while position < length and source[position].isspace():
            position += 1
        if position >= length:
            return None
        if source[position] == ")":
            return args
        if source[position] != ",":
            return None
        position += 1


def _split_query(query: str) -> list[tuple[str, str]]:
    pairs = []
    for part in query.split("&"):
        key, separator, value = part.partition("=")
        if not separator:
            return []
        pairs.append((key, value))
    return pairs


def extract_table_cells(
    cells: Iterable[Tag],
    labels: Iterable[str],
    from_offset: int,
    to_offset: int,
) -> dict[str, list[str]]:
    """Collect the cells that follow each labelled table cell.

    Args:
        cells: Flat list of table cells in document order.
        labels: Label texts to look for, compared after whitespace cleanup.
        from_offset: First offset after the label to collect. Clamped to 0.
        to_offset: Last offset to collect, inclusive. Never below from_offset.

    Returns:
        Mapping of label to the cleaned text of the collected cells.

    """
    cell_list = list(cells)
    label_set = set(labels)
    start = max(from_offset, 0)
    end = max(to_offset, start)
    matched: dict[str, list[str]] = {}

    for index, cell in enumerate(cell_list):
        text = clear_whitespace(cell.get_text())
        if text not in label_set:
            continue
        matched[text] = [
            clear_whitespace(cell_list[index + offset].get_text())
            for offset in range(start, end + 1)
            if index + offset < len(cell_list)
        ]

    return matched


def _first(matched: dict[str, list[str]], label: str) -> str | None:
    values = matched.get(label)
    return values[0] if values else None


def parse_gateway_information(html: str) -> GatewayInfo:
    """Parse the gateway page into a GatewayInfo."""
    cells = extract_table_cells(parse_html(html).select("td"), GATEWAY_LABELS, 1, 1)
    return GatewayInfo(
        manufacturer=_first(cells, "Manufacturer:"),
        model=_first(cells, "Model:"),
        broadband_ip=_first(cells, "Broadband LAN IP Address:"),
        broadband_mac=_first(cells, "Broadband LAN MAC:"),
        device_ip=_first(cells, "Device LAN IP Address:"),
        device_mac=_first(cells, "Device LAN MAC:"),
        serial_number=_first(cells, "Serial Number:"),
        status=_first(cells, "Status:"),
        last_update=_first(cells, "Last Update:"),
        next_update=_first(cells, "Next Update:"),
        firmware_version=_first(cells, "Firmware Version:"),
        hardware_version=_first(cells, "Hardware Version:"),
    )


def parse_panel_information(html: str) -> PanelInfo:
    """Parse the security panel device page into a PanelInfo."""
    cells = extract_table_cells(parse_html(html).select("td"), PANEL_LABELS, 1, 1)
    emergency_keys = _first(cells, "Emergency Keys:")
    keys = EMERGENCY_KEYS.findall(emergency_keys) if emergency_keys else []
    return PanelInfo(
        emergency_keys=keys or None,
        manufacturer_provider=_first(cells, "Manufacturer/Provider:"),
        type_model=_first(cells, "Type/Model:"),
        status=_first(cells, "Status:"),
    )


def parse_orb_text_summary(element: Tag | None) -> PanelStatus:
    """Split the orb sentence "<state>. <status>." into a PanelStatus.

    A missing element yields a PanelStatus of all None, and a missing status
    sentence yields a None status.
    """
    if element is None:
        return PanelStatus(state=None, status=None)

    text = clear_whitespace(element.get_text())
    match = ORB_TEXT_SUMMARY.match(text)
    if match is None:
        return PanelStatus(state=text or None, status=None)

    return PanelStatus(state=match.group(1), status=match.group(2) or None)


def _parse_zone(text: str) -> int | None:
    zone = ZONE_PREFIX.sub("", clear_whitespace(text))
    return int(zone) if zone.isdigit() else None


def parse_orb_sensors(rows: Iterable[Tag]) -> list[SensorStatus]:
    """Parse the summary page sensor rows, sorted by zone.

    Rows missing any of icon, name, zone or status are skipped.
    """
    sensors = []
    for row in rows:
        icon = row.select_one("td:nth-of-type(1) canvas")
        name = row.select_one("td:nth-of-type(3) a.p_deviceNameText")
        zone = row.select_one(
            "td:nth-of-type(3) span.p_grayNormalText, "
            "td:nth-of-type(3) div.p_grayNormalText"
        )
        status = row.select_one("td:nth-of-type(4)")

        if icon is None or name is None or zone is None or status is None:
            continue
        icon_name = icon.get("icon")
        if icon_name is None:
            continue

        sensors.append(
            SensorStatus(
                icon=clear_whitespace(str(icon_name)),
                name=clear_whitespace(name.get_text()),
                status=clear_whitespace(status.get_text()),
                zone=_parse_zone(zone.get_text()),
            )
        )

    return sorted(sensors, key=lambda sensor: (sensor.zone is None, sensor.zone or 0))


def _parse_device_id(row: Tag) -> int | None:
    handlers = [row.get("onclick")]
    handlers.extend(element.get("onclick") for element in row.select("[onclick]"))
    for handler in handlers:
        if not handler:
            continue
        args = tokenize_js_call(str(handler), "goToUrl")
        if not args:
            continue
        match = DEVICE_ID.search(args[0])
        if match:
            return int(match.group(1))
    return None


def parse_sensors_table(rows: Iterable[Tag]) -> list[SensorInfo]:
    """Parse the system page device rows into SensorInfo records.

    Rows without a name or device type are skipped.
    """
    sensors = []
    for row in rows:
        status = row.select_one("td:nth-of-type(1) canvas")
        name = row.select_one("td:nth-of-type(2) a")
        zone = row.select_one("td:nth-of-type(3)")
        device_type = row.select_one("td:nth-of-type(5)")

        if name is None or device_type is None:
            continue

        sensors.append(
            SensorInfo(
                device_id=_parse_device_id(row),
                device_type=clear_whitespace(device_type.get_text()),
                name=clear_whitespace(name.get_text()),
                status=clear_whitespace(str(status.get("title", ""))) if status else "",
                zone=_parse_zone(zone.get_text()) if zone is not None else None,
            )
        )

    return sensors


def _parse_set_arm_state(handler: str) -> ReadyButton | None:
    args = tokenize_js_call(handler, "setArmState")
    if args is None or len(args) != SET_ARM_STATE_ARGS:
        return None

    relative_url, loading_text, index, total, change_access_code, query = args
    params = _split_query(query)
    if tuple(key for key, _ in params) != SET_ARM_STATE_PARAMS:
        return None
    values = dict(params)

    if not index.isdigit() or not total.isdigit():
        return None

    return ReadyButton(
        button_id=None,
        index=int(index),
        text=None,
        loading_text=loading_text,
        relative_url=relative_url,
        total_buttons=int(total),
        change_access_code=change_access_code == "true",
        url_params=ArmUrlParams(
            arm=values["arm"],
            arm_state=values["armstate"],
            href=values["href"],
            sat=values["sat"],
        ),
    )


def parse_security_buttons(inputs: Iterable[Tag]) -> list[SecurityButton]:
    """Parse the orb security buttons.

    Disabled buttons without a handler are pending. Enabled buttons with a
    setArmState handler are ready, but only when both arm literals are known;
    anything else is dropped.
    """
    buttons: list[SecurityButton] = []
    for element in inputs:
        disabled = element.has_attr("disabled")
        handler = element.get("onclick")
        button_id = element.get("id")
        value = element.get("value")

        if disabled and handler is None:
            buttons.append(PendingButton(button_id=button_id, title=value))
            continue

        if disabled or handler is None:
            continue

        button = _parse_set_arm_state(str(handler))
        if button is None:
            _LOGGER.debug("Skipping security button with unknown handler: %s", handler)
            continue

        params = button.url_params
        if params.arm not in ARM_VALUES or params.arm_state not in ARM_STATE_VALUES:
            _LOGGER.debug(
                "Skipping security button with unknown arm literals: arm=%s, "
                "armstate=%s",
                params.arm,
                params.arm_state,
            )
            continue

        buttons.append(
            ReadyButton(
                button_id=button_id,
                index=button.index,
                text=value,
                loading_text=button.loading_text,
                relative_url=button.relative_url,
                total_buttons=button.total_buttons,
                change_access_code=button.change_access_code,
                url_params=params,
            )
        )

    return buttons


def ready_buttons(buttons: Iterable[SecurityButton]) -> list[ReadyButton]:
    """Keep only the ready buttons."""
    return [button for button in buttons if isinstance(button, ReadyButton)]


def parse_do_submit_handlers(inputs: Iterable[Tag]) -> list[DoSubmitHandler]:
    """Parse the doSubmit handlers on the force-arm confirmation page.

    The "Arm Anyway" handler carries armstate=forcearm and an arm target.
    Other handlers (such as "Cancel") are returned with both set to None.
    """
    handlers = []
    for element in inputs:
        handler = element.get("onclick")
        if handler is None:
            continue
        args = tokenize_js_call(str(handler), "doSubmit")
        if not args or len(args) != 1:
            continue

        relative_url, separator, query = args[0].partition("?")
        values = dict(_split_query(query)) if separator else {}
        if "sat" not in values or "href" not in values:
            continue

        arm_state = values.get("armstate")
        arm = values.get("arm")
        handlers.append(
            DoSubmitHandler(
                relative_url=relative_url,
                url_params=ArmUrlParams(
                    arm=arm if arm in FORCE_ARM_VALUES else None,
                    arm_state=arm_state if arm_state == FORCE_ARM_STATE else None,
                    href=values["href"].replace("\\/", "/"),
                    sat=values["sat"],
                ),
            )
        )

    return handlers


def parse_arm_disarm_message(element: Tag | None) -> str | None:
    """Return the cleaned message shown above the force-arm buttons."""
    if element is None:
        return None
    return clear_whitespace(element.get_text())


def parse_warning_message(html: str) -> str | None:
    """Return the portal warning shown on the sign-in page, if any."""
    element = parse_html(html).select_one("#warnMsgContents")
    if element is None:
        return None
    message = clear_whitespace(clear_html_line_break(element.decode_contents()))
    message = clear_whitespace(parse_html(message).get_text(" "))
    return message or None


def extract_network_id(html: str) -> str | None:
    """Find the network (site) id in a page."""
    match = NETWORK_ID_PARAM.search(html)
    return match.group(1) if match else None


def extract_sat_code(html: str) -> str | None:
    """Find a sat code in a page."""
    match = SAT_CODE_PARAM.search(html)
    return match.group(1) if match else None


def parse_mfa_config(html: str) -> dict[str, str]:
    """Read the client-side MFA configuration from the challenge page.

    Args:
        html: Body of the MFA challenge page.

    Returns:
        Mapping with client_type, locale, login, pre_auth_token and sat_code.

    Raises:
        MalformedResponseError: If any of the five values is missing.

    """
    config = {}
    for field_name, key in MFA_CONFIG_KEYS.items():
        pattern = re.compile(
            rf"""["']?\b{re.escape(key)}["']?\s*[:=]\s*["']([^"']+)["']"""
        )
        match = pattern.search(html)
        if match is None:
            error_msg = (
                "Failed to retrieve required MFA details from the workflow "
                "challenge page"
            )
            raise MalformedResponseError(error_msg)
        config[field_name] = match.group(1)
    return config


def _require_mapping(data: Any, context: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        error_msg = f"Expected an object for {context}"
        raise SchemaValidationError(error_msg)
    return data


def _require_str(data: dict[str, Any], key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        error_msg = f'Expected a string "{key}" in {context}'
        raise SchemaValidationError(error_msg)
    return value


def parse_verification_methods(data: Any) -> list[VerificationMethod]:
    """Validate the multi-factor state body and return its methods.

    Expected shape: {"state": {"mfaEnabled": bool, "label": str,
    "mfaProperties": [{"id", "type", "label", "caption"}]}}.

    Raises:
        SchemaValidationError: If the body does not match.

    """
    state = _require_mapping(_require_mapping(data, "response").get("state"), "state")
    properties = state.get("mfaProperties")
    if not isinstance(properties, list):
        error_msg = 'Expected a list "mfaProperties" in state'
        raise SchemaValidationError(error_msg)

    methods = []
    for item in properties:
        entry = _require_mapping(item, "mfaProperties")
        methods.append(
            VerificationMethod(
                id=_require_str(entry, "id", "mfaProperties"),
                type=_require_str(entry, "type", "mfaProperties"),
                label=_require_str(entry, "label", "mfaProperties"),
            )
        )
    return methods


def parse_otp_detail(data: Any) -> str:
    """Validate a one-time-passcode response body and return its detail.

    Raises:
        SchemaValidationError: If the body is not {"detail": str}.

    """
    return _require_str(_require_mapping(data, "response"), "detail", "response")


def parse_trusted_devices(data: Any) -> list[TrustedDevice]:
    """Validate the updates body and return the trusted devices.

    Devices live at update[0].data.client.multiFactorAuth.state.trustedDevices.

    Raises:
        SchemaValidationError: If the body does not match.

    """
    updates = _require_mapping(data, "response").get("update")
    if not isinstance(updates, list) or not updates:
        error_msg = 'Expected a non-empty list "update" in response'
        raise SchemaValidationError(error_msg)

    node: Any = updates[0]
    for key in ("data", "client", "multiFactorAuth", "state"):
        node = _require_mapping(node, key).get(key)
    devices = _require_mapping(node, "state").get("trustedDevices")
    if not isinstance(devices, list):
        error_msg = 'Expected a list "trustedDevices" in state'
        raise SchemaValidationError(error_msg)

    trusted = []
    for item in devices:
        entry = _require_mapping(item, "trustedDevices")
        trusted.append(
            TrustedDevice(
                id=str(entry.get("id", "")),
                name=_require_str(entry, "name", "trustedDevices"),
                label=str(entry.get("label", "")),
            )
        )
    return trusted
