"""Data models for ADT Pulse integration."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .exceptions import ErrorKind


class Action(StrEnum):
    """Name of the operation a portal result belongs to."""

    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    GET_GATEWAY_INFORMATION = "GET_GATEWAY_INFORMATION"
    GET_PANEL_INFORMATION = "GET_PANEL_INFORMATION"
    GET_PANEL_STATUS = "GET_PANEL_STATUS"
    SET_PANEL_STATUS = "SET_PANEL_STATUS"
    GET_SENSORS_INFORMATION = "GET_SENSORS_INFORMATION"
    GET_SENSORS_STATUS = "GET_SENSORS_STATUS"
    PERFORM_SYNC_CHECK = "PERFORM_SYNC_CHECK"
    PERFORM_KEEP_ALIVE = "PERFORM_KEEP_ALIVE"
    ARM_DISARM_HANDLER = "ARM_DISARM_HANDLER"
    FORCE_ARM_HANDLER = "FORCE_ARM_HANDLER"
    IS_PORTAL_ACCESSIBLE = "IS_PORTAL_ACCESSIBLE"
    GET_VERIFICATION_METHODS = "GET_VERIFICATION_METHODS"
    REQUEST_CODE = "REQUEST_CODE"
    VALIDATE_CODE = "VALIDATE_CODE"
    GET_TRUSTED_DEVICES = "GET_TRUSTED_DEVICES"
    ADD_TRUSTED_DEVICE = "ADD_TRUSTED_DEVICE"
    COMPLETE_SIGN_IN = "COMPLETE_SIGN_IN"


@dataclass(frozen=True)
class FailureInfo:
    """Details attached to a failed portal result.

    Attributes:
        kind: Category of the failure.
        message: Human readable reason, if one is known.
        error: Serialized exception for unexpected failures.

    """

    kind: ErrorKind
    message: str | None = None
    error: dict[str, str] | None = None


@dataclass(frozen=True)
class PortalResult:
    """Outcome of a public portal operation."""

    action: Action
    success: bool
    info: Any = None


@dataclass(frozen=True)
class SessionInfo:
    """Session facts reported by login, logout and completed sign in."""

    backup_sat_code: str | None
    network_id: str | None
    portal_version: str | None


@dataclass(frozen=True)
class VerificationMethod:
    """A verification method offered by the multi-factor challenge."""

    id: str
    type: str
    label: str


@dataclass(frozen=True)
class VerificationMethodsInfo:
    """Verification methods along with whether the challenge is required."""

    methods: list[VerificationMethod]
    status: str


@dataclass(frozen=True)
class TrustedDevice:
    """A device the account trusts to skip the multi-factor challenge."""

    id: str
    name: str
    label: str


@dataclass(slots=True)
class MfaSession:
    """Transient state collected while the multi-factor challenge is open."""

    client_type: str | None = None
    locale: str | None = None
    login: str | None = None
    pre_auth_token: str | None = None
    sat_code: str | None = None
    token: str | None = None
    trusted_devices: list[TrustedDevice] = field(default_factory=list)
    verification_methods: list[VerificationMethod] = field(default_factory=list)


@dataclass(frozen=True)
class ArmUrlParams:
    """Form parameters carried by an arm/disarm or force-arm handler."""

    arm: str | None
    arm_state: str | None
    href: str
    sat: str


@dataclass(frozen=True)
class ReadyButton:
    """An enabled security button on the summary page."""

    button_id: str | None
    index: int
    text: str | None
    loading_text: str
    relative_url: str
    total_buttons: int
    change_access_code: bool
    url_params: ArmUrlParams


@dataclass(frozen=True)
class PendingButton:
    """A disabled security button, shown while the panel changes state."""

    button_id: str | None
    title: str | None


SecurityButton = ReadyButton | PendingButton


@dataclass(frozen=True)
class DoSubmitHandler:
    """A force-arm confirmation handler from the arm/disarm response."""

    relative_url: str
    url_params: ArmUrlParams


@dataclass(frozen=True)
class GatewayInfo:
    """Snapshot of the gateway page."""

    manufacturer: str | None
    model: str | None
    broadband_ip: str | None
    broadband_mac: str | None
    device_ip: str | None
    device_mac: str | None
    serial_number: str | None
    status: str | None
    last_update: str | None
    next_update: str | None
    firmware_version: str | None
    hardware_version: str | None


@dataclass(frozen=True)
class PanelInfo:
    """Snapshot of the security panel device page."""

    emergency_keys: list[str] | None
    manufacturer_provider: str | None
    type_model: str | None
    status: str | None


@dataclass(frozen=True)
class PanelStatus:
    """Arm state and status sentence shown on the summary page orb."""

    state: str | None
    status: str | None


@dataclass(frozen=True)
class SensorInfo:
    """A sensor row from the system page."""

    device_id: int | None
    device_type: str
    name: str
    status: str
    zone: int | None


@dataclass(frozen=True)
class SensorStatus:
    """A sensor row from the summary page orb."""

    icon: str
    name: str
    status: str
    zone: int | None


@dataclass(frozen=True)
class SyncCheckInfo:
    """Opaque change token returned by the sync check."""

    sync_code: str


@dataclass(frozen=True)
class ForceArmInfo:
    """Outcome of the force-arm confirmation step."""

    force_arm_required: bool


@dataclass(frozen=True)
class SetPanelStatusInfo:
    """Outcome of a panel state change."""

    force_arm_required: bool


@dataclass(frozen=True)
class ArmDisarmInfo:
    """Outcome of a single arm/disarm transition."""

    force_arm_required: bool
    new_ready_buttons: list[ReadyButton]


@dataclass(slots=True)
class ADTPulseData:
    """Everything the coordinator knows about the site."""

    sync_code: str
    gateway: GatewayInfo | None = None
    panel: PanelInfo | None = None
    panel_status: PanelStatus | None = None
    sensors_info: list[SensorInfo] = field(default_factory=list)
    sensors_status: list[SensorStatus] = field(default_factory=list)
