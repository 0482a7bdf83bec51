"""Constants for ADT Pulse integration.

This module contains all the constants used throughout the integration,
including portal endpoints, request headers, configuration keys, and the
vocabularies the portal is known to use.
"""

import re

DOMAIN = "adt_pulse"
INTEGRATION_VERSION = "1.0.0"

DEFAULT_SUBDOMAIN = "portal"
SUBDOMAINS = ("portal", "portal-ca")

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)

REQUEST_TIMEOUT = 15.0  # Seconds per portal request
SETTLE_DELAY = 6.0  # Seconds the portal needs to converge after a mutation

SYNC_CHECK_INTERVAL = 3  # Seconds between sync checks
KEEP_ALIVE_INTERVAL = 538  # 8 minutes, 58 seconds
SESSION_LIFESPAN = 19368  # 5 hours, 22 minutes, 48 seconds
SUSPEND_SYNCING = 1800  # 30 minutes
MAX_LOGIN_RETRIES = 3
INITIAL_SYNC_CODE = "1-0-0"

TELEMETRY_URL = "https://ntfy.sh/adt-pulse-drift"
VERSION_REGISTRY_URL = "https://pypi.org/pypi/adt-pulse/json"

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_INVALID_CODE = "invalid_code"
ERROR_INVALID_DEVICE_NAME = "invalid_device_name"
ERROR_UNKNOWN = "unknown_error"

CONF_SUBDOMAIN = "subdomain"
CONF_FINGERPRINT = "fingerprint"
CONF_METHOD_ID = "method_id"
CONF_OTP_CODE = "otp_code"
CONF_DEVICE_NAME = "device_name"

MFA_STATUS_NOT_REQUIRED = "not-required"
MFA_STATUS_REQUIRED = "required"

OTP_PATTERN = re.compile(r"\d{6}")
TRUSTED_DEVICE_NAME_MAX_LENGTH = 100

# Portal paths. Every pattern captures the portal version in group 1.
VERSION = r"([0-9.-]+)"
SIGN_IN_PATH = re.compile(rf"^/myhome/{VERSION}/access/signin\.jsp$")
SIGN_IN_FAILED_PATH = re.compile(
    rf"^/myhome/{VERSION}/access/signin\.jsp\?e=[^&]+&partner=adt$"
)
SIGN_IN_MFA_PATH = re.compile(
    rf"^/myhome/{VERSION}/mfa/mfaSignIn\.jsp\?workflow=challenge$"
)
SIGN_OUT_PATH = re.compile(
    rf"^/myhome/{VERSION}/access/signin\.jsp\?networkid=[a-z0-9]+&partner=adt$"
)
SUMMARY_PATH = re.compile(rf"^/myhome/{VERSION}/summary/summary\.jsp$")
GATEWAY_PATH = re.compile(rf"^/myhome/{VERSION}/system/gateway\.jsp$")
PANEL_PATH = re.compile(rf"^/myhome/{VERSION}/system/device\.jsp\?id=1$")
SYSTEM_PATH = re.compile(rf"^/myhome/{VERSION}/system/system\.jsp$")
SYNC_CHECK_PATH = re.compile(rf"^/myhome/{VERSION}/Ajax/SyncCheckServ\?t=\d+$")
KEEP_ALIVE_PATH = re.compile(rf"^/myhome/{VERSION}/KeepAlive$")
ARM_DISARM_PATH = re.compile(rf"^/myhome/{VERSION}/quickcontrol/armDisarm\.jsp$")
RUN_RRA_COMMAND_PATH = re.compile(
    rf"^/myhome/{VERSION}/quickcontrol/serv/RunRRACommand$"
)
RUN_RRA_PROXY_PATH = re.compile(rf"^/myhome/{VERSION}/nga/serv/RunRRAProxy\?.+$")

# Matched whole with fullmatch, so a trailing newline is rejected.
SYNC_CODE_PATTERN = re.compile(r"\d+-\d+-\d+")
FORCE_ARM_SUCCESS_MARKER = "1.0-OKAY"

ARM_DISARM_RELATIVE_URL = "quickcontrol/armDisarm.jsp"
ARM_DISARM_HREF = "rest/adt/ui/client/security/setArmState"

# Literals accepted by the arm/disarm workflow
ARM_VALUES = ("away", "night", "off", "stay")
ARM_STATE_VALUES = (
    "away",
    "disarmed",
    "disarmed+with+alarm",
    "disarmed_with_alarm",
    "night",
    "night+stay",
    "off",
    "stay",
)
PANEL_ARM_TARGETS = ("away", "disarmed", "night", "off", "stay")
FORCE_ARM_STATE = "forcearm"
FORCE_ARM_VALUES = ("away", "night", "stay")

GATEWAY_LABELS = (
    "Broadband LAN IP Address:",
    "Broadband LAN MAC:",
    "Device LAN IP Address:",
    "Device LAN MAC:",
    "Firmware Version:",
    "Hardware Version:",
    "Last Update:",
    "Manufacturer:",
    "Model:",
    "Next Update:",
    "Serial Number:",
    "Status:",
)
PANEL_LABELS = (
    "Manufacturer/Provider:",
    "Type/Model:",
    "Emergency Keys:",
    "Status:",
)

KNOWN_PORTAL_VERSIONS = (
    "16.0.0-131",
    "17.0.0-69",
    "18.0.0-78",
    "19.0.0-89",
    "20.0.0-221",
    "20.0.0-244",
    "21.0.0-344",
    "21.0.0-353",
    "21.0.0-354",
    "22.0.0-233",
    "23.0.0-99",
    "24.0.0-117",
    "25.0.0-21",
    "26.0.0-32",
    "27.0.0-140",
    "28.0.0-57",
)
KNOWN_GATEWAY_STATUSES = ("Offline", "Online", "Status Unknown")
KNOWN_PANEL_INFO_STATUSES = ("Offline", "Online", "Status Unknown")
KNOWN_PANEL_STATES = (
    "Armed Away",
    "Armed Night",
    "Armed Stay",
    "Disarmed",
    "No Entry Delay",
    "Status Unavailable",
)
KNOWN_PANEL_STATUSES = (
    "1 Sensor Open",
    *(f"{count} Sensors Open" for count in range(1, 149)),
    "All Quiet",
    "BURGLARY ALARM",
    "Carbon Monoxide Alarm",
    "FIRE ALARM",
    "Motion",
    "Sensor Bypassed",
    "Sensor Problem",
    "Sensor Problems",
    "Sensors Bypassed",
    "Sensors Tripped",
    "Sensor Tripped",
    "Uncleared Alarm",
    "WATER ALARM",
)
KNOWN_SENSOR_DEVICE_TYPES = (
    "Audible Panic Button/Pendant",
    "Carbon Monoxide Detector",
    "Door/Window Sensor",
    "Door Sensor",
    "Fire (Smoke/Heat) Detector",
    "Glass Break Detector",
    "Heat (Rate-of-Rise) Detector",
    "Keypad/Touchpad",
    "Motion Sensor",
    "Motion Sensor (Notable Events Only)",
    "Shock Sensor",
    "Silent Panic Button/Pendant",
    "Temperature Sensor",
    "Water/Flood Sensor",
    "Window Sensor",
)
KNOWN_SENSOR_INFO_STATUSES = ("Installing", "Offline", "Online", "Status Unknown")
KNOWN_SENSOR_ICONS = (
    "devStatAlarm",
    "devStatInstalling",
    "devStatLowBatt",
    "devStatMotion",
    "devStatOffline",
    "devStatOK",
    "devStatOpen",
    "devStatTamper",
    "devStatUnknown",
)
KNOWN_SENSOR_STATUSES = (
    "ALARM",
    "Bypassed",
    "Closed",
    "Installing",
    "Low Battery",
    "Motion",
    "No Motion",
    "Offline",
    "Okay",
    "Open",
    "Tampered",
    "Tripped",
    "Trouble",
    "Unknown",
)
KNOWN_BUTTON_TEXTS = ("Arm Away", "Arm Night", "Arm Stay", "Clear Alarm", "Disarm")
KNOWN_LOADING_TEXTS = ("Arming Away", "Arming Night", "Arming Stay", "Disarming")

CONDENSED_SENSOR_TYPES = {
    "Carbon Monoxide Detector": "co",
    "Door/Window Sensor": "doorWindow",
    "Door Sensor": "doorWindow",
    "Window Sensor": "doorWindow",
    "Fire (Smoke/Heat) Detector": "fire",
    "Water/Flood Sensor": "flood",
    "Glass Break Detector": "glass",
    "Heat (Rate-of-Rise) Detector": "heat",
    "Motion Sensor": "motion",
    "Motion Sensor (Notable Events Only)": "motion",
    "Shock Sensor": "shock",
    "Temperature Sensor": "temperature",
}
