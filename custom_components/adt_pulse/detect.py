"""Schema drift detection for ADT Pulse portal responses.

Parsed values are compared against the vocabulary the integration knows. A
value outside it means the portal changed, and a redacted report is sent once
per unique payload so the integration can be updated.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import re
from typing import Any

import httpx

from .const import (
    INTEGRATION_VERSION,
    KNOWN_BUTTON_TEXTS,
    KNOWN_GATEWAY_STATUSES,
    KNOWN_LOADING_TEXTS,
    KNOWN_PANEL_INFO_STATUSES,
    KNOWN_PANEL_STATES,
    KNOWN_PANEL_STATUSES,
    KNOWN_PORTAL_VERSIONS,
    KNOWN_SENSOR_DEVICE_TYPES,
    KNOWN_SENSOR_ICONS,
    KNOWN_SENSOR_INFO_STATUSES,
    KNOWN_SENSOR_STATUSES,
    REQUEST_TIMEOUT,
    TELEMETRY_URL,
    VERSION_REGISTRY_URL,
)

_LOGGER = logging.getLogger(__name__)

REDACTED = "*** REDACTED ***"

KNOWN_VALUES: dict[str, dict[str, tuple[str, ...]]] = {
    "portal-version": {"version": KNOWN_PORTAL_VERSIONS},
    "gateway-information": {"status": KNOWN_GATEWAY_STATUSES},
    "panel-information": {"status": KNOWN_PANEL_INFO_STATUSES},
    "panel-status": {"state": KNOWN_PANEL_STATES, "status": KNOWN_PANEL_STATUSES},
    "sensors-information": {
        "device_type": KNOWN_SENSOR_DEVICE_TYPES,
        "status": KNOWN_SENSOR_INFO_STATUSES,
    },
    "sensors-status": {"icon": KNOWN_SENSOR_ICONS, "status": KNOWN_SENSOR_STATUSES},
    "security-buttons": {"text": KNOWN_BUTTON_TEXTS, "loading_text": KNOWN_LOADING_TEXTS},
}

SENSITIVE_KEYS = frozenset(
    {
        "broadband_ip",
        "broadband_mac",
        "device_ip",
        "device_mac",
        "name",
        "network_id",
        "sat",
        "serial_number",
    }
)
SENSITIVE_PATTERNS = (
    re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+"),
    re.compile(r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b", re.I),
    re.compile(r"\b(?:[0-9a-f]{2}[:-]){5}[0-9a-f]{2}\b", re.I),
    re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"),
)
RELEASE_PATTERN = re.compile(r"\d+(?:\.\d+)*")


def payload_hash(category: str, payload: dict[str, Any]) -> str:
    """Return a stable hash of a category and payload."""
    serialized = json.dumps({"category": category, "payload": payload}, sort_keys=True)
    return hashlib.sha256(serialized.encode()).hexdigest()


def find_unknown_values(category: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Return the payload fields whose value is outside the known vocabulary.

    None values are not drift; they mean the page did not show the field.
    """
    known = KNOWN_VALUES.get(category)
    if known is None:
        _LOGGER.debug("No known values for drift category %s", category)
        return {}

    return {
        key: value
        for key, value in payload.items()
        if key in known and value is not None and value not in known[key]
    }


def redact_value(value: Any) -> Any:
    """Scrub personal details from a value, recursing into containers."""
    if isinstance(value, dict):
        return {
            key: REDACTED if key in SENSITIVE_KEYS else redact_value(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_value(item) for item in value]
    if isinstance(value, str):
        for pattern in SENSITIVE_PATTERNS:
            value = pattern.sub(REDACTED, value)
    return value


def parse_version(version: str) -> tuple[tuple[int, ...], bool]:
    """Turn a version string into a comparable key.

    The key is the numeric release and whether it is a final release, so
    "1.0.1b1" sorts before "1.0.1" and after "1.0.0".

    Raises:
        ValueError: If the version does not start with a number.

    """
    version = version.strip()
    match = RELEASE_PATTERN.match(version)
    if match is None:
        error_msg = f'"{version}" is not a version number'
        raise ValueError(error_msg)

    release = tuple(int(part) for part in match.group(0).split("."))
    return release, match.end() == len(version)


class DriftDetector:
    """Report portal values the integration has never seen, once each."""

    def __init__(
        self,
        telemetry_url: str = TELEMETRY_URL,
        registry_url: str = VERSION_REGISTRY_URL,
        current_version: str = INTEGRATION_VERSION,
    ) -> None:
        """Initialize the detector.

        Args:
            telemetry_url: Endpoint receiving drift reports.
            registry_url: Package registry JSON endpoint with the latest version.
            current_version: Version of the running integration.

        """
        self._telemetry_url = telemetry_url
        self._registry_url = registry_url
        self._current_version = current_version
        self._tasks: set[asyncio.Task[None]] = set()
        self.reported_hashes: set[str] = set()

    def observe(self, category: str, payload: dict[str, Any]) -> None:
        """Check a payload in the background without blocking the caller.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(
            self.async_observe(category, payload)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def async_observe(self, category: str, payload: dict[str, Any]) -> bool:
        """Check a payload and report it if it holds unknown values.

        Args:
            category: Drift category such as "panel-status".
            payload: Parsed values to check.

        Returns:
            True if this call found new drift, False otherwise.

        """
        digest = payload_hash(category, payload)
        if digest in self.reported_hashes:
            return False

        unknown = find_unknown_values(category, payload)
        if not unknown:
            return False

        self.reported_hashes.add(digest)
        _LOGGER.warning(
            "Detected new %s from the portal: %s",
            category.replace("-", " "),
            redact_value(unknown),
        )

        if await self.is_build_outdated():
            _LOGGER.warning(
                "A newer release of the integration is available and may already "
                "support these values, skipping the report"
            )
            return True

        await self._send_report(category, payload)
        return True

    async def is_build_outdated(self) -> bool:
        """Check the package registry for a release newer than this one.

        A registry that cannot be read counts as not outdated.
        """
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                response = await client.get(self._registry_url)
                response.raise_for_status()
                latest = parse_version(str(response.json()["info"]["version"]))
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as err:
            _LOGGER.debug("Could not read the latest release version: %s", err)
            return False

        return latest > parse_version(self._current_version)

    async def async_wait(self) -> None:
        """Wait for background checks started by observe to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _send_report(self, category: str, payload: dict[str, Any]) -> None:
        label = category.replace("-", " ")
        report = {
            "title": f"Detected new {label}",
            "description": (
                f"New {label} detected. Please upgrade the integration as soon as "
                "possible."
            ),
            "content": json.dumps(redact_value(payload), indent=2),
        }
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                response = await client.post(self._telemetry_url, json=report)
                response.raise_for_status()
        except httpx.HTTPError as err:
            _LOGGER.warning("Failed to send the drift report: %s", err)
            return

        _LOGGER.debug("Sent drift report for %s", category)
