"""Pytest configuration and fixtures for ADT Pulse tests."""

from unittest.mock import Mock

import pytest

from custom_components.adt_pulse.auth import ADTPulseAuth
from custom_components.adt_pulse.detect import DriftDetector
from custom_components.adt_pulse.driver import ADTPulseDriver
from custom_components.adt_pulse.reader import ADTPulseReader
from custom_components.adt_pulse.session import PortalSession, new_session

from portal_pages import (
    FINGERPRINT,
    NETWORK_ID,
    PASSWORD,
    PORTAL_VERSION,
    SAT_CODE,
    USERNAME,
    create_test_client,
)


@pytest.fixture
def verification_methods_response() -> dict:
    """Fixture providing the multi-factor state with one SMS method."""
    return {
        "state": {
            "mfaEnabled": True,
            "label": "Verify it's you",
            "mfaProperties": [
                {
                    "id": "sms-1",
                    "type": "SMS",
                    "label": "(***) ***-1234",
                    "caption": "Text me",
                },
                {
                    "id": "email-1",
                    "type": "EMAIL",
                    "label": "u***@example.com",
                    "caption": "Email me",
                },
            ],
        }
    }


@pytest.fixture
def trusted_devices_response() -> dict:
    """Fixture providing an updates body with one trusted device."""
    return {
        "update": [
            {
                "data": {
                    "client": {
                        "multiFactorAuth": {
                            "state": {
                                "trustedDevices": [
                                    {"id": "1", "name": "Laptop", "label": "Chrome"},
                                ],
                            },
                        },
                    },
                },
            },
        ],
    }


@pytest.fixture
def detector() -> Mock:
    """Create a drift detector double that records observations."""
    return Mock(spec=DriftDetector)


@pytest.fixture
def session() -> PortalSession:
    """Create a signed-out portal session."""
    return new_session("portal", create_test_client)


@pytest.fixture
def signed_in_session(session: PortalSession) -> PortalSession:
    """Sign the session in as if login had just succeeded."""
    session.is_authenticated = True
    session.portal_version = PORTAL_VERSION
    session.network_id = NETWORK_ID
    session.backup_sat_code = SAT_CODE
    return session


@pytest.fixture
def auth(session: PortalSession, detector: Mock) -> ADTPulseAuth:
    """Create an authentication engine over the session fixture."""
    return ADTPulseAuth(session, USERNAME, PASSWORD, FINGERPRINT, detector)


@pytest.fixture
def reader(session: PortalSession, auth: ADTPulseAuth, detector: Mock) -> ADTPulseReader:
    """Create a reader over the session fixture."""
    return ADTPulseReader(session, auth, detector)


@pytest.fixture
def driver(
    session: PortalSession,
    auth: ADTPulseAuth,
    reader: ADTPulseReader,
    detector: Mock,
) -> ADTPulseDriver:
    """Create a driver that does not wait for the portal to settle."""
    return ADTPulseDriver(session, auth, reader, detector, settle_delay=0)
