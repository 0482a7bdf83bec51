"""Tests for the ADT Pulse session manager."""

import httpx
import pytest

from custom_components.adt_pulse import session as session_module
from custom_components.adt_pulse.const import REQUEST_TIMEOUT, USER_AGENT
from custom_components.adt_pulse.models import MfaSession
from custom_components.adt_pulse.session import PortalSession, new_session

from portal_pages import BASE_URL, PORTAL_VERSION, VERSIONED_URL


class TestCreateDefaultHeaders:
    """Tests for create_default_headers function."""

    def test_create_default_headers_uses_subdomain_host(self) -> None:
        """Test that the Host header follows the subdomain."""
        headers = session_module.create_default_headers("portal-ca")
        assert headers["Host"] == "portal-ca.adtpulse.com"
        assert headers["User-Agent"] == USER_AGENT
        assert headers["Sec-Fetch-Mode"] == "navigate"


class TestFindNullKeys:
    """Tests for find_null_keys function."""

    def test_find_null_keys_descends_into_nested_mappings(self) -> None:
        """Test that nested None values are reported with dotted paths."""
        properties = {
            "headers": {"Accept": None, "Origin": "x"},
            "timeout": None,
            "other": 1,
        }
        assert session_module.find_null_keys(properties) == [
            "headers.Accept",
            "timeout",
        ]

    def test_find_null_keys_returns_empty_list_without_nulls(self) -> None:
        """Test that a mapping without None values yields no keys."""
        assert session_module.find_null_keys({"headers": {"Accept": "*/*"}}) == []


class TestBuildRequestConfig:
    """Tests for build_request_config function."""

    def test_build_request_config_returns_defaults(self) -> None:
        """Test that defaults are returned without overrides."""
        config = session_module.build_request_config("portal")
        assert config["timeout"] == REQUEST_TIMEOUT
        assert config["headers"]["Host"] == "portal.adtpulse.com"

    def test_build_request_config_merges_overrides(self) -> None:
        """Test that override headers replace and extend the defaults."""
        config = session_module.build_request_config(
            "portal",
            {"headers": {"Accept": "*/*", "Origin": BASE_URL}},
        )
        assert config["headers"]["Accept"] == "*/*"
        assert config["headers"]["Origin"] == BASE_URL
        assert config["headers"]["User-Agent"] == USER_AGENT

    def test_build_request_config_removes_null_overrides(self) -> None:
        """Test that a None override removes the default header."""
        config = session_module.build_request_config(
            "portal",
            {"headers": {"Sec-Fetch-User": None, "Upgrade-Insecure-Requests": None}},
        )
        assert "Sec-Fetch-User" not in config["headers"]
        assert "Upgrade-Insecure-Requests" not in config["headers"]

    def test_build_request_config_does_not_mutate_overrides(self) -> None:
        """Test that the caller's overrides are left untouched."""
        overrides = {"headers": {"Sec-Fetch-User": None}}
        session_module.build_request_config("portal", overrides)
        assert overrides == {"headers": {"Sec-Fetch-User": None}}


class TestPortalSession:
    """Tests for PortalSession."""

    def test_new_session_starts_signed_out(self) -> None:
        """Test that a new session has no sign-in facts."""
        session = new_session("portal", httpx.AsyncClient)
        assert session.is_authenticated is False
        assert session.portal_version is None
        assert session.network_id is None
        assert session.backup_sat_code is None
        assert session.is_clean_state is True
        assert session.mfa == MfaSession()

    def test_urls_follow_subdomain_and_version(
        self,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that the base and versioned URLs are derived correctly."""
        assert signed_in_session.base_url == BASE_URL
        assert signed_in_session.versioned_url == VERSIONED_URL

    @pytest.mark.asyncio
    async def test_reset_discards_client_and_facts(
        self,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that reset replaces the client and forgets the session."""
        old_client = signed_in_session.http_client
        signed_in_session.is_clean_state = False
        signed_in_session.mfa.token = "u=token"

        await signed_in_session.reset()

        assert signed_in_session.http_client is not old_client
        assert old_client.is_closed
        assert signed_in_session.is_authenticated is False
        assert signed_in_session.portal_version is None
        assert signed_in_session.network_id is None
        assert signed_in_session.backup_sat_code is None
        assert signed_in_session.is_clean_state is True
        assert signed_in_session.mfa.token is None

    @pytest.mark.asyncio
    async def test_reset_skips_when_failed_client_was_replaced(
        self,
        signed_in_session: PortalSession,
    ) -> None:
        """Test that a second failure on the old client keeps the fresh client."""
        failed_client = signed_in_session.http_client

        await signed_in_session.reset(failed_client)
        fresh_client = signed_in_session.http_client
        signed_in_session.portal_version = PORTAL_VERSION

        await signed_in_session.reset(failed_client)

        assert signed_in_session.http_client is fresh_client
        assert not fresh_client.is_closed
        assert signed_in_session.portal_version == PORTAL_VERSION

    @pytest.mark.asyncio
    async def test_reset_is_idempotent(self, session: PortalSession) -> None:
        """Test that resetting a signed-out session is harmless."""
        await session.reset()
        await session.reset()
        assert session.is_authenticated is False
        assert session.portal_version is None

    def test_versioned_url_uses_portal_version(self, session: PortalSession) -> None:
        """Test that the versioned URL includes the learned version."""
        session.portal_version = PORTAL_VERSION
        assert session.versioned_url.endswith(f"/myhome/{PORTAL_VERSION}")
