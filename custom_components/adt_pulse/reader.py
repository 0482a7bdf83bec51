"""State readers for the ADT Pulse portal.

Every reader issues one GET (or the keep-alive POST), checks that the request
landed on the expected page and parses the body. Readers only need a signed-in
session, so they may run concurrently with each other.
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Any

import httpx
from bs4 import BeautifulSoup

from .auth import ADTPulseAuth
from .const import (
    GATEWAY_PATH,
    KEEP_ALIVE_PATH,
    PANEL_PATH,
    SUMMARY_PATH,
    SYNC_CHECK_PATH,
    SYNC_CODE_PATTERN,
    SYSTEM_PATH,
)
from .exceptions import MalformedResponseError
from .fingerprint import generate_dtpc_header
from .models import (
    GatewayInfo,
    PanelInfo,
    PanelStatus,
    SensorInfo,
    SensorStatus,
    SyncCheckInfo,
)
from .parser import (
    parse_gateway_information,
    parse_html,
    parse_orb_sensors,
    parse_orb_text_summary,
    parse_panel_information,
    parse_sensors_table,
)
from .session import PortalSession

if TYPE_CHECKING:
    from .detect import DriftDetector

_LOGGER = logging.getLogger(__name__)

SENSOR_ROWS = "#systemContentList tr[class^='p_row'] tr.p_listRow"
ORB_SENSOR_ROWS = "#orbSensorsList tr.p_listRow"
ORB_TEXT_SUMMARY = "#divOrbTextSummary"


class ADTPulseReader:
    """Read-only portal operations for a signed-in session."""

    def __init__(
        self,
        session: PortalSession,
        auth: ADTPulseAuth,
        detector: DriftDetector | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            session: Portal session to read with.
            auth: Authentication engine, for its shared failure handling.
            detector: Optional drift detector fed with every parsed result.

        """
        self._session = session
        self._auth = auth
        self._detector = detector

    async def get_gateway_information(self) -> GatewayInfo:
        """Read the gateway page."""
        response = await self._load(
            "system/gateway.jsp",
            GATEWAY_PATH,
            "gateway page",
            referer="system/system.jsp",
            extra_headers={"Sec-Fetch-User": None},
        )

        gateway = parse_gateway_information(response.text)
        self._observe("gateway-information", {"status": gateway.status})
        return gateway

    async def get_panel_information(self) -> PanelInfo:
        """Read the security panel device page."""
        response = await self._load(
            "system/device.jsp?id=1",
            PANEL_PATH,
            "panel page",
            referer="system/system.jsp",
        )

        panel = parse_panel_information(response.text)
        self._observe("panel-information", {"status": panel.status})
        return panel

    async def get_panel_status(self) -> PanelStatus:
        """Read the arm state and status sentence from the summary page."""
        document = await self._get_summary()
        status = parse_orb_text_summary(document.select_one(ORB_TEXT_SUMMARY))
        self._observe("panel-status", {"state": status.state, "status": status.status})
        return status

    async def get_sensors_information(self) -> list[SensorInfo]:
        """Read the sensor table from the system page."""
        response = await self._load(
            "system/system.jsp",
            SYSTEM_PATH,
            "system page",
            referer="summary/summary.jsp",
        )

        sensors = parse_sensors_table(parse_html(response.text).select(SENSOR_ROWS))
        for sensor in sensors:
            self._observe(
                "sensors-information",
                {"device_type": sensor.device_type, "status": sensor.status},
            )
        return sensors

    async def get_sensors_status(self) -> list[SensorStatus]:
        """Read the sensor list shown beside the summary page orb."""
        document = await self._get_summary()
        sensors = parse_orb_sensors(document.select(ORB_SENSOR_ROWS))
        for sensor in sensors:
            self._observe("sensors-status", {"icon": sensor.icon, "status": sensor.status})
        return sensors

    async def perform_sync_check(self) -> SyncCheckInfo:
        """Fetch the sync code the portal uses to signal state changes.

        Raises:
            UnexpectedRedirectError: If the request did not reach the endpoint.
            MalformedResponseError: If the body is not an "N-N-N" code.

        """
        response = await self._load(
            f"Ajax/SyncCheckServ?t={int(time.time() * 1000)}",
            SYNC_CHECK_PATH,
            "sync check page",
            referer="summary/summary.jsp",
            extra_headers={
                "Accept": "*/*",
                "Sec-Fetch-Dest": "empty",
                "Sec-Fetch-Mode": "cors",
                "Sec-Fetch-User": None,
                "Upgrade-Insecure-Requests": None,
            },
        )

        sync_code = response.text
        if not SYNC_CODE_PATTERN.fullmatch(sync_code):
            error_msg = f'The sync check response "{sync_code}" is not a sync code'
            raise MalformedResponseError(error_msg)

        return SyncCheckInfo(sync_code=sync_code)

    async def perform_keep_alive(self) -> None:
        """Ping the portal so the session does not expire from inactivity."""
        self._auth.require_authenticated()

        session = self._session
        client = session.http_client
        response = await client.post(
            f"{session.versioned_url}/KeepAlive",
            content=b"",
            **session.request_config(
                {
                    "headers": {
                        "Accept": "*/*",
                        "Content-type": "application/x-www-form-urlencoded",
                        "Origin": session.base_url,
                        "Referer": f"{session.versioned_url}/summary/summary.jsp",
                        "Sec-Fetch-Dest": "empty",
                        "Sec-Fetch-Mode": "cors",
                        "Sec-Fetch-Site": "same-origin",
                        "Sec-Fetch-User": None,
                        "Upgrade-Insecure-Requests": None,
                        "x-dtpc": generate_dtpc_header("keep-alive"),
                    }
                }
            ),
        )
        await self._auth.expect_path(
            response, KEEP_ALIVE_PATH, "keep alive page", client=client
        )
        _LOGGER.debug("Keep alive sent")

    async def fetch_summary(self) -> httpx.Response:
        """Load the summary page and check where it landed.

        The backup sat code, and the network id if still missing, are refreshed
        from every summary page load.
        """
        response = await self._load(
            "summary/summary.jsp",
            SUMMARY_PATH,
            "summary page",
            referer="summary/summary.jsp",
        )
        self._auth.refresh_session_facts(response.text)
        return response

    async def _get_summary(self) -> BeautifulSoup:
        response = await self.fetch_summary()
        return parse_html(response.text)

    async def _load(
        self,
        page: str,
        pattern: re.Pattern[str],
        page_name: str,
        *,
        referer: str,
        extra_headers: dict[str, Any] | None = None,
    ) -> httpx.Response:
        self._auth.require_authenticated()

        session = self._session
        headers: dict[str, Any] = {
            "Referer": f"{session.versioned_url}/{referer}",
            "Sec-Fetch-Site": "same-origin",
        }
        headers.update(extra_headers or {})
        client = session.http_client
        response = await client.get(
            f"{session.versioned_url}/{page}",
            **session.request_config({"headers": headers}),
        )
        await self._auth.expect_path(response, pattern, page_name, client=client)
        return response

    def _observe(self, category: str, payload: dict[str, Any]) -> None:
        if self._detector is not None:
            self._detector.observe(category, payload)
