"""Session manager for the ADT Pulse portal.

A session owns the cookie-bound HTTP client and the facts learned while
signing in. Resetting it discards both, so the next operation starts from a
clean browser state.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from httpx_retries import Retry, RetryTransport

from .const import DEFAULT_SUBDOMAIN, REQUEST_TIMEOUT, USER_AGENT
from .models import MfaSession

_LOGGER = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]


def portal_base_url(subdomain: str) -> str:
    """Return the portal origin for a subdomain."""
    return f"https://{subdomain}.adtpulse.com"


def create_default_headers(subdomain: str) -> dict[str, str]:
    """Create the headers a desktop browser sends on a top-level navigation.

    Args:
        subdomain: Portal subdomain, used for the Host header.

    Returns:
        Dictionary containing the default request headers.

    """
    return {
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
        ),
        "Accept-Encoding": "gzip, deflate, br, zstd",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "Host": f"{subdomain}.adtpulse.com",
        "Pragma": "no-cache",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
        "User-Agent": USER_AGENT,
        "sec-ch-ua": (
            '"Not/A)Brand";v="8", "Chromium";v="126", "Google Chrome";v="126"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"macOS"',
    }


def find_null_keys(properties: dict[str, Any], parent_key: str = "") -> list[str]:
    """Find keys whose value is None, descending into nested dictionaries.

    Args:
        properties: Mapping to search.
        parent_key: Dotted prefix of the mapping within its parent.

    Returns:
        Dotted paths of every key holding None.

    """
    found: list[str] = []
    for key, value in properties.items():
        current_key = f"{parent_key}.{key}" if parent_key else key
        if isinstance(value, dict):
            found.extend(find_null_keys(value, current_key))
        elif value is None:
            found.append(current_key)
    return found


def _remove_path(mapping: dict[str, Any], path: str) -> None:
    *parents, leaf = path.split(".")
    for parent in parents:
        mapping = mapping.get(parent)
        if not isinstance(mapping, dict):
            return
    mapping.pop(leaf, None)


def _deep_merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_request_config(
    subdomain: str, overrides: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Merge the default request options with per-request overrides.

    Any override set to None removes that key from both the defaults and the
    overrides, which is how a request opts out of a default header.

    Args:
        subdomain: Portal subdomain.
        overrides: Options such as {"headers": {...}} for this request.

    Returns:
        Keyword arguments for an httpx request.

    """
    defaults: dict[str, Any] = {
        "headers": create_default_headers(subdomain),
        "timeout": REQUEST_TIMEOUT,
    }
    extra = copy.deepcopy(overrides) if overrides else {}

    for path in find_null_keys(extra):
        _remove_path(defaults, path)
        _remove_path(extra, path)

    return _deep_merge(defaults, extra)


def request_path(response: httpx.Response) -> str:
    """Return the path and query of the page a request finally landed on."""
    return response.url.raw_path.decode("ascii")


def create_default_client() -> httpx.AsyncClient:
    """Create a cookie-keeping HTTP client with retry logic.

    Returns:
        httpx AsyncClient that follows redirects like a browser.

    """
    retry = Retry(total=3, backoff_factor=0.5)
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=REQUEST_TIMEOUT,
        transport=RetryTransport(retry=retry),
    )


@dataclass(slots=True)
class PortalSession:
    """Cookie jar, HTTP client and sign-in facts for one portal account."""

    subdomain: str
    client_factory: ClientFactory
    http_client: httpx.AsyncClient
    is_authenticated: bool = False
    portal_version: str | None = None
    network_id: str | None = None
    backup_sat_code: str | None = None
    is_clean_state: bool = True
    mfa: MfaSession = field(default_factory=MfaSession)

    @property
    def base_url(self) -> str:
        """Return the portal origin."""
        return portal_base_url(self.subdomain)

    @property
    def versioned_url(self) -> str:
        """Return the origin plus the versioned application root."""
        return f"{self.base_url}/myhome/{self.portal_version}"

    def request_config(self, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        """Return request keyword arguments for this session's subdomain."""
        return build_request_config(self.subdomain, overrides)

    async def reset(self, failed_client: httpx.AsyncClient | None = None) -> None:
        """Discard the cookie jar and HTTP client and forget all sign-in facts.

        Safe to call when already signed out.

        Args:
            failed_client: Client that sent the failing request. If another
                reset already replaced it, nothing is discarded, so concurrent
                failures do not close the fresh client.

        """
        if failed_client is not None and failed_client is not self.http_client:
            _LOGGER.debug("Portal session was already reset")
            return

        old_client = self.http_client
        self.http_client = self.client_factory()
        self.is_authenticated = False
        self.portal_version = None
        self.network_id = None
        self.backup_sat_code = None
        self.is_clean_state = True
        self.mfa = MfaSession()
        _LOGGER.debug("Portal session has been reset")
        await old_client.aclose()


def new_session(
    subdomain: str = DEFAULT_SUBDOMAIN,
    client_factory: ClientFactory | None = None,
) -> PortalSession:
    """Create a signed-out session with a fresh HTTP client.

    Args:
        subdomain: Portal subdomain, "portal" or "portal-ca".
        client_factory: Callable returning a new HTTP client. Called again on
            every reset.

    Returns:
        New PortalSession.

    """
    factory = client_factory or create_default_client
    return PortalSession(
        subdomain=subdomain,
        client_factory=factory,
        http_client=factory(),
    )
