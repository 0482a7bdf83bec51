"""Authentication engine for the ADT Pulse portal.

Covers the browser-like sign-in sequence, the multi-factor challenge that can
interrupt it, and sign-out. Each method raises an ADTPulseError subclass on
failure; the client facade turns those into failed results.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from .const import (
    MFA_STATUS_NOT_REQUIRED,
    MFA_STATUS_REQUIRED,
    OTP_PATTERN,
    RUN_RRA_PROXY_PATH,
    SIGN_IN_FAILED_PATH,
    SIGN_IN_MFA_PATH,
    SIGN_IN_PATH,
    SIGN_OUT_PATH,
    SUMMARY_PATH,
    TRUSTED_DEVICE_NAME_MAX_LENGTH,
)
from .exceptions import (
    InvalidCredentialsError,
    InvalidInputError,
    MalformedResponseError,
    NotAuthenticatedError,
    PortalUnreachableError,
    UnexpectedRedirectError,
)
from .fingerprint import generate_dtpc_header
from .models import (
    MfaSession,
    SessionInfo,
    TrustedDevice,
    VerificationMethod,
    VerificationMethodsInfo,
)
from .parser import (
    extract_network_id,
    extract_sat_code,
    parse_mfa_config,
    parse_otp_detail,
    parse_trusted_devices,
    parse_verification_methods,
    parse_warning_message,
)
from .session import PortalSession, request_path

if TYPE_CHECKING:
    from .detect import DriftDetector

_LOGGER = logging.getLogger(__name__)

RRA_PROXY = "nga/serv/RunRRAProxy"
MFA_REQUIRED_MESSAGE = "Multi-factor authentication is required to complete the sign in"


def check_status(response: httpx.Response) -> None:
    """Raise if the portal answered with an HTTP error status.

    Raises:
        MalformedResponseError: If the status code is 400 or above.

    """
    if response.status_code >= httpx.codes.BAD_REQUEST:
        error_msg = (
            f"The remote server responded with a HTTP {response.status_code} "
            "status code"
        )
        raise MalformedResponseError(error_msg)


def read_json(response: httpx.Response) -> Any:
    """Decode a JSON response body.

    Raises:
        MalformedResponseError: If the body is not valid JSON.

    """
    try:
        return response.json()
    except ValueError as err:
        error_msg = f'The response body of "{response.url.path}" is not valid JSON'
        raise MalformedResponseError(error_msg) from err


class ADTPulseAuth:
    """Sign-in, multi-factor and sign-out steps against one portal session."""

    def __init__(
        self,
        session: PortalSession,
        username: str,
        password: str,
        fingerprint: str,
        detector: DriftDetector | None = None,
    ) -> None:
        """Initialize the authentication engine.

        Args:
            session: Portal session to sign in with.
            username: Portal username.
            password: Portal password.
            fingerprint: Base64 encoded browser fingerprint.
            detector: Optional drift detector notified of the portal version.

        """
        self._session = session
        self._username = username
        self._password = password
        self._fingerprint = fingerprint
        self._detector = detector

    @property
    def fingerprint(self) -> str:
        """Return the fingerprint submitted with the sign-in form."""
        return self._fingerprint

    def session_info(self) -> SessionInfo:
        """Return the session facts reported by login and logout."""
        return SessionInfo(
            backup_sat_code=self._session.backup_sat_code,
            network_id=self._session.network_id,
            portal_version=self._session.portal_version,
        )

    def require_authenticated(self) -> None:
        """Raise unless the session is signed in.

        Raises:
            NotAuthenticatedError: If login has not succeeded yet.

        """
        if not self._session.is_authenticated:
            error_msg = "The session is not signed in"
            raise NotAuthenticatedError(error_msg)

    async def is_portal_accessible(self) -> None:
        """Check that the portal answers a HEAD request.

        Raises:
            PortalUnreachableError: On a network error or an HTTP error status.

        """
        url = f"{self._session.base_url}/"
        client = self._session.http_client
        try:
            response = await client.head(url, **self._session.request_config())
        except httpx.HTTPError as err:
            error_msg = f'The portal at "{url}" is unreachable: {err}'
            await self._session.reset(client)
            raise PortalUnreachableError(error_msg) from err

        if response.status_code >= httpx.codes.BAD_REQUEST:
            error_msg = (
                f'The portal at "{url}" responded with a HTTP '
                f"{response.status_code} status code"
            )
            await self._session.reset(client)
            raise PortalUnreachableError(error_msg)

        _LOGGER.debug("Portal at %s is accessible", url)

    async def handle_login_failure(
        self,
        path: str,
        response: httpx.Response,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Reset the session if a request was bounced to sign in or the challenge.

        Args:
            path: Path the request landed on.
            response: Response of that request, used for the portal warning.
            client: HTTP client that sent the request. When given, the session
                is only reset if that client is still the current one.

        """
        if not (
            SIGN_IN_PATH.match(path)
            or SIGN_IN_FAILED_PATH.match(path)
            or SIGN_IN_MFA_PATH.match(path)
        ):
            return

        _LOGGER.error(
            "Either the username or password is incorrect, fingerprint format "
            "is invalid, or was signed out due to inactivity"
        )
        warning = parse_warning_message(response.text)
        if warning is not None:
            _LOGGER.warning('Portal message: "%s"', warning)

        await self._session.reset(client)

    async def expect_path(
        self,
        response: httpx.Response,
        pattern: re.Pattern[str],
        page_name: str,
        client: httpx.AsyncClient | None = None,
    ) -> str:
        """Check that a response landed on the expected page.

        On a mismatch the login failure handler runs before raising.

        Args:
            response: Response to check.
            pattern: Compiled path pattern of the expected page.
            page_name: Page name used in the error message.
            client: HTTP client that sent the request, if known.

        Returns:
            The path the request landed on.

        Raises:
            MalformedResponseError: If the portal returned an HTTP error.
            UnexpectedRedirectError: If the path does not match.

        """
        check_status(response)
        path = request_path(response)
        _LOGGER.debug("Request path: %s", path)

        if not pattern.match(path):
            await self.handle_login_failure(path, response, client)
            error_msg = f'"{path}" is not the {page_name}'
            raise UnexpectedRedirectError(error_msg, path)

        return path

    def refresh_session_facts(self, html: str) -> None:
        """Refresh the backup sat code and any missing network id from a page.

        Both can be absent from the page loaded at sign in, so every summary
        page load fills them in again.
        """
        sat_code = extract_sat_code(html)
        if sat_code is not None:
            self._session.backup_sat_code = sat_code

        if self._session.network_id is None:
            network_id = extract_network_id(html)
            if network_id is not None:
                _LOGGER.debug("Network id found on a later page load")
                self._session.network_id = network_id

    async def login(self) -> SessionInfo:
        """Sign in to the portal.

        Returns:
            Session facts after signing in. If the session is already signed
            in, the cached facts are returned without any request.

        Raises:
            PortalUnreachableError: If the portal cannot be reached.
            InvalidCredentialsError: If the portal rejects the credentials.
            UnexpectedRedirectError: If the sign in ended on another page,
                including the multi-factor challenge.

        """
        await self.is_portal_accessible()

        if self._session.is_authenticated:
            _LOGGER.debug("Already signed in to %s", self._session.base_url)
            return self.session_info()

        path, response = await self._sign_in()

        if SIGN_IN_MFA_PATH.match(path):
            _LOGGER.error(
                "Fingerprint is invalid or the device was not trusted after "
                "completing the multi-factor challenge"
            )
            self._open_mfa_challenge(response.text)
            await self._fetch_verification_methods()
            raise UnexpectedRedirectError(MFA_REQUIRED_MESSAGE, path)

        self._authenticate(response.text)
        return self.session_info()

    async def get_verification_methods(self) -> VerificationMethodsInfo:
        """Sign in and report the verification methods, if any are needed.

        Returns:
            Methods with status "required" when the challenge opened, or an
            empty list with status "not-required" when sign in completed.

        Raises:
            PortalUnreachableError: If the portal cannot be reached.
            InvalidCredentialsError: If the portal rejects the credentials.
            UnexpectedRedirectError: If the sign in ended on another page.
            MalformedResponseError: If the challenge page lacks its config.
            SchemaValidationError: If the methods body has the wrong shape.

        """
        await self.is_portal_accessible()

        if self._session.is_authenticated:
            return VerificationMethodsInfo(methods=[], status=MFA_STATUS_NOT_REQUIRED)

        if self._session.mfa.verification_methods:
            _LOGGER.debug("Already retrieved verification methods")
            return VerificationMethodsInfo(
                methods=list(self._session.mfa.verification_methods),
                status=MFA_STATUS_REQUIRED,
            )

        path, response = await self._sign_in()

        if SUMMARY_PATH.match(path):
            _LOGGER.debug("Verification methods not required")
            self._authenticate(response.text)
            return VerificationMethodsInfo(methods=[], status=MFA_STATUS_NOT_REQUIRED)

        self._open_mfa_challenge(response.text)
        methods = await self._fetch_verification_methods()
        return VerificationMethodsInfo(methods=methods, status=MFA_STATUS_REQUIRED)

    async def request_code(self, method_id: str) -> None:
        """Ask the portal to send a one-time code through a method.

        Args:
            method_id: Id of a method returned by get_verification_methods.

        Raises:
            InvalidInputError: If the method id is unknown.
            UnexpectedRedirectError: If the challenge expired and the session
                was reset.
            MalformedResponseError: If the portal did not acknowledge.
            SchemaValidationError: If the body has the wrong shape.

        """
        known_ids = {method.id for method in self._session.mfa.verification_methods}
        if method_id not in known_ids:
            error_msg = (
                f'The "{method_id}" verification method does not exist. Did you '
                'run the "get_verification_methods()" yet?'
            )
            raise InvalidInputError(error_msg)

        response = await self._proxy_request(
            "POST",
            "href=rest/adt/ui/client/multiFactorAuth/"
            "requestOtpForRegisteredProperty&sat=",
            content=f"id={quote(method_id, safe='')}",
            **self._mfa_config(post=True),
        )

        detail = parse_otp_detail(read_json(response))
        if "OK" not in detail:
            error_msg = f'Failed to request a code using the "{method_id}" method'
            raise MalformedResponseError(error_msg)

        _LOGGER.debug("Requested a code using the %s method", method_id)

    async def validate_code(self, otp_code: str) -> None:
        """Submit the one-time code and store the resulting token.

        An empty response body means the code was already validated.

        Raises:
            InvalidInputError: If the code is not six digits, or the portal
                rejects or expired it.
            SchemaValidationError: If the body has the wrong shape.

        """
        if not OTP_PATTERN.fullmatch(otp_code):
            error_msg = "The verification code must be 6 digits"
            raise InvalidInputError(error_msg)

        response = await self._proxy_request(
            "POST",
            "href=rest/adt/ui/client/multiFactorAuth/validateOtp&sat=",
            content=f"otp={quote(otp_code, safe='')}",
            **self._mfa_config(post=True),
        )

        if response.text == "":
            _LOGGER.debug("Code was already validated")
            return

        detail = parse_otp_detail(read_json(response))
        if not detail.startswith("u="):
            error_msg = "The verification code submitted is either invalidated or expired"
            raise InvalidInputError(error_msg)

        self._session.mfa.token = detail
        _LOGGER.debug("Code was validated")

    async def get_trusted_devices(self) -> list[TrustedDevice]:
        """Return the devices currently trusted by the account.

        Raises:
            UnexpectedRedirectError: If the challenge expired and the session
                was reset.
            SchemaValidationError: If the body has the wrong shape.

        """
        sat = self._session.mfa.sat_code
        response = await self._proxy_request(
            "GET",
            f"only=client.multiFactorAuth&exclude=&sat={sat}"
            f"&href=rest/adt/ui/updates&sat={sat}&",
            **self._mfa_config(use_token=True),
        )

        devices = parse_trusted_devices(read_json(response))
        self._session.mfa.trusted_devices = devices
        return devices

    async def add_trusted_device(self, name: str) -> None:
        """Trust this browser under a display name.

        Args:
            name: Display name, 1 to 100 characters and not already in use.

        Raises:
            InvalidInputError: If the name is out of range or already used.
            MalformedResponseError: If the portal did not acknowledge.

        """
        if not 1 <= len(name) <= TRUSTED_DEVICE_NAME_MAX_LENGTH:
            error_msg = (
                "The name for the trusted device must be between 1 and "
                f"{TRUSTED_DEVICE_NAME_MAX_LENGTH} characters"
            )
            raise InvalidInputError(error_msg)

        if any(device.name == name for device in self._session.mfa.trusted_devices):
            error_msg = "The name for the trusted device already exists"
            raise InvalidInputError(error_msg)

        # The portal decodes the form body and then the name itself.
        encoded_name = quote(quote(name, safe=""), safe="")
        response = await self._proxy_request(
            "POST",
            "href=rest/adt/ui/client/multiFactorAuth/addTrustedDevice&sat=",
            content=f"name={encoded_name}",
            **self._mfa_config(post=True, use_token=True),
        )

        detail = parse_otp_detail(read_json(response))
        if "OK" not in detail:
            error_msg = f'Failed to add "{name}" as a trusted device'
            raise MalformedResponseError(error_msg)

        _LOGGER.debug("Added %s as a trusted device", name)

    async def complete_sign_in(self) -> SessionInfo:
        """Finish the sign in after the multi-factor challenge.

        Raises:
            UnexpectedRedirectError: If the portal did not land on the summary.

        """
        response = await self._session.http_client.get(
            f"{self._session.versioned_url}/access/PostSigninProcessServ",
            **self._session.request_config(
                {
                    "headers": {
                        "Referer": self._mfa_challenge_url(),
                        "Sec-Fetch-Site": "same-origin",
                    }
                }
            ),
        )
        await self.expect_path(response, SUMMARY_PATH, "summary page")

        self._authenticate(response.text)
        self._session.mfa = MfaSession()
        return self.session_info()

    async def logout(self) -> SessionInfo:
        """Sign out and reset the session.

        Signing out of a session that never signed in succeeds without any
        request.

        Raises:
            PortalUnreachableError: If the portal cannot be reached.
            UnexpectedRedirectError: If sign out did not land on sign in.

        """
        await self.is_portal_accessible()

        session = self._session
        if (
            not session.is_authenticated
            and session.backup_sat_code is None
            and session.network_id is None
            and session.portal_version is None
        ):
            _LOGGER.debug("Already signed out of %s", session.base_url)
            return self.session_info()

        response = await session.http_client.get(
            f"{session.versioned_url}/access/signout.jsp"
            f"?networkid={session.network_id}&partner=adt",
            **session.request_config(
                {
                    "headers": {
                        "Referer": f"{session.versioned_url}/summary/summary.jsp",
                        "Sec-Fetch-Site": "same-origin",
                    }
                }
            ),
        )
        await self.expect_path(
            response,
            SIGN_OUT_PATH,
            'sign-in page with "networkid" and "partner=adt" parameters',
        )

        await session.reset()
        _LOGGER.debug("Signed out of %s", session.base_url)
        return self.session_info()

    async def _sign_in(self) -> tuple[str, httpx.Response]:
        """Load the sign-in page and submit the credentials.

        Returns:
            Path and response of the page the form submission landed on,
            either the summary or the multi-factor challenge.

        """
        session = self._session
        response = await session.http_client.get(
            f"{session.base_url}/", **session.request_config()
        )
        path = await self.expect_path(response, SIGN_IN_PATH, "sign-in page")

        match = SIGN_IN_PATH.match(path)
        session.portal_version = match.group(1)
        if self._detector is not None:
            self._detector.observe("portal-version", {"version": session.portal_version})

        sign_in_url = f"{session.versioned_url}/access/signin.jsp?e=ns&partner=adt"
        response = await session.http_client.post(
            sign_in_url,
            data={
                "usernameForm": self._username,
                "passwordForm": self._password,
                "sun": "yes",
                "networkid": "",
                "fingerprint": self._fingerprint,
            },
            **session.request_config(
                {
                    "headers": {
                        "Cache-Control": "max-age=0",
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Origin": session.base_url,
                        "Referer": sign_in_url,
                        "Sec-Fetch-Site": "same-origin",
                    }
                }
            ),
        )
        check_status(response)
        path = request_path(response)
        _LOGGER.debug("Request path: %s", path)

        if SUMMARY_PATH.match(path) or SIGN_IN_MFA_PATH.match(path):
            return path, response

        await self.handle_login_failure(path, response)
        if SIGN_IN_FAILED_PATH.match(path):
            error_msg = "Invalid username and/or password"
            raise InvalidCredentialsError(error_msg, path)

        error_msg = f'"{path}" is not the summary page'
        raise UnexpectedRedirectError(error_msg, path)

    def _authenticate(self, html: str) -> None:
        self._session.network_id = extract_network_id(html)
        self._session.backup_sat_code = extract_sat_code(html)
        self._session.is_authenticated = True
        if self._session.network_id is None:
            _LOGGER.warning(
                "Network id was not found after sign in, retrying on later page loads"
            )
        if self._session.backup_sat_code is None:
            _LOGGER.warning(
                "Backup sat code was not found after sign in, retrying on later "
                "page loads"
            )
        _LOGGER.info(
            "Login successful (network id: %s, portal version: %s)",
            self._session.network_id,
            self._session.portal_version,
        )

    def _open_mfa_challenge(self, html: str) -> None:
        config = parse_mfa_config(html)
        self._session.mfa = MfaSession(**config)

    async def _fetch_verification_methods(self) -> list[VerificationMethod]:
        response = await self._proxy_request(
            "GET",
            "href=rest/icontrol/ui/client/multiFactorAuth"
            f"&sat={self._session.mfa.sat_code}",
            **self._mfa_config(),
        )

        methods = parse_verification_methods(read_json(response))
        self._session.mfa.verification_methods = methods
        return methods

    async def _proxy_request(
        self, method: str, query: str, **kwargs: Any
    ) -> httpx.Response:
        """Send a multi-factor request and check it stayed on the proxy.

        An expired challenge bounces to sign in, which resets the session.
        """
        client = self._session.http_client
        response = await client.request(method, self._rra_url(query), **kwargs)
        await self.expect_path(
            response, RUN_RRA_PROXY_PATH, "multi-factor proxy", client=client
        )
        return response

    def _rra_url(self, query: str) -> str:
        return f"{self._session.versioned_url}/{RRA_PROXY}?{query}"

    def _mfa_challenge_url(self) -> str:
        return f"{self._session.versioned_url}/mfa/mfaSignIn.jsp?workflow=challenge"

    def _mfa_config(self, *, post: bool = False, use_token: bool = False) -> dict[str, Any]:
        mfa = self._session.mfa
        headers: dict[str, str | None] = {
            "Accept": "application/json",
            "Content-Type": None,
            "Referer": self._mfa_challenge_url(),
            "Sec-Fetch-Dest": "empty",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "same-origin",
            "Sec-Fetch-User": None,
            "Upgrade-Insecure-Requests": None,
            "X-clientType": mfa.client_type,
            "X-format": "json",
            "X-locale": mfa.locale,
            "X-login": mfa.login,
            "X-version": "7.0",
            "x-dtpc": generate_dtpc_header("multi-factor"),
        }
        if use_token:
            headers["X-token"] = mfa.token
        else:
            headers["X-preAuthToken"] = mfa.pre_auth_token
        if post:
            headers["Content-Type"] = (
                "application/x-www-form-urlencoded; charset=UTF-8"
            )
            headers["Origin"] = self._session.base_url

        return self._session.request_config({"headers": headers})
