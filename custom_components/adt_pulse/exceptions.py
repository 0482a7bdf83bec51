"""Exceptions raised inside the ADT Pulse portal engine."""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Category of a portal failure, reported in failed results."""

    PORTAL_UNREACHABLE = "portal_unreachable"
    UNEXPECTED_REDIRECT = "unexpected_redirect"
    MALFORMED_RESPONSE = "malformed_response"
    SCHEMA_VALIDATION_FAILED = "schema_validation_failed"
    FORCE_ARM_UNAVAILABLE = "force_arm_unavailable"
    INVALID_INPUT = "invalid_input"
    SESSION_NOT_READY = "session_not_ready"
    UNKNOWN = "unknown"


class ADTPulseError(Exception):
    """Base exception for ADT Pulse portal errors."""

    kind = ErrorKind.UNKNOWN


class PortalUnreachableError(ADTPulseError):
    """Exception raised when the portal cannot be reached."""

    kind = ErrorKind.PORTAL_UNREACHABLE


class UnexpectedRedirectError(ADTPulseError):
    """Exception raised when a request did not land on the expected page."""

    kind = ErrorKind.UNEXPECTED_REDIRECT

    def __init__(self, message: str, path: str | None = None) -> None:
        """Initialize the error with the path the request landed on."""
        super().__init__(message)
        self.path = path


class InvalidCredentialsError(UnexpectedRedirectError):
    """Exception raised when the portal rejects the username or password."""


class MalformedResponseError(ADTPulseError):
    """Exception raised when an expected page element or value is missing."""

    kind = ErrorKind.MALFORMED_RESPONSE


class SchemaValidationError(ADTPulseError):
    """Exception raised when a JSON body does not have the expected shape."""

    kind = ErrorKind.SCHEMA_VALIDATION_FAILED


class ForceArmUnavailableError(ADTPulseError):
    """Exception raised when force arming is required but cannot complete."""

    kind = ErrorKind.FORCE_ARM_UNAVAILABLE


class InvalidInputError(ADTPulseError):
    """Exception raised for caller input the portal would reject."""

    kind = ErrorKind.INVALID_INPUT


class NotAuthenticatedError(ADTPulseError):
    """Exception raised when an operation needs a signed-in session."""

    kind = ErrorKind.SESSION_NOT_READY
