"""
Error taxonomy for the session manager.
Caller-contract violations raise immediately; backend and storage failures are
reported through lifecycle events by the manager.
"""
from enum import Enum


class AuthErrorCode(str, Enum):
    # RFC 6749 section 5.2 (token endpoint)
    INVALID_GRANT = "invalid_grant"
    INVALID_CLIENT = "invalid_client"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    # RFC 6749 section 4.1.2.1 (authorization endpoint)
    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    ACCESS_DENIED = "access_denied"
    UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
    INVALID_SCOPE = "invalid_scope"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"
    # Raised by the authorization backend itself
    SERVICE_CONFIGURATION_FETCH_ERROR = "service_configuration_fetch_error"
    AUTHENTICATION_FAILED = "authentication_failed"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    REGISTRATION_FAILED = "registration_failed"
    BROWSER_NOT_FOUND = "browser_not_found"

    @property
    def is_terminal(self) -> bool:
        """True when the session cannot recover without a new login."""
        return self in TERMINAL_ERROR_CODES


TERMINAL_ERROR_CODES = frozenset(
    {
        AuthErrorCode.INVALID_GRANT,
        AuthErrorCode.TOKEN_REFRESH_FAILED,
        AuthErrorCode.AUTHENTICATION_FAILED,
        AuthErrorCode.ACCESS_DENIED,
    }
)


class OidcSessionError(Exception):
    """Base class for all errors raised by oidc_session."""


class ConfigurationError(OidcSessionError):
    """Missing or invalid configuration (issuer, registration endpoint)."""


class MissingRefreshTokenError(OidcSessionError):
    pass


class InvalidMinValidityError(OidcSessionError, ValueError):
    pass


class NotAuthenticatedError(OidcSessionError):
    pass


class TokenDecodeError(OidcSessionError):
    pass


class StorageError(OidcSessionError):
    """The secure store could not read, write or reset the persisted state."""


class AuthorizationError(OidcSessionError):
    """
    Failure reported by the authorization backend.
    code is None when the provider returned something outside the known vocabulary;
    such failures are treated as transient.
    """

    def __init__(self, code: AuthErrorCode | None, message: str | None = None):
        self.code = code
        self.message = message
        label = code.value if code is not None else "unknown_error"
        super().__init__(f"{label}: {message}" if message else label)

    @property
    def is_terminal(self) -> bool:
        return self.code is not None and self.code.is_terminal

    @classmethod
    def from_oauth_error(cls, error: str | None, description: str | None = None) -> "AuthorizationError":
        """Build from an OAuth2 error response ({"error": ..., "error_description": ...})."""
        try:
            code = AuthErrorCode((error or "").strip())
        except ValueError:
            code = None
            if error and not description:
                description = error
        return cls(code, description)
