"""Tests for the error-code vocabulary and AuthorizationError."""
from oidc_session.errors import AuthErrorCode, AuthorizationError, InvalidMinValidityError


def test_terminal_codes():
    terminal = {c for c in AuthErrorCode if c.is_terminal}
    assert terminal == {
        AuthErrorCode.INVALID_GRANT,
        AuthErrorCode.TOKEN_REFRESH_FAILED,
        AuthErrorCode.AUTHENTICATION_FAILED,
        AuthErrorCode.ACCESS_DENIED,
    }


def test_authorization_error_from_oauth_error():
    err = AuthorizationError.from_oauth_error("invalid_grant", "Token is not active")
    assert err.code is AuthErrorCode.INVALID_GRANT
    assert err.is_terminal
    assert "Token is not active" in str(err)


def test_authorization_error_unknown_code_is_transient():
    err = AuthorizationError.from_oauth_error("server_exploded")
    assert err.code is None
    assert err.is_terminal is False
    assert err.message == "server_exploded"


def test_authorization_error_without_message():
    err = AuthorizationError(AuthErrorCode.TEMPORARILY_UNAVAILABLE)
    assert str(err) == "temporarily_unavailable"
    assert not err.is_terminal


def test_invalid_min_validity_is_a_value_error():
    assert issubclass(InvalidMinValidityError, ValueError)
