"""
Contract of the authorization backend (browser flow, token endpoint, end-session, userinfo).
The session manager only talks to the identity provider through this protocol; concrete
backends live outside this package.
"""
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class OidcConfiguration:
    """
    Options record passed to the backend. The session manager itself only reads issuer,
    client_id, redirect URLs, registration_page_endpoint and userinfo_endpoint.
    """
    issuer: str
    client_id: str
    redirect_url: str
    scopes: list[str] = field(default_factory=lambda: ["openid"])
    client_secret: str | None = None
    post_logout_redirect_url: str | None = None
    registration_page_endpoint: str | None = None
    userinfo_endpoint: str | None = None
    dangerously_allow_insecure_http_requests: bool = False
    use_nonce: bool = True
    use_pkce: bool = True
    # Transport-specific flags, passed through untouched
    additional_parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthorizeResult:
    access_token: str | None = None
    id_token: str | None = None
    refresh_token: str | None = None


@dataclass(frozen=True)
class RefreshConfiguration:
    refresh_token: str


@dataclass(frozen=True)
class EndSessionConfiguration:
    issuer: str
    client_id: str
    dangerously_allow_insecure_http_requests: bool = False


@dataclass(frozen=True)
class LogoutConfiguration:
    id_token: str
    post_logout_redirect_url: str | None = None


@dataclass(frozen=True)
class UserInfoConfiguration:
    access_token: str
    userinfo_endpoint: str


class AuthorizationBackend(Protocol):
    """
    Failures should be raised as oidc_session.errors.AuthorizationError so the manager can
    tell terminal refresh failures from transient ones. Any other exception is transient.
    """

    async def authorize(self, config: OidcConfiguration) -> AuthorizeResult: ...

    async def register(self, config: OidcConfiguration, registration_endpoint: str) -> AuthorizeResult: ...

    async def refresh(self, config: OidcConfiguration, refresh_config: RefreshConfiguration) -> AuthorizeResult: ...

    async def logout(self, config: EndSessionConfiguration, logout_config: LogoutConfiguration) -> None: ...

    async def get_user_info(self, config: UserInfoConfiguration) -> dict[str, Any]: ...
