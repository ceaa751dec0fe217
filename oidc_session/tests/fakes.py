"""
Test doubles: controllable clock and timers, scripted backend, failing store, token minting.
"""
import jwt

from oidc_session.backend import (
    AuthorizeResult,
    EndSessionConfiguration,
    LogoutConfiguration,
    OidcConfiguration,
    RefreshConfiguration,
    UserInfoConfiguration,
)
from oidc_session.errors import AuthorizationError, AuthErrorCode
from oidc_session.store import MemoryStore, PersistedState

# 2023-11-14T22:13:20Z
NOW_MS = 1_700_000_000_000
NOW_S = NOW_MS // 1000

# HS256 needs a 32+ byte key; the codec never checks it
SIGNING_SECRET = "test-signing-secret-with-enough-bytes"


def make_token(exp: int | None = None, iat: int | None = None, **claims) -> str:
    """Mint a JWT. Defaults: issued now, expires in 10 minutes."""
    payload = {
        "iss": "http://oidc.test/realms/test",
        "sub": "4f7ab9fe-2257-4ada-a22f-b357a4ca308c",
        "aud": "account",
        "scope": "openid profile email",
        "iat": NOW_S if iat is None else iat,
        "exp": NOW_S + 600 if exp is None else exp,
    }
    payload.update(claims)
    return jwt.encode(payload, SIGNING_SECRET, algorithm="HS256")


def make_expired_token() -> str:
    return make_token(exp=NOW_S - 1, iat=NOW_S)


def make_config(**overrides) -> OidcConfiguration:
    values = {
        "issuer": "http://oidc.test/realms/test",
        "client_id": "testClientId",
        "redirect_url": "app://callback",
        "scopes": ["openid"],
        "post_logout_redirect_url": "app://logged-out",
        "registration_page_endpoint": "http://oidc.test/realms/test/register",
    }
    values.update(overrides)
    return OidcConfiguration(**values)


class FakeClock:
    def __init__(self, now_ms: float = NOW_MS):
        self.now_ms = now_ms

    def now(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


class FakeHandle:
    def __init__(self, scheduler: "FakeScheduler", fire_at: float, callback):
        self.scheduler = scheduler
        self.fire_at = fire_at
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        if self in self.scheduler.pending:
            self.scheduler.pending.remove(self)


class FakeScheduler:
    """Timers fire only when advance() moves the shared clock past their deadline."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.pending: list[FakeHandle] = []
        self.delays: list[float] = []

    def after(self, delay_ms: float, callback) -> FakeHandle:
        handle = FakeHandle(self, self.clock.now() + delay_ms, callback)
        self.pending.append(handle)
        self.delays.append(delay_ms)
        return handle

    def advance(self, ms: float) -> None:
        self.clock.advance(ms)
        due = [h for h in self.pending if h.fire_at <= self.clock.now()]
        for handle in due:
            self.pending.remove(handle)
            handle.callback()


class FakeStore(MemoryStore):
    def __init__(self, state: PersistedState | None = None):
        super().__init__(state)
        self.fail_on_reset = False
        self.fail_on_add = False
        self.fail_on_get = False
        self.add_calls = 0
        self.reset_calls = 0

    async def get(self):
        if self.fail_on_get:
            raise OSError("keychain unavailable")
        return await super().get()

    async def add(self, state):
        self.add_calls += 1
        if self.fail_on_add:
            raise OSError("add error")
        await super().add(state)

    async def reset(self):
        self.reset_calls += 1
        if self.fail_on_reset:
            raise OSError("reset error")
        await super().reset()


class FakeBackend:
    """Returns the configured token triple from authorize/register/refresh unless told to fail."""

    def __init__(self, access_token: str, refresh_token: str | None, id_token: str | None, user_info=None):
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.id_token = id_token
        self.user_info = user_info
        self.authorize_error: Exception | None = None
        self.register_error: Exception | None = None
        self.refresh_error: Exception | None = None
        self.logout_error: Exception | None = None
        self.refresh_result: AuthorizeResult | None = None
        self.register_result: AuthorizeResult | None = None
        self.refresh_calls: list[RefreshConfiguration] = []
        self.logout_calls: list[tuple[EndSessionConfiguration, LogoutConfiguration]] = []
        self.user_info_calls: list[UserInfoConfiguration] = []
        self.registration_endpoints: list[str] = []
        # Milliseconds the fake clock moves during each backend call (network latency)
        self.latency_ms = 0
        self.clock: FakeClock | None = None

    def configure_refresh_error(self, code: AuthErrorCode | None, message: str | None = None) -> None:
        self.refresh_error = AuthorizationError(code, message)

    def add_next_token(self, access_token: str) -> None:
        self.access_token = access_token

    def _result(self) -> AuthorizeResult:
        if self.clock is not None:
            self.clock.advance(self.latency_ms)
        return AuthorizeResult(
            access_token=self.access_token,
            id_token=self.id_token,
            refresh_token=self.refresh_token,
        )

    async def authorize(self, config):
        if self.authorize_error is not None:
            raise self.authorize_error
        return self._result()

    async def register(self, config, registration_endpoint):
        self.registration_endpoints.append(registration_endpoint)
        if self.register_error is not None:
            raise self.register_error
        if self.register_result is not None:
            return self.register_result
        return self._result()

    async def refresh(self, config, refresh_config):
        self.refresh_calls.append(refresh_config)
        if self.refresh_error is not None:
            raise self.refresh_error
        if self.refresh_result is not None:
            return self.refresh_result
        return self._result()

    async def logout(self, config, logout_config):
        self.logout_calls.append((config, logout_config))
        if self.logout_error is not None:
            raise self.logout_error

    async def get_user_info(self, config):
        self.user_info_calls.append(config)
        if self.user_info is None:
            raise RuntimeError("User info is not set")
        return self.user_info
