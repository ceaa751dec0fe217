"""
Client-side OIDC session: holds the token triple, tracks expiry against the provider's
clock, refreshes on demand and keeps the secure store in step with memory.

Lifecycle: UNINITIALIZED -> init_state() -> AUTHENTICATED | UNAUTHENTICATED, then any of
login/register/update_token/logout, indefinitely. Every transition is broadcast as a
LifecycleEvent to on_state_changed() listeners.

Operations on one instance are not serialized; callers that may overlap them
(e.g. logout while update_token is in flight) must do so themselves.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable

from oidc_session.backend import (
    AuthorizationBackend,
    AuthorizeResult,
    EndSessionConfiguration,
    LogoutConfiguration,
    OidcConfiguration,
    RefreshConfiguration,
    UserInfoConfiguration,
)
from oidc_session.errors import (
    AuthorizationError,
    ConfigurationError,
    InvalidMinValidityError,
    MissingRefreshTokenError,
    NotAuthenticatedError,
    TokenDecodeError,
)
from oidc_session.events import EventBus, LifecycleEvent, StateChange
from oidc_session.store import PersistedState, SecureStore
from oidc_session.timing import CancelHandle, Clock, LoopScheduler, Scheduler, SystemClock
from oidc_session.token_codec import Claims, decode_token

DEFAULT_MIN_VALIDITY = 5
FORCE_REFRESH = -1


@dataclass
class Session:
    access_token: str | None = None
    access_token_claims: Claims | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    time_skew: float | None = None
    pending_expiry: CancelHandle | None = None

    @property
    def authenticated(self) -> bool:
        return self.access_token is not None

    def cancel_expiry(self) -> None:
        if self.pending_expiry is not None:
            self.pending_expiry.cancel()
            self.pending_expiry = None


def _check_min_validity(min_validity: Any) -> None:
    if (
        isinstance(min_validity, bool)
        or not isinstance(min_validity, (int, float))
        or not math.isfinite(min_validity)
    ):
        raise InvalidMinValidityError(f"Invalid minValidity: {min_validity!r}")


class SessionManager:
    """
    Authentication session for one user of one identity provider.

    store persists the token triple; backend performs the interactive and network
    exchanges. clock and scheduler default to wall-clock time and the running asyncio
    loop. logger defaults to this module's logger.
    """

    def __init__(
        self,
        config: OidcConfiguration,
        store: SecureStore,
        backend: AuthorizationBackend,
        *,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
        logger: logging.Logger | None = None,
    ):
        if not config.issuer:
            raise ConfigurationError("Issuer should not be empty")
        self.config = config
        self._store = store
        self._backend = backend
        self._clock = clock or SystemClock()
        self._scheduler = scheduler or LoopScheduler()
        self._log = logger or logging.getLogger(__name__)
        self._events = EventBus(logger=self._log)
        self._session = Session()

    # --- snapshots ---

    @property
    def access_token(self) -> str | None:
        return self._session.access_token

    @property
    def access_token_claims(self) -> Claims | None:
        return self._session.access_token_claims

    @property
    def id_token(self) -> str | None:
        return self._session.id_token

    @property
    def refresh_token(self) -> str | None:
        return self._session.refresh_token

    @property
    def time_skew(self) -> float | None:
        return self._session.time_skew

    def is_authenticated(self) -> bool:
        return self._session.authenticated

    def on_state_changed(self, listener: Callable[[StateChange], None]) -> Callable[[], None]:
        """Subscribe to lifecycle events. Returns the unsubscribe callable."""
        return self._events.subscribe(listener)

    # --- lifecycle ---

    async def init_state(self) -> None:
        """
        Restore the session from the secure store without contacting the provider.
        Expired tokens are restored too; TOKEN_EXPIRED fires at once so a listener can refresh.
        Always ends with INIT_COMPLETED.
        """
        try:
            state = await self._store.get()
        except Exception:
            self._log.error("Could not read stored session; starting unauthenticated", exc_info=True)
            state = None

        if state is not None:
            self._log.debug("Restoring session from secure store")
            claims = None
            if state.access_token:
                try:
                    claims = decode_token(state.access_token)
                except TokenDecodeError:
                    # The refresh token is kept so update_token() can still recover
                    self._log.warning("Stored access token is unreadable; starting unauthenticated", exc_info=True)
            self._session.time_skew = state.time_skew
            self._apply(state.access_token, claims, state.refresh_token, state.id_token)
        else:
            self._log.debug("No session found in secure store")

        self._emit(LifecycleEvent.INIT_COMPLETED)

    async def login(self) -> bool:
        """Run the interactive login. Returns False (and emits LOGIN_ERROR) on any failure."""
        request_start = self._clock.now()
        try:
            result = await self._backend.authorize(self.config)
            self._log.info("Login succeeded")
            await self._commit(result, self._midpoint(request_start))
        except Exception:
            self._log.error("Login failed", exc_info=True)
            self._emit(LifecycleEvent.LOGIN_ERROR)
            return False

        if result.access_token and result.refresh_token:
            self._emit(LifecycleEvent.LOGIN_SUCCESS)
        return True

    async def register(self) -> bool:
        """
        Show the provider's registration page and sign the new user in.
        A result without a refresh token means no session was created: returns False
        and emits nothing.
        """
        endpoint = self.config.registration_page_endpoint
        if not endpoint:
            raise ConfigurationError("registration_page_endpoint should not be empty")

        request_start = self._clock.now()
        try:
            result = await self._backend.register(self.config, endpoint)
            if result is not None and result.refresh_token:
                await self._commit(result, self._midpoint(request_start))
                self._log.info("Registration succeeded")
                self._emit(LifecycleEvent.REGISTER_SUCCESS)
                return True
            self._log.info("Registration finished without a session")
        except Exception:
            self._log.error("Registration failed", exc_info=True)
            self._emit(LifecycleEvent.REGISTER_ERROR)
        return False

    async def logout(self) -> bool:
        """
        End the provider session (best effort), then forget the tokens locally.
        The in-memory session is cleared even when the store reset fails; the return
        value and LOGOUT_SUCCESS / LOGOUT_ERROR only describe the store reset.
        """
        self._log.info("Logging out")
        if self._session.id_token:
            try:
                await self._backend.logout(
                    EndSessionConfiguration(
                        issuer=self.config.issuer,
                        client_id=self.config.client_id,
                        dangerously_allow_insecure_http_requests=self.config.dangerously_allow_insecure_http_requests,
                    ),
                    LogoutConfiguration(
                        id_token=self._session.id_token,
                        post_logout_redirect_url=self.config.post_logout_redirect_url or self.config.redirect_url,
                    ),
                )
            except Exception:
                self._log.error("Ending the provider session failed", exc_info=True)

        try:
            await self._clear()
        except Exception as e:
            self._log.error("Could not remove stored session", exc_info=True)
            self._emit(LifecycleEvent.LOGOUT_ERROR, e)
            return False

        self._emit(LifecycleEvent.LOGOUT_SUCCESS)
        return True

    async def update_token(self, min_validity: float = DEFAULT_MIN_VALIDITY) -> bool:
        """
        Refresh the tokens if the access token expires within min_validity seconds
        (always when min_validity is -1). Returns True only when a refresh happened.

        Raises MissingRefreshTokenError without a refresh token and InvalidMinValidityError
        for a non-finite min_validity. Every other failure returns False with REFRESH_ERROR;
        terminal provider errors also end the session.
        """
        if not self._session.refresh_token:
            raise MissingRefreshTokenError("Refresh token should not be null.")
        _check_min_validity(min_validity)

        if min_validity == FORCE_REFRESH:
            self._log.info("Refreshing token: forced")
        elif self._session.access_token_claims is None or self.is_token_expired(min_validity):
            self._log.info("Refreshing token: expired or expiring within %ss", min_validity)
        else:
            self._log.debug("Skipping refresh: token still valid")
            return False

        request_start = self._clock.now()
        try:
            result = await self._backend.refresh(
                self.config, RefreshConfiguration(refresh_token=self._session.refresh_token)
            )
            if result is not None and result.refresh_token is not None:
                await self._commit(result, self._midpoint(request_start))
                self._log.info("Token refreshed")
                self._emit(LifecycleEvent.REFRESH_SUCCESS)
                return True
            self._log.warning("Refresh returned no refresh token")
        except AuthorizationError as e:
            if e.is_terminal:
                self._log.warning("Refresh rejected (%s); ending session", e)
                await self._clear_quietly()
            else:
                self._log.warning("Refresh failed (%s); keeping session for retry", e)
        except Exception:
            self._log.warning("Refresh failed; keeping session for retry", exc_info=True)

        self._emit(LifecycleEvent.REFRESH_ERROR)
        return False

    async def get_user_info(self) -> dict[str, Any]:
        if self._session.access_token is None:
            raise NotAuthenticatedError("No access token")
        endpoint = self.config.userinfo_endpoint or f"{self.config.issuer}/protocol/openid-connect/userinfo"
        return await self._backend.get_user_info(
            UserInfoConfiguration(access_token=self._session.access_token, userinfo_endpoint=endpoint)
        )

    # --- expiry ---

    def is_token_expired(self, min_validity: float = 0) -> bool:
        """
        True if the access token expires within min_validity seconds, using the provider's
        clock. Fails closed: no token or an unknown clock skew count as expired.
        """
        _check_min_validity(min_validity)
        claims = self._session.access_token_claims
        if claims is None:
            return True
        if self._session.time_skew is None:
            self._log.warning("Cannot tell whether the token expired: clock skew unknown")
            return True
        remaining = claims.expires_at - math.ceil(self._clock.now() / 1000) + self._session.time_skew
        return remaining - min_validity < 0

    def get_expires_in(self) -> float | None:
        """Seconds until the access token expires by the provider's clock, or None."""
        claims = self._session.access_token_claims
        if claims is None or self._session.time_skew is None:
            return None
        return claims.expires_at - self._clock.now() / 1000 + self._session.time_skew

    def _schedule_expiry(self) -> None:
        expires_in = self.get_expires_in()
        if expires_in is None:
            self._log.warning("Clock skew unknown; token expiry not scheduled")
            return
        self._log.info(
            "Token expires in %d s (client/provider clock skew %s s)", round(expires_in), self._session.time_skew
        )
        if expires_in <= 0:
            self._emit(LifecycleEvent.TOKEN_EXPIRED)
        else:
            self._session.pending_expiry = self._scheduler.after(expires_in * 1000, self._on_expiry_timer)

    def _on_expiry_timer(self) -> None:
        self._session.pending_expiry = None
        self._emit(LifecycleEvent.TOKEN_EXPIRED)

    # --- state changes ---

    def _midpoint(self, request_start: float) -> float:
        """Local time assumed to match the provider's iat: halfway through the round trip."""
        return (request_start + self._clock.now()) / 2

    async def _commit(self, result: AuthorizeResult, time_local: float) -> None:
        """
        Decode, persist, then install a new token triple. Nothing is changed in memory
        unless the store accepted the triple, and nothing is stored that failed to decode.
        """
        # Empty strings are stored as absent, the same as in memory
        access_token = result.access_token or None
        id_token = result.id_token or None
        refresh_token = result.refresh_token or None

        claims = decode_token(access_token) if access_token else None
        time_skew = self._session.time_skew
        if claims is not None:
            time_skew = math.floor(time_local / 1000) - claims.issued_at

        await self._store.add(
            PersistedState(
                access_token=access_token,
                id_token=id_token,
                refresh_token=refresh_token,
                time_skew=time_skew,
            )
        )
        self._session.time_skew = time_skew
        self._apply(access_token, claims, refresh_token, id_token)

    def _apply(
        self,
        access_token: str | None,
        claims: Claims | None,
        refresh_token: str | None,
        id_token: str | None,
    ) -> None:
        self._session.cancel_expiry()
        self._session.refresh_token = refresh_token or None
        self._session.id_token = id_token or None
        if access_token and claims is not None:
            self._session.access_token = access_token
            self._session.access_token_claims = claims
            self._schedule_expiry()
        else:
            self._session.access_token = None
            self._session.access_token_claims = None

    async def _clear(self) -> None:
        self._log.debug("Clearing tokens and resetting secure store")
        self._apply(None, None, None, None)
        await self._store.reset()

    async def _clear_quietly(self) -> None:
        try:
            await self._clear()
        except Exception:
            self._log.error("Could not remove stored session", exc_info=True)

    def _emit(self, event: LifecycleEvent, error: BaseException | None = None) -> None:
        self._log.debug("Emitting %s", event.value)
        self._events.emit(StateChange(event, error))
