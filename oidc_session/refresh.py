"""
Keeps a session fresh: whenever the manager reports TOKEN_EXPIRED, update_token() runs
as a task on the current event loop. Expiry notices arriving while a refresh is already
running are folded into that refresh; if the token is still expired once it finishes,
one more refresh is attempted.
"""
import asyncio
import logging

from oidc_session.errors import OidcSessionError
from oidc_session.events import LifecycleEvent, StateChange
from oidc_session.session_manager import DEFAULT_MIN_VALIDITY, SessionManager

logger = logging.getLogger(__name__)


class AutoRefresher:
    def __init__(self, manager: SessionManager, min_validity: float = DEFAULT_MIN_VALIDITY):
        self.manager = manager
        self.min_validity = min_validity
        self._task: asyncio.Task | None = None
        self._unsubscribe = None
        self._expired_again = False

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.manager.on_state_changed(self._on_state_changed)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the refresh in flight, if any."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _on_state_changed(self, change: StateChange) -> None:
        if change.event is not LifecycleEvent.TOKEN_EXPIRED:
            return
        if self._task is not None and not self._task.done():
            logger.debug("Refresh already running; expiry notice deferred")
            self._expired_again = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Token expired outside an event loop; not refreshing")
            return
        self._task = loop.create_task(self._refresh())

    async def _refresh(self) -> None:
        self._expired_again = False
        await self._update()
        if not self._expired_again:
            return
        # At most one retry per refresh
        self._expired_again = False
        if self.manager.refresh_token and self.manager.is_token_expired(self.min_validity):
            logger.info("Token expired again during refresh; retrying once")
            await self._update()

    async def _update(self) -> None:
        try:
            refreshed = await self.manager.update_token(self.min_validity)
        except OidcSessionError as e:
            logger.warning("Automatic refresh not possible: %s", e)
            return
        logger.debug("Automatic refresh %s", "succeeded" if refreshed else "did not renew the token")
