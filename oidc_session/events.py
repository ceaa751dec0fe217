"""
Lifecycle events and the in-process bus that fans them out to subscribers.
Delivery is synchronous, in subscription order; one failing listener never blocks the others.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable


class LifecycleEvent(str, Enum):
    REFRESH_SUCCESS = "refreshSuccess"
    REFRESH_ERROR = "refreshError"
    TOKEN_EXPIRED = "tokenExpired"
    LOGIN_SUCCESS = "loginSuccess"
    LOGIN_ERROR = "loginError"
    LOGOUT_SUCCESS = "logoutSuccess"
    LOGOUT_ERROR = "logoutError"
    REGISTER_SUCCESS = "registerSuccess"
    REGISTER_ERROR = "registerError"
    INIT_COMPLETED = "InitCompleted"


@dataclass(frozen=True)
class StateChange:
    event: LifecycleEvent
    error: BaseException | None = None


Listener = Callable[[StateChange], None]


class _Subscription:
    __slots__ = ("listener", "active")

    def __init__(self, listener: Listener):
        self.listener = listener
        self.active = True


class EventBus:
    """Single-channel publish/subscribe. subscribe() returns the matching unsubscribe callable."""

    def __init__(self, logger: logging.Logger | None = None):
        self._subscriptions: list[_Subscription] = []
        self._log = logger or logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        subscription = _Subscription(listener)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if not subscription.active:
                return
            subscription.active = False
            self._subscriptions = [s for s in self._subscriptions if s is not subscription]

        return unsubscribe

    def emit(self, change: StateChange) -> None:
        # Snapshot: listeners added during delivery do not see this event
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.listener(change)
            except Exception:
                self._log.exception("Listener for %s failed", change.event.value)
