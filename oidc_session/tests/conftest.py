"""
Pytest fixtures for oidc_session: a SessionManager wired to fakes, sharing one fake clock.
"""
import pytest

from oidc_session.session_manager import SessionManager
from oidc_session.tests.fakes import (
    FakeBackend,
    FakeClock,
    FakeScheduler,
    FakeStore,
    make_config,
    make_token,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return FakeScheduler(clock)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def backend(clock):
    b = FakeBackend(access_token=make_token(), refresh_token=make_token(typ="Refresh"), id_token=make_token(typ="ID"))
    b.clock = clock
    return b


@pytest.fixture
def manager(store, backend, clock, scheduler):
    return SessionManager(make_config(), store, backend, clock=clock, scheduler=scheduler)


@pytest.fixture
def events(manager):
    """Every event the manager emits, in order."""
    received = []
    unsubscribe = manager.on_state_changed(lambda change: received.append(change))
    yield received
    unsubscribe()
