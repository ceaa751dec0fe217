"""
Secure store contract and two implementations.
MemoryStore keeps a single JSON document, the way a platform keychain holds one secret.
SqlAlchemyStore keeps one row per key in any SQLAlchemy database.
Neither encrypts; put encryption at the storage layer if the threat model needs it.
"""
import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from oidc_session.database import init_db
from oidc_session.errors import StorageError
from oidc_session.models import StoredSession

logger = logging.getLogger(__name__)

DEFAULT_STORE_KEY = "oidc-auth"


@dataclass(frozen=True)
class PersistedState:
    access_token: str | None
    id_token: str | None
    refresh_token: str | None
    time_skew: float | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersistedState":
        return cls(
            access_token=data.get("access_token"),
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            time_skew=data.get("time_skew"),
        )


class SecureStore(Protocol):
    async def get(self) -> PersistedState | None: ...

    async def add(self, state: PersistedState) -> None: ...

    async def reset(self) -> None: ...


class MemoryStore:
    def __init__(self, state: PersistedState | None = None):
        self._blob: str | None = json.dumps(state.to_dict()) if state is not None else None

    async def get(self) -> PersistedState | None:
        if self._blob is None:
            return None
        return PersistedState.from_dict(json.loads(self._blob))

    async def add(self, state: PersistedState) -> None:
        self._blob = json.dumps(state.to_dict())

    async def reset(self) -> None:
        self._blob = None


class SqlAlchemyStore:
    """Blocking database work runs in a worker thread so the event loop is never stalled."""

    def __init__(self, engine: Engine, key: str = DEFAULT_STORE_KEY):
        self.key = key
        self._sessionmaker = sessionmaker(autoflush=False, bind=engine)
        init_db(engine)

    async def get(self) -> PersistedState | None:
        return await asyncio.to_thread(self._get)

    async def add(self, state: PersistedState) -> None:
        await asyncio.to_thread(self._put, state)

    async def reset(self) -> None:
        await asyncio.to_thread(self._delete)

    def _get(self) -> PersistedState | None:
        try:
            with self._sessionmaker() as db:
                row = db.query(StoredSession).filter(StoredSession.key == self.key).first()
                if row is None:
                    return None
                return PersistedState(
                    access_token=row.access_token,
                    id_token=row.id_token,
                    refresh_token=row.refresh_token,
                    time_skew=row.time_skew,
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read session {self.key!r}") from e

    def _put(self, state: PersistedState) -> None:
        # Single transaction: either the whole triple is replaced or nothing is
        try:
            with self._sessionmaker() as db:
                row = db.query(StoredSession).filter(StoredSession.key == self.key).first()
                if row is None:
                    row = StoredSession(key=self.key)
                    db.add(row)
                row.access_token = state.access_token
                row.id_token = state.id_token
                row.refresh_token = state.refresh_token
                row.time_skew = state.time_skew
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not save session {self.key!r}") from e
        logger.debug("Saved session %r", self.key)

    def _delete(self) -> None:
        try:
            with self._sessionmaker() as db:
                deleted = db.query(StoredSession).filter(StoredSession.key == self.key).delete()
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not reset session {self.key!r}") from e
        logger.debug("Reset session %r (%d row(s) removed)", self.key, deleted)
