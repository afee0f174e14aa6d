from threading import Lock

from allocation.core.config import get_settings
from allocation.core.exceptions import RosterNotLoadedError
from allocation.schemas.roster import Roster
from allocation.services.session import AllocationSession


class SessionStore:
    """Holds the single in-process allocation session served by the API."""

    def __init__(self) -> None:
        self._session: AllocationSession | None = None
        self._lock = Lock()

    def load(self, roster: Roster) -> AllocationSession:
        with self._lock:
            if self._session is None:
                self._session = AllocationSession(roster, get_settings())
            else:
                self._session.load(roster)
            return self._session

    def get(self) -> AllocationSession:
        with self._lock:
            if self._session is None:
                raise RosterNotLoadedError()
            return self._session

    def clear(self) -> None:
        with self._lock:
            self._session = None


session_store = SessionStore()


def get_session_store() -> SessionStore:
    return session_store


def get_session() -> AllocationSession:
    return session_store.get()
