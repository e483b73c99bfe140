"""Per-device rotation sessions, kept in memory for the process lifetime."""

from __future__ import annotations

from dataclasses import dataclass, replace
from threading import RLock
from time import time
from typing import Dict, List, Optional


@dataclass(frozen=True)
class DeviceSession:
    """Rotation cursor of one device. ``cursor`` is None until the first image."""

    key: str
    cursor: Optional[int] = None
    last_update: float = 0.0
    request_count: int = 0


class SessionTable:
    """Lock-guarded map from session key to :class:`DeviceSession`.

    Sessions are immutable snapshots; every write replaces the stored value
    under the lock, so a reader never sees a half-updated cursor.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._sessions: Dict[str, DeviceSession] = {}

    def session_for(self, key: str) -> DeviceSession:
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = DeviceSession(key=key)
                self._sessions[key] = session
            return session

    def advance(self, key: str, cursor: Optional[int], timestamp: Optional[float] = None) -> DeviceSession:
        stamp = time() if timestamp is None else timestamp
        with self._lock:
            current = self._sessions.get(key) or DeviceSession(key=key)
            updated = replace(
                current,
                cursor=cursor,
                last_update=stamp,
                request_count=current.request_count + 1
            )
            self._sessions[key] = updated
            return updated

    def get(self, key: str) -> Optional[DeviceSession]:
        with self._lock:
            return self._sessions.get(key)

    def snapshot(self) -> List[DeviceSession]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda session: session.key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
