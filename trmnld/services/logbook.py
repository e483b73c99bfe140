"""Bounded, in-memory record of device log submissions."""

from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Deque, List, Optional

from ..models import LogAccepted


class DeviceLogBook:
    def __init__(self, maxlen: int = 200) -> None:
        self._lock = Lock()
        self._records: Deque[LogAccepted] = deque(maxlen=max(1, maxlen))

    def append(self, record: LogAccepted) -> None:
        with self._lock:
            self._records.append(record)

    def recent(self, limit: Optional[int] = None) -> List[LogAccepted]:
        with self._lock:
            records = list(self._records)
        if limit is not None and limit >= 0:
            return records[-limit:] if limit else []
        return records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
