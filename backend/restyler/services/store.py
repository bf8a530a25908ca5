import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ..schemas import PublishedForm


class PublishStore:
    """In-memory published-form store; records expire after ``ttl_seconds``.

    Data is lost on restart. Keys are fresh random ids, so writers never
    contend for the same record.
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._records: Dict[str, Tuple[float, PublishedForm]] = {}
        self._lock = threading.Lock()

    def save(self, record_id: str, record: PublishedForm) -> None:
        with self._lock:
            self._purge()
            self._records[record_id] = (self._clock() + self.ttl_seconds, record)

    def get(self, record_id: str) -> Optional[PublishedForm]:
        with self._lock:
            entry = self._records.get(record_id)
            if entry is None:
                return None
            expires_at, record = entry
            if expires_at <= self._clock():
                del self._records[record_id]
                return None
            return record

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._records)

    def _purge(self) -> None:
        now = self._clock()
        for key in [k for k, (exp, _) in self._records.items() if exp <= now]:
            del self._records[key]
