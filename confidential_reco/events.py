"""
ConfidentialReco Event Log

Observable notifications for external consumers and the audit trail.
Each transition fires exactly one event. Entries are hash-chained so an
exported log can be checked for gaps or edits.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .hashing import canonicalize, chain_entry_hash, sha256_hash

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    PROFILE_SUBMITTED = "ProfileSubmitted"
    DECRYPTION_REQUESTED = "DecryptionRequested"
    RECOMMENDATION_GENERATED = "RecommendationGenerated"
    RESULT_REVEALED = "ResultRevealed"


@dataclass(frozen=True)
class Event:
    """Immutable record of one state transition."""
    seq: int
    event_type: EventType
    data: Dict[str, Any]
    timestamp: datetime
    payload_hash: str
    prev_entry_hash: Optional[str]
    entry_hash: str

    def payload(self) -> Dict[str, Any]:
        return {"seq": self.seq, "event_type": self.event_type.value, "data": self.data}

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.payload(),
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
            "payload_hash": self.payload_hash,
            "prev_entry_hash": self.prev_entry_hash,
            "entry_hash": self.entry_hash,
        }


Listener = Callable[[Event], None]


class EventLog:
    """
    In-memory, append-only event log.

    Listeners are called synchronously after the entry is appended. A
    failing listener is logged and does not affect other listeners or the
    caller, since the state change it reports has already been committed.
    """

    def __init__(self, max_records: int = 10000):
        self._records: List[Event] = []
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self._max_records = max_records
        self._seq = 0
        self._head: Optional[str] = None

    def emit(self, event_type: EventType, **data: Any) -> Event:
        with self._lock:
            self._seq += 1
            body = {"seq": self._seq, "event_type": event_type.value, "data": data}
            payload_hash = sha256_hash(canonicalize(body))
            entry_hash = chain_entry_hash(self._head, payload_hash)
            event = Event(
                seq=self._seq,
                event_type=event_type,
                data=data,
                timestamp=datetime.now(timezone.utc),
                payload_hash=payload_hash,
                prev_entry_hash=self._head,
                entry_hash=entry_hash,
            )
            self._head = entry_hash
            self._records.append(event)
            if len(self._records) > self._max_records:
                self._records = self._records[-self._max_records:]
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s #%d", event_type.value, event.seq)
        return event

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.remove(listener)

    def query(
        self,
        event_type: Optional[EventType] = None,
        since_seq: int = 0
    ) -> List[Event]:
        with self._lock:
            records = self._records[:]

        if event_type:
            records = [r for r in records if r.event_type == event_type]
        if since_seq:
            records = [r for r in records if r.seq > since_seq]
        return records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def verify_chain(events: List[Event]) -> bool:
    """
    Recompute payload and entry hashes for a contiguous run of events.

    Returns False on the first entry whose hashes or back-link do not match.
    """
    prev: Optional[str] = events[0].prev_entry_hash if events else None
    for event in events:
        if event.prev_entry_hash != prev:
            return False
        if sha256_hash(canonicalize(event.payload())) != event.payload_hash:
            return False
        if chain_entry_hash(prev, event.payload_hash) != event.entry_hash:
            return False
        prev = event.entry_hash
    return True
