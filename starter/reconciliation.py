"""
In-memory view of the directory, reconciled against local intent.

The directory is eventually consistent: a server we just deregistered can
still be listed for a few cycles. Identities under a grace period are kept
out of the merged snapshot until the directory stops listing them or their
counter runs out.

Every field is replaced as a whole value, never edited in place, so two
overlapping ticks cannot leave a half-applied result; the last one wins.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping, Optional, Tuple
import logging
import threading
import time

from .directory_client import RemoteServerRecord

logger = logging.getLogger(__name__)

DEFAULT_GRACE_CYCLES = 4

GracePeriod = Mapping[str, int]


def merge(
    remote_snapshot: Iterable[RemoteServerRecord],
    grace: GracePeriod
) -> Tuple[Tuple[RemoteServerRecord, ...], Dict[str, int]]:
    """
    Filter a fresh directory snapshot through the grace counters.

    Returns the records to expose and the grace mapping for the next cycle.
    The input mapping is not modified.
    """
    remaining = dict(grace)
    reported = set()
    merged = []

    for record in remote_snapshot:
        game_id = record.game_id
        reported.add(game_id)
        counter = remaining.get(game_id)
        if counter is not None and counter > 0:
            remaining[game_id] = counter - 1
            logger.debug(f"Suppressing directory echo of {game_id} ({counter - 1} cycles left)")
            continue
        if counter is not None:
            del remaining[game_id]
        merged.append(record)

    for game_id in list(remaining):
        if game_id not in reported:
            del remaining[game_id]

    return tuple(merged), remaining


@dataclass(frozen=True)
class HealthClock:
    last_successful_query: float
    last_auth: Optional[float] = None


@dataclass
class ReconciliationState:
    health: HealthClock
    snapshot: Tuple[RemoteServerRecord, ...] = ()
    grace: Dict[str, int] = field(default_factory=dict)
    grace_cycles: int = DEFAULT_GRACE_CYCLES
    _grace_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def create(cls, now: float = None, grace_cycles: int = DEFAULT_GRACE_CYCLES) -> "ReconciliationState":
        """Start the outage clock at ``now``; a fresh process counts as healthy."""
        if now is None:
            now = time.time()
        return cls(health=HealthClock(last_successful_query=now), grace_cycles=grace_cycles)

    def begin_grace(self, identity: str, cycles: int = None):
        if cycles is None:
            cycles = self.grace_cycles
        with self._grace_lock:
            grace = dict(self.grace)
            grace[identity] = cycles
            self.grace = grace

    def apply(self, remote_snapshot: Iterable[RemoteServerRecord], now: float) -> Tuple[RemoteServerRecord, ...]:
        """Merge a successfully parsed query result and mark the query healthy."""
        # a grace period started mid-merge must survive the write-back
        with self._grace_lock:
            snapshot, grace = merge(remote_snapshot, self.grace)
            self.snapshot = snapshot
            self.grace = grace
        self.health = replace(self.health, last_successful_query=now)
        return snapshot

    def record_auth(self, now: float):
        self.health = replace(self.health, last_auth=now)

    def get(self, identity: str) -> Optional[RemoteServerRecord]:
        for record in self.snapshot:
            if record.game_id == identity:
                return record
        return None

    def records_for(self, identity: str) -> Tuple[RemoteServerRecord, ...]:
        return tuple(r for r in self.snapshot if r.game_id == identity)
