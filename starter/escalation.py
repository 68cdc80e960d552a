"""
Escalation when the directory has been unreachable for too long.

Losing directory visibility is fatal to the orchestrator but never to the
game processes it supervises. The policy only produces a signal; the
supervisor decides how to exit.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from .reconciliation import HealthClock

logger = logging.getLogger(__name__)

DEFAULT_OUTAGE_TOLERANCE = 3600.0

OUTAGE_EXIT_CODE = 1


@dataclass(frozen=True)
class EscalationSignal:
    reason: str
    down_since: float
    exit_code: int = OUTAGE_EXIT_CODE

    @property
    def operator_notice(self) -> str:
        return "This will not stop the server processes, check them manually"


class OutageEscalation:
    """Signals once when the last good query is older than ``tolerance``."""

    def __init__(self, tolerance: float = DEFAULT_OUTAGE_TOLERANCE):
        self.tolerance = tolerance
        self._signalled = False

    @property
    def signalled(self) -> bool:
        return self._signalled

    def check(self, health: HealthClock, now: float) -> Optional[EscalationSignal]:
        if self._signalled:
            return None
        if now - health.last_successful_query <= self.tolerance:
            return None

        self._signalled = True
        minutes = int(self.tolerance // 60)
        return EscalationSignal(
            reason=f"Could not reach the directory service for {minutes} minutes",
            down_since=health.last_successful_query,
        )
