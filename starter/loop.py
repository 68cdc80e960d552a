"""
The fixed-interval reconciliation loop.

Each tick refreshes the directory session, queries the game list, merges
it into the reconciliation state and then lets every supervised server run
its own update, whether or not the directory answered.
"""
import time
import logging
from concurrent.futures import Future
from typing import Callable, List, Optional, Sequence

from shared.state_machine import LoopState, LoopStateMachine
from .directory_client import AuthFailure, DirectoryClient, QueryFailure, RemoteServerRecord
from .escalation import EscalationSignal, OutageEscalation
from .reconciliation import ReconciliationState
from .scheduler import RepeatingTask

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 4.0


class OrchestrationLoop:

    def __init__(
        self,
        client: DirectoryClient,
        state: ReconciliationState = None,
        servers: Sequence = None,
        escalation: OutageEscalation = None,
        interval: float = DEFAULT_TICK_INTERVAL,
        clock: Callable[[], float] = time.time,
        on_fatal: Callable[[EscalationSignal], None] = None,
    ):
        self.client = client
        self.clock = clock
        self.state = state or ReconciliationState.create(now=clock())
        self.servers: List = list(servers or [])
        self.escalation = escalation or OutageEscalation()
        self.interval = interval
        self.on_fatal = on_fatal
        self.state_machine = LoopStateMachine()
        self.ticks = 0
        self._task: Optional[RepeatingTask] = None

    # ==================== Scheduling ====================

    def start(self):
        """Schedule ticks every ``interval`` seconds."""
        if self._task is not None:
            return
        self._task = RepeatingTask(self.interval, self.tick, name='reconciliation-loop')
        self._task.start()
        logger.info(f"Reconciliation loop started (every {self.interval:g}s)")

    def stop(self, wait: bool = False):
        if self._task is None:
            return
        self._task.cancel(wait=wait, timeout=max(self.interval, 5.0))
        self._task = None
        logger.info("Reconciliation loop stopped")

    @property
    def is_running(self) -> bool:
        return self._task is not None and self._task.is_running

    # ==================== Tick ====================

    def tick(self) -> bool:
        """
        Run one reconciliation cycle.

        Returns:
            True when the directory query succeeded this cycle.
        """
        tracked = self.state_machine.can_transition('tick')
        if tracked:
            self.state_machine.transition('tick')
        else:
            logger.warning("Previous tick still running, starting an overlapping tick")

        try:
            ok = self._refresh_directory()
            self._update_servers()
        finally:
            self.ticks += 1
            if tracked:
                self.state_machine.transition('settle')

        if not ok:
            self._check_escalation()
        return ok

    def _refresh_directory(self) -> bool:
        try:
            if self.client.ensure_authenticated():
                self.state.record_auth(self.client.state.last_auth)
        except AuthFailure as e:
            logger.warning(str(e))

        try:
            records = self.client.query_games(self.client.identities)
        except QueryFailure as e:
            if e.timed_out:
                logger.warning("Directory server query failed (timeout)")
            else:
                logger.warning(f"Directory server query failed: {e}")
            return False

        self.state.apply(records, self.clock())
        return True

    def _update_servers(self):
        for server in self.servers:
            try:
                server.update()
            except Exception:
                logger.exception(f"Update of server {server.server_id} failed")

    def _check_escalation(self):
        signal = self.escalation.check(self.state.health, self.clock())
        if signal is None:
            return
        if self.on_fatal is None:
            logger.critical(f"{signal.reason}; no supervisor registered to act on it")
            return
        self.on_fatal(signal)

    # ==================== Server registry ====================

    def add_server(self, server):
        self.client.add(server.server_id)
        self.servers.append(server)

    def record_for(self, identity: str) -> Optional[RemoteServerRecord]:
        return self.state.get(identity)

    def heartbeat(self, record: RemoteServerRecord) -> Future:
        return self.client.heartbeat_async(record)

    def deregister(self, identity: str) -> Future:
        """Start the grace countdown and tell the directory in the background."""
        records = self.state.records_for(identity)
        self.state.begin_grace(identity)
        logger.info(f"Deregistering {identity} ({len(records)} lobbies)")
        return self.client.deregister_async(identity, records)

    @property
    def loop_state(self) -> LoopState:
        return self.state_machine.state
