"""
Top-level supervisor.

Wires configuration, the directory client, the reconciliation loop, the
supervised servers and the management API together, and owns the only
decision to end the process.
"""
import os
import threading
import time
import logging
from typing import Callable, List, Optional

from .config import get_config
from .directory_client import DirectoryClient
from .escalation import EscalationSignal, OutageEscalation
from .loop import OrchestrationLoop
from .public_data import PublicDataFetcher
from .reconciliation import ReconciliationState
from .servers import SERVER_TYPE_LOCAL, SupervisedServer, build_server
from .starter_config import load_config
from .web import create_app, serve_in_background

logger = logging.getLogger(__name__)

VERSION = '1.0.2'

SILENT_MARKER = 'silent'


class Starter:

    def __init__(
        self,
        work_dir: str,
        cfg=None,
        client: DirectoryClient = None,
        clock: Callable[[], float] = time.time,
        serve_web: bool = True,
    ):
        self.work_dir = work_dir
        self.cfg = cfg or get_config()
        self.clock = clock
        self.serve_web = serve_web
        self.version = VERSION
        self.online_since = clock()
        self.exit_code: Optional[int] = None
        self._done = threading.Event()
        self._muted_webhooks = {}

        os.makedirs(self.servers_dir, exist_ok=True)
        logger.info(f"fleet-starter v{self.version}")
        logger.info(f"work dir: {work_dir}")

        starter_config = load_config(work_dir)
        self.owner = starter_config['owner']
        self.web_port = starter_config['webserverPort'] or self.cfg.WEB_PORT

        self.client = client or DirectoryClient.from_config(self.cfg, clock=clock)
        self.loop = OrchestrationLoop(
            self.client,
            state=ReconciliationState.create(now=clock(), grace_cycles=self.cfg.GRACE_CYCLES),
            escalation=OutageEscalation(tolerance=self.cfg.OUTAGE_TOLERANCE),
            interval=self.cfg.TICK_INTERVAL,
            clock=clock,
            on_fatal=self.handle_fatal,
        )
        self.public_data = PublicDataFetcher(
            url=self.cfg.PUBLIC_IP_URL, ttl=self.cfg.PUBLIC_DATA_TTL, clock=clock
        )

        for entry in starter_config['servers']:
            self.add_server(build_server(entry, self.servers_dir))

        self.web = create_app(self)

    @property
    def data_dir(self) -> str:
        return os.path.join(self.work_dir, 'starterData')

    @property
    def servers_dir(self) -> str:
        return os.path.join(self.data_dir, 'servers')

    @property
    def silent_marker_path(self) -> str:
        return os.path.join(self.work_dir, SILENT_MARKER)

    @property
    def servers(self) -> List[SupervisedServer]:
        return self.loop.servers

    @property
    def local_servers(self) -> List[SupervisedServer]:
        return [s for s in self.servers if s.server_type == SERVER_TYPE_LOCAL]

    def add_server(self, server: SupervisedServer):
        server.attach(self.loop)
        self.loop.add_server(server)

    def get_server(self, server_id: str) -> Optional[SupervisedServer]:
        for server in self.servers:
            if server.server_id == server_id:
                return server
        return None

    # ==================== Lifecycle ====================

    def start(self) -> bool:
        """
        Bring the fleet up and start the reconciliation loop.

        Returns False when there is nothing to supervise.
        """
        if not self.servers:
            logger.warning("No servers configured, exiting")
            return False

        self.public_data.fetch()
        self._mute_after_silent_shutdown()

        for server in self.servers:
            server.init()

        if self.serve_web:
            serve_in_background(self.web, self.cfg.WEB_HOST, self.web_port)

        for server in self.servers:
            server.start()
        logger.info("Server processes starting...")

        self.loop.start()

        timer = threading.Timer(self.cfg.SILENT_MARKER_TTL, self._clear_silent_marker)
        timer.daemon = True
        timer.start()
        return True

    def _mute_after_silent_shutdown(self):
        """Keep webhooks quiet while servers come back after a silent shutdown."""
        if not os.path.exists(self.silent_marker_path):
            return
        logger.info("Previous shutdown was silent, webhooks muted during startup")
        for server in self.servers:
            self._muted_webhooks[server.server_id] = server.webhook
            server.webhook = ''

    def _clear_silent_marker(self):
        if os.path.exists(self.silent_marker_path):
            os.remove(self.silent_marker_path)
        for server in self.servers:
            webhook = self._muted_webhooks.pop(server.server_id, None)
            if webhook is not None:
                server.webhook = webhook

    def shutdown(self, silent: bool = False):
        """
        Stop local servers and end the process after the shutdown grace.

        A silent shutdown blanks every webhook and leaves a marker so the
        next start does not announce the restart either.
        """
        logger.info("Shutting down servers and starter")

        if silent:
            for server in self.servers:
                server.webhook = ''
            with open(self.silent_marker_path, 'wb'):
                pass

        for server in self.local_servers:
            server.stop()

        timer = threading.Timer(self.cfg.SHUTDOWN_GRACE, self._finish, args=(0,))
        timer.daemon = True
        timer.start()

    def handle_fatal(self, signal: EscalationSignal):
        """Act on an escalation from the loop: log loudly and exit non-zero."""
        logger.critical(f"{signal.reason}, quitting")
        logger.critical(signal.operator_notice)
        self._finish(signal.exit_code)

    def _finish(self, exit_code: int):
        if self._done.is_set():
            return
        self.loop.stop()
        self.client.close()
        self.exit_code = exit_code
        if exit_code == 0:
            logger.info("Bye! Thanks for using fleet-starter")
        self._done.set()

    def wait(self, timeout: float = None) -> Optional[int]:
        """Block until the supervisor finishes; returns the exit code."""
        self._done.wait(timeout)
        return self.exit_code

    def run_forever(self, poll: float = 1.0) -> int:
        # short waits keep the main thread responsive to signal handlers
        while not self._done.wait(poll):
            pass
        return self.exit_code
