"""
Supervised game servers.

Local servers are processes this host launches and stops; remote servers
are hosted elsewhere and only tracked through the directory.
"""
import os
import subprocess
import logging
from typing import List, Optional

import requests

from shared.bounded_call import fire_and_forget

logger = logging.getLogger(__name__)

SERVER_TYPE_LOCAL = 'local'
SERVER_TYPE_REMOTE = 'remote'
SERVER_TYPES = (SERVER_TYPE_LOCAL, SERVER_TYPE_REMOTE)


class SupervisedServer:
    """Common interface the reconciliation loop drives every tick."""

    server_type: str = None

    def __init__(self, server_id: str, name: str = None, webhook: str = ''):
        self.server_id = server_id
        self.name = name or server_id
        self.webhook = webhook
        self.loop = None
        self.record = None

    def attach(self, loop):
        self.loop = loop

    def init(self):
        pass

    def start(self):
        pass

    def stop(self):
        pass

    def update(self):
        """Re-read this server's entry from the merged directory snapshot."""
        if self.loop is not None:
            self.record = self.loop.record_for(self.server_id)

    @property
    def online(self) -> bool:
        return self.record is not None

    def notify(self, message: str):
        """Post ``message`` to the server's webhook, if one is configured."""
        if not self.webhook:
            return None
        executor = self.loop.client.executor if self.loop is not None else None
        return fire_and_forget(
            executor,
            requests.post,
            self.webhook,
            json={'content': f"[{self.name}] {message}"},
            timeout=5,
            description=f"Webhook for {self.server_id}",
        )

    def to_dict(self) -> dict:
        return {
            'id': self.server_id,
            'name': self.name,
            'type': self.server_type,
            'online': self.online,
            'players': len(self.record.player_user_ids) if self.record else 0,
            'max_players': self.record.tags.max_players if self.record else None,
        }


class RemoteServer(SupervisedServer):
    server_type = SERVER_TYPE_REMOTE


class LocalServer(SupervisedServer):
    """A game server process launched and restarted by this host."""

    server_type = SERVER_TYPE_LOCAL

    def __init__(
        self,
        server_id: str,
        command: List[str],
        name: str = None,
        webhook: str = '',
        work_dir: str = None,
        port: int = None,
        stop_timeout: float = 15.0,
    ):
        super().__init__(server_id, name=name, webhook=webhook)
        self.command = list(command)
        self.work_dir = work_dir
        self.port = port
        self.stop_timeout = stop_timeout
        self.process: Optional[subprocess.Popen] = None
        self.should_run = False
        self.restarts = 0
        self._log_file = None
        self._heartbeat = None

    @property
    def log_path(self) -> Optional[str]:
        if not self.work_dir:
            return None
        return os.path.join(self.work_dir, 'server.log')

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def init(self):
        if self.work_dir:
            os.makedirs(self.work_dir, exist_ok=True)

    def _spawn(self):
        env = os.environ.copy()
        env['SERVER_ID'] = self.server_id
        if self.port is not None:
            env['PORT'] = str(self.port)

        if self.log_path and self._log_file is None:
            self._log_file = open(self.log_path, 'a')
        output = self._log_file or subprocess.DEVNULL

        self.process = subprocess.Popen(
            self.command,
            cwd=self.work_dir or None,
            env=env,
            stdout=output,
            stderr=output,
            start_new_session=True
        )
        logger.info(f"Started {self.name} (pid {self.process.pid})")

    def start(self):
        self.should_run = True
        if self.running:
            return
        try:
            self._spawn()
        except OSError as e:
            logger.error(f"Failed to start {self.name}: {e}")
            self.notify(f"failed to start: {e}")

    def stop(self):
        self.should_run = False
        if self.loop is not None:
            self.loop.deregister(self.server_id)

        if self.running:
            logger.info(f"Stopping {self.name}")
            self.process.terminate()
            try:
                self.process.wait(timeout=self.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"{self.name} did not stop in {self.stop_timeout:g}s, killing it")
                self.process.kill()

        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    def update(self):
        super().update()

        if self.should_run and not self.running:
            code = self.process.returncode if self.process is not None else None
            logger.warning(f"{self.name} exited with code {code}, restarting")
            self.notify(f"exited with code {code}, restarting")
            self.restarts += 1
            self.start()
            return

        if self.running and self.record is not None and self.loop is not None:
            # one heartbeat in flight per server
            if self._heartbeat is not None and not self._heartbeat.done():
                return
            self._heartbeat = self.loop.heartbeat(self.record)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['running'] = self.running
        data['restarts'] = self.restarts
        return data


def build_server(entry: dict, servers_dir: str = None) -> SupervisedServer:
    """Create a server from one validated ``servers`` entry of starter.json."""
    server_type = entry.get('type', SERVER_TYPE_LOCAL)
    if server_type == SERVER_TYPE_REMOTE:
        return RemoteServer(entry['id'], name=entry.get('name'), webhook=entry.get('webhook', ''))

    work_dir = os.path.join(servers_dir, entry['id'].replace(':', '_')) if servers_dir else None
    return LocalServer(
        entry['id'],
        command=entry['command'],
        name=entry.get('name'),
        webhook=entry.get('webhook', ''),
        work_dir=work_dir,
        port=entry.get('port'),
    )
