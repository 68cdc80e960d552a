"""
Bootstrap and validation of ``starter.json``.

Every problem here is fatal and happens before the reconciliation loop
starts, so it is reported as ConfigError rather than logged and skipped.
"""
import json
import os
import logging
from typing import Any, Dict

from .servers import SERVER_TYPE_LOCAL, SERVER_TYPES

logger = logging.getLogger(__name__)

CONFIG_FILENAME = 'starter.json'

DEFAULT_STARTER_CONFIG = {
    'owner': '',
    'webserverPort': 5000,
    'servers': [
        {
            'id': '127.0.0.1:8777',
            'name': 'My Server',
            'type': SERVER_TYPE_LOCAL,
            'port': 8777,
            'command': ['./AstroServer.exe', '-log'],
            'webhook': '',
        }
    ],
}


class ConfigError(Exception):
    def __init__(self, message: str, path: str = None, created: bool = False):
        self.path = path
        self.created = created
        super().__init__(message)


def write_default_config(path: str) -> None:
    with open(path, 'w') as f:
        json.dump(DEFAULT_STARTER_CONFIG, f, indent=4)


def _validate_server(entry: Any, index: int, seen: set) -> Dict[str, Any]:
    if not isinstance(entry, dict):
        raise ConfigError(f"servers[{index}] must be an object")

    server_id = entry.get('id')
    if not isinstance(server_id, str) or not server_id:
        raise ConfigError(f"servers[{index}] is missing an 'id'")
    if server_id in seen:
        raise ConfigError(f"Duplicate server id '{server_id}'")
    seen.add(server_id)

    server_type = entry.get('type', SERVER_TYPE_LOCAL)
    if server_type not in SERVER_TYPES:
        raise ConfigError(
            f"servers[{index}] has unknown type '{server_type}' (expected one of {', '.join(SERVER_TYPES)})"
        )

    if server_type == SERVER_TYPE_LOCAL:
        command = entry.get('command')
        if isinstance(command, str):
            command = [command]
        if not command or not all(isinstance(part, str) for part in command):
            raise ConfigError(f"Local server '{server_id}' needs a 'command'")
        entry = dict(entry, command=command)

    port = entry.get('port')
    if port is not None and not isinstance(port, int):
        raise ConfigError(f"Server '{server_id}' has a non-numeric port")

    return dict(entry, type=server_type)


def parse_config(data: Any) -> Dict[str, Any]:
    """Validate a decoded starter.json document and fill in defaults."""
    if not isinstance(data, dict):
        raise ConfigError("starter.json must contain a JSON object")

    servers = data.get('servers', [])
    if not isinstance(servers, list):
        raise ConfigError("'servers' must be a list")

    seen = set()
    parsed_servers = [_validate_server(entry, i, seen) for i, entry in enumerate(servers)]

    port = data.get('webserverPort')
    if port is not None and not isinstance(port, int):
        raise ConfigError("'webserverPort' must be a number")

    return {
        'owner': data.get('owner', ''),
        'webserverPort': port,
        'servers': parsed_servers,
    }


def load_config(work_dir: str) -> Dict[str, Any]:
    """
    Read ``starter.json`` from ``work_dir``.

    A missing file is replaced by a default one and reported as
    ConfigError with ``created`` set, so the operator can edit it first.
    """
    path = os.path.join(work_dir, CONFIG_FILENAME)

    if not os.path.exists(path):
        logger.info("No config file found, creating new one")
        write_default_config(path)
        raise ConfigError(f"Please edit {path}", path=path, created=True)

    try:
        with open(path) as f:
            data = json.load(f)
    except ValueError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}", path=path) from e
    except OSError as e:
        raise ConfigError(f"Could not read {path}: {e}", path=path) from e

    return parse_config(data)
