"""
Client for the matchmaking directory service.

The directory speaks JSON over HTTPS through a handful of RPC-style
endpoints. Requests are only accepted when they carry the client SDK
identifier and user agent of the game client, so those header values are
part of the wire contract.
"""
import hashlib
import json
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

import requests

from shared.bounded_call import CallTimeout, bounded_call, fire_and_forget

logger = logging.getLogger(__name__)

DEFAULT_TITLE_ID = '5EA1'
DEFAULT_SDK_VERSION = 'UE4MKPL-1.49.201027'
DEFAULT_USER_AGENT = 'Astro/++UE4+Release-4.23-CL-0 Windows/10.0.19041.1.768.64bit'
DEFAULT_ACCOUNT_PREFIX = 'astro-starter_'

HEARTBEAT_FUNCTION = 'heartbeatDedicatedServer'
DEREGISTER_FUNCTION = 'deregisterDedicatedServer'


class DirectoryError(Exception):
    """Base class for directory service failures."""


class AuthFailure(DirectoryError):
    pass


class QueryFailure(DirectoryError):
    def __init__(self, message: str, status: int = None, timed_out: bool = False):
        self.status = status
        self.timed_out = timed_out
        super().__init__(message)


def _to_int(value: Any, field_name: str, game_id: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Directory entry {game_id}: {field_name}={value!r} is not numeric")
        return None


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() == 'true'


@dataclass
class ServerTags:
    game_id: str
    max_players: Optional[int] = None
    num_players: Optional[int] = None
    is_full: bool = False
    game_build: str = None
    server_name: str = None
    category: str = None
    public_signing_key: str = None
    requires_password: bool = False

    @classmethod
    def from_payload(cls, tags: dict) -> "ServerTags":
        """Coerce the string-typed tag map; bad numbers become None."""
        game_id = tags.get('gameId')
        return cls(
            game_id=game_id,
            max_players=_to_int(tags.get('maxPlayers'), 'maxPlayers', game_id),
            num_players=_to_int(tags.get('numPlayers'), 'numPlayers', game_id),
            is_full=_to_bool(tags.get('isFull')),
            game_build=tags.get('gameBuild'),
            server_name=tags.get('serverName'),
            category=tags.get('category'),
            public_signing_key=tags.get('publicSigningKey'),
            requires_password=_to_bool(tags.get('requiresPassword')),
        )


@dataclass
class RemoteServerRecord:
    tags: ServerTags
    region: str = None
    lobby_id: str = None
    build_version: str = None
    game_mode: str = None
    player_user_ids: List[str] = field(default_factory=list)
    run_time: int = None
    game_server_state: int = None
    game_server_state_enum: str = None
    last_heartbeat: str = None
    server_hostname: str = None
    server_ipv4_address: str = None
    server_port: int = None

    @property
    def game_id(self) -> str:
        return self.tags.game_id

    @classmethod
    def from_payload(cls, payload: dict) -> "RemoteServerRecord":
        return cls(
            tags=ServerTags.from_payload(payload.get('Tags') or {}),
            region=payload.get('Region'),
            lobby_id=payload.get('LobbyID'),
            build_version=payload.get('BuildVersion'),
            game_mode=payload.get('GameMode'),
            player_user_ids=list(payload.get('PlayerUserIds') or []),
            run_time=payload.get('RunTime'),
            game_server_state=payload.get('GameServerState'),
            game_server_state_enum=payload.get('GameServerStateEnum'),
            last_heartbeat=payload.get('LastHeartbeat'),
            server_hostname=payload.get('ServerHostname'),
            server_ipv4_address=payload.get('ServerIPV4Address'),
            server_port=payload.get('ServerPort'),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def default_headers(sdk_version: str = DEFAULT_SDK_VERSION,
                    user_agent: str = DEFAULT_USER_AGENT) -> Dict[str, str]:
    return {
        'Accept': '*/*',
        'Accept-Encoding': 'none',
        'Content-Type': 'application/json; charset=utf-8',
        'X-PlayFabSDK': sdk_version,
        'User-Agent': user_agent,
    }


@dataclass
class DirectoryClientState:
    """Mutable client state, owned by one DirectoryClient."""
    headers: Dict[str, str] = field(default_factory=default_headers)
    identities: List[str] = field(default_factory=list)
    account_id: str = ''
    auth_token: Optional[str] = None
    last_auth: Optional[float] = None


def derive_account_identity(identities: Iterable[str]) -> str:
    """md5 of the identities concatenated in registration order."""
    joined = ''.join(identities)
    return hashlib.md5(joined.encode('utf-8')).hexdigest()


class DirectoryClient:
    """
    HTTP contract with the directory: login, game list, heartbeat and
    deregistration.
    """

    def __init__(
        self,
        state: DirectoryClientState = None,
        title_id: str = DEFAULT_TITLE_ID,
        sdk_version: str = DEFAULT_SDK_VERSION,
        account_prefix: str = DEFAULT_ACCOUNT_PREFIX,
        auth_ttl: float = 3600.0,
        query_timeout: float = 1.0,
        request_timeout: float = 10.0,
        session: requests.Session = None,
        executor: ThreadPoolExecutor = None,
        query_executor: ThreadPoolExecutor = None,
        clock: Callable[[], float] = time.time,
    ):
        self.state = state or DirectoryClientState(headers=default_headers(sdk_version))
        self.title_id = title_id
        self.sdk_version = sdk_version
        self.account_prefix = account_prefix
        self.auth_ttl = auth_ttl
        self.query_timeout = query_timeout
        self.request_timeout = request_timeout
        self.session = session or requests.Session()
        self.executor = executor or ThreadPoolExecutor(max_workers=8, thread_name_prefix='directory')
        # game queries never wait behind background pushes
        self.query_executor = query_executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix='directory-query'
        )
        self.clock = clock

    @classmethod
    def from_config(cls, cfg, **kwargs) -> "DirectoryClient":
        state = DirectoryClientState(
            headers=default_headers(cfg.DIRECTORY_SDK_VERSION, cfg.DIRECTORY_USER_AGENT)
        )
        return cls(
            state=state,
            title_id=cfg.DIRECTORY_TITLE_ID,
            sdk_version=cfg.DIRECTORY_SDK_VERSION,
            account_prefix=cfg.DIRECTORY_ACCOUNT_PREFIX,
            auth_ttl=cfg.AUTH_TTL,
            query_timeout=cfg.QUERY_TIMEOUT,
            **kwargs
        )

    # ==================== Identity ====================

    def add(self, identity: str) -> str:
        """Register a server identity and re-derive the account identity."""
        self.state.identities.append(identity)
        self.state.account_id = derive_account_identity(self.state.identities)
        return self.state.account_id

    @property
    def identities(self) -> Tuple[str, ...]:
        return tuple(self.state.identities)

    # ==================== Transport ====================

    def endpoint(self, method: str) -> str:
        return f"https://{self.title_id}.playfabapi.com/Client/{method}?sdk={self.sdk_version}"

    def _post(self, method: str, body: dict, timeout: float = None) -> requests.Response:
        return self.session.post(
            self.endpoint(method),
            data=json.dumps(body),
            headers=dict(self.state.headers),
            timeout=timeout or self.request_timeout,
        )

    @staticmethod
    def _json_or_none(response: requests.Response) -> Optional[Any]:
        try:
            return response.json()
        except ValueError:
            return None

    # ==================== Authentication ====================

    def token_is_fresh(self) -> bool:
        if self.state.auth_token is None or self.state.last_auth is None:
            return False
        return self.clock() - self.state.last_auth < self.auth_ttl

    def _drop_token(self):
        """Forget an expired ticket so it is never sent again."""
        self.state.auth_token = None
        self.state.headers.pop('X-Authorization', None)

    def _login(self, create_account: bool) -> requests.Response:
        return self._post('LoginWithCustomID', {
            'CreateAccount': create_account,
            'CustomId': self.account_prefix + self.state.account_id,
            'TitleId': self.title_id,
        })

    @classmethod
    def _session_ticket(cls, response: requests.Response) -> Optional[str]:
        payload = cls._json_or_none(response)
        if not isinstance(payload, dict):
            return None
        data = payload.get('data')
        if not isinstance(data, dict):
            return None
        return data.get('SessionTicket') or None

    def ensure_authenticated(self) -> bool:
        """
        Log in if the session ticket is missing or stale.

        A 400 from the login call means the account does not exist yet; the
        login is retried once with account creation enabled. A reply that
        carries no session ticket leaves the token unset so the next cycle
        tries again.

        Returns:
            True when a valid token is held after the call.

        Raises:
            AuthFailure: the login request itself could not be sent.
        """
        if self.token_is_fresh():
            return True

        try:
            response = self._login(create_account=False)
            if response.status_code == 400:
                logger.info("Directory account not found, creating it")
                response = self._login(create_account=True)
                ticket = self._session_ticket(response)
                if not ticket:
                    logger.warning("Directory account creation failed")
                    self._drop_token()
                    return False
            else:
                ticket = self._session_ticket(response)
                if not ticket:
                    logger.warning(
                        f"Directory login returned no session ticket (status {response.status_code})"
                    )
                    self._drop_token()
                    return False
        except requests.exceptions.RequestException as e:
            self._drop_token()
            raise AuthFailure(f"Directory login failed: {e}") from e

        self.state.auth_token = ticket
        self.state.headers['X-Authorization'] = ticket
        self.state.last_auth = self.clock()
        logger.debug("Directory session refreshed")
        return True

    # ==================== Game list ====================

    def _fetch_games(self, identities: Sequence[str]) -> Tuple[RemoteServerRecord, ...]:
        body = {
            'TagFilter': {
                'Includes': [{'Data': {'gameId': game_id}} for game_id in identities]
            }
        }
        try:
            response = self._post('GetCurrentGames', body, timeout=self.query_timeout)
        except requests.exceptions.RequestException as e:
            raise QueryFailure(f"Directory request error: {e}") from e

        if not response.ok:
            raise QueryFailure(
                f"Directory query failed with status {response.status_code}",
                status=response.status_code
            )

        payload = self._json_or_none(response)
        if not payload:
            raise QueryFailure("Directory returned invalid or empty JSON", status=response.status_code)

        data = payload.get('data') if isinstance(payload, dict) else None
        games = data.get('Games') if isinstance(data, dict) else None
        if not isinstance(games, list):
            raise QueryFailure("Directory response missing 'Games' data", status=response.status_code)

        records = []
        for entry in games:
            if not isinstance(entry, dict) or not isinstance(entry.get('Tags'), dict):
                logger.warning(f"Skipping directory entry without tags: {entry!r}")
                continue
            records.append(RemoteServerRecord.from_payload(entry))
        return tuple(records)

    def query_games(self, identities: Sequence[str] = None) -> Tuple[RemoteServerRecord, ...]:
        """
        Fetch the advertised servers for our identities.

        Returns a freshly built tuple of records. Any failure, including the
        deadline passing, raises QueryFailure; nothing in the client is
        touched in that case.
        """
        if identities is None:
            identities = self.identities
        try:
            return bounded_call(
                self._fetch_games,
                tuple(identities),
                timeout=self.query_timeout,
                executor=self.query_executor,
                description='Directory game query',
            )
        except CallTimeout as e:
            raise QueryFailure(str(e), timed_out=True) from e

    # ==================== Cloud functions ====================

    def _execute_cloud_script(self, function_name: str, parameters: dict) -> requests.Response:
        return self._post('ExecuteCloudScript', {
            'FunctionName': function_name,
            'FunctionParameter': parameters,
            'GeneratePlayStreamEvent': True,
        })

    def heartbeat(self, record: RemoteServerRecord) -> bool:
        """Push occupancy and metadata for one server. Failures are logged."""
        tags = record.tags
        parameters = {
            'serverName': tags.server_name,
            'buildVersion': tags.game_build,
            'gameMode': tags.category,
            'ipAddress': record.server_ipv4_address,
            'port': record.server_port,
            'matchmakerBuild': record.build_version,
            'maxPlayers': tags.max_players,
            'numPlayers': str(len(record.player_user_ids)),
            'lobbyId': record.lobby_id,
            'publicSigningKey': tags.public_signing_key,
            'requiresPassword': tags.requires_password,
        }
        try:
            response = self._execute_cloud_script(HEARTBEAT_FUNCTION, parameters)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Directory heartbeat error for {record.game_id}: {e}")
            return False

        if self._json_or_none(response) is None:
            logger.warning("Directory heartbeat returned empty or invalid JSON")
            return False
        return True

    def deregister(self, identity: str, records: Iterable[RemoteServerRecord] = ()) -> int:
        """
        Tell the directory the lobbies of ``identity`` are going offline.

        Only the lobbies in ``records`` that belong to ``identity`` are
        deregistered. Returns how many requests went through.
        """
        sent = 0
        for record in records:
            if record.game_id != identity:
                continue
            try:
                response = self._execute_cloud_script(
                    DEREGISTER_FUNCTION, {'lobbyId': record.lobby_id}
                )
                self._json_or_none(response)
                sent += 1
            except requests.exceptions.RequestException as e:
                logger.warning(f"Failed to deregister server {identity}: {e}")
        return sent

    def heartbeat_async(self, record: RemoteServerRecord) -> Future:
        return fire_and_forget(
            self.executor, self.heartbeat, record,
            description=f"Heartbeat for {record.game_id}"
        )

    def deregister_async(self, identity: str, records: Iterable[RemoteServerRecord] = ()) -> Future:
        return fire_and_forget(
            self.executor, self.deregister, identity, tuple(records),
            description=f"Deregistration of {identity}"
        )

    def close(self):
        self.query_executor.shutdown(wait=False)
        self.executor.shutdown(wait=False)
        self.session.close()
