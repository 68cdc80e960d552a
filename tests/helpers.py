"""
Shared test helpers: fake clock and directory response builders.
"""
import json


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_response(status_code=200, payload=None, invalid_json=False):
    """Build a stand-in for requests.Response."""
    class _Response:
        pass

    response = _Response()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400

    def _json():
        if invalid_json or payload is None:
            raise ValueError("No JSON object could be decoded")
        return payload

    response.json = _json
    response.text = json.dumps(payload) if payload is not None else ''
    return response


def game_entry(game_id, max_players='8', num_players='0', is_full='false', lobby_id=None, **overrides):
    """A GetCurrentGames entry the way the directory reports it."""
    entry = {
        'Region': 'EUWest',
        'LobbyID': lobby_id or f'lobby-{game_id}',
        'BuildVersion': '1.0.0',
        'GameMode': 'Dedicated',
        'PlayerUserIds': [],
        'RunTime': 120,
        'GameServerState': 0,
        'GameServerStateEnum': 'Open',
        'Tags': {
            'maxPlayers': max_players,
            'numPlayers': num_players,
            'isFull': is_full,
            'gameId': game_id,
            'gameBuild': '1.19.2',
            'serverName': f'Server {game_id}',
            'category': 'Standard',
            'publicSigningKey': 'key',
            'requiresPassword': 'false',
        },
        'LastHeartbeat': '2026-10-17T10:00:00Z',
        'ServerHostname': 'host',
        'ServerIPV4Address': '203.0.113.5',
        'ServerPort': 8777,
    }
    entry.update(overrides)
    return entry


def games_response(*entries, status_code=200):
    return make_response(status_code, {'code': 200, 'data': {'Games': list(entries)}})


def login_response(ticket='ticket-1', status_code=200):
    return make_response(status_code, {'code': status_code, 'data': {'SessionTicket': ticket}})


