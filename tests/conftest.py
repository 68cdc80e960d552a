"""
Pytest configuration and fixtures for fleet starter tests.
"""
import json
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing the package
os.environ['STARTER_ENV'] = 'testing'

from starter.config import TestingConfig
from starter.directory_client import DirectoryClient, DirectoryClientState
from starter.reconciliation import ReconciliationState
from tests.helpers import FakeClock


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def session(mocker):
    """Mocked requests.Session used by the directory client."""
    return mocker.MagicMock()


@pytest.fixture
def client(session, clock):
    """Directory client with one registered identity and a mocked session."""
    client = DirectoryClient(
        state=DirectoryClientState(),
        session=session,
        clock=clock,
        query_timeout=1.0,
    )
    client.add('srv-1')
    yield client
    client.executor.shutdown(wait=True)
    client.query_executor.shutdown(wait=True)


@pytest.fixture
def authenticated_client(client, clock):
    """Directory client holding a fresh session ticket."""
    client.state.auth_token = 'ticket-0'
    client.state.headers['X-Authorization'] = 'ticket-0'
    client.state.last_auth = clock()
    return client


@pytest.fixture
def recon_state(clock):
    """Reconciliation state whose health clock starts now."""
    return ReconciliationState.create(now=clock())


@pytest.fixture
def testing_config():
    return TestingConfig


@pytest.fixture
def work_dir(tmp_path):
    """Work directory with a starter.json describing one remote server."""
    (tmp_path / 'starter.json').write_text(json.dumps({
        'owner': 'operator',
        'webserverPort': 5055,
        'servers': [
            {'id': 'srv-1', 'name': 'Remote One', 'type': 'remote', 'webhook': 'http://hooks.local/1'},
        ],
    }))
    return tmp_path
