"""
Integration tests for the command line entry point and its exit codes.
"""
import json
import signal
import pytest

import run
from starter.app import Starter
from starter.escalation import EscalationSignal


@pytest.fixture(autouse=True)
def quiet(mocker):
    """Keep handlers off the root logger and the process signal table."""
    mocker.patch('starter.log.setup_logging')
    return mocker.patch('run.signal.signal')


def write_config(directory, payload):
    (directory / 'starter.json').write_text(json.dumps(payload))


class TestConfigExitCodes:
    """Tests for exit codes when starter.json cannot be used."""

    def test_missing_config_is_created_and_exits_zero(self, tmp_path):
        assert run.run_starter(['--dir', str(tmp_path)]) == 0
        assert (tmp_path / 'starter.json').exists()

    def test_invalid_json_exits_two(self, tmp_path):
        (tmp_path / 'starter.json').write_text('{not json')
        assert run.run_starter(['--dir', str(tmp_path)]) == 2

    def test_invalid_server_entry_exits_two(self, tmp_path):
        write_config(tmp_path, {'servers': [{'name': 'no id'}]})
        assert run.run_starter(['--dir', str(tmp_path)]) == 2


class TestRunExitCodes:
    """Tests for exit codes once the supervisor is running."""

    def test_no_servers_exits_zero(self, tmp_path):
        write_config(tmp_path, {'servers': []})
        assert run.run_starter(['--dir', str(tmp_path)]) == 0

    def test_escalation_exits_one(self, work_dir, mocker):
        def start_then_escalate(self):
            self.handle_fatal(EscalationSignal(reason='Directory unreachable', down_since=0.0))
            return True

        mocker.patch.object(Starter, 'start', autospec=True, side_effect=start_then_escalate)

        assert run.run_starter(['--dir', str(work_dir)]) == 1

    def test_operator_shutdown_exits_zero(self, work_dir, mocker, quiet):
        def start_then_shutdown(self):
            self.shutdown()
            return True

        mocker.patch.object(Starter, 'start', autospec=True, side_effect=start_then_shutdown)

        assert run.run_starter(['--dir', str(work_dir)]) == 0
        installed = {c.args[0] for c in quiet.call_args_list}
        assert installed == {signal.SIGINT, signal.SIGTERM}

    def test_run_forever_result_is_returned(self, work_dir, mocker):
        starter_cls = mocker.patch('starter.app.Starter')
        starter_cls.return_value.start.return_value = True
        starter_cls.return_value.run_forever.return_value = 1

        assert run.run_starter(['--dir', str(work_dir)]) == 1
        starter_cls.assert_called_once()
