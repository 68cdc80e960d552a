"""
Unit tests for the grace-period merge and ReconciliationState.
"""
import threading
import pytest

from starter import reconciliation
from starter.directory_client import RemoteServerRecord
from starter.reconciliation import HealthClock, ReconciliationState, merge
from tests.helpers import game_entry


def record(game_id, **kwargs) -> RemoteServerRecord:
    return RemoteServerRecord.from_payload(game_entry(game_id, **kwargs))


def ids(records):
    return [r.game_id for r in records]


class TestMerge:
    """Tests for merge."""

    def test_no_grace_passes_everything(self):
        merged, grace = merge([record('a'), record('b')], {})
        assert ids(merged) == ['a', 'b']
        assert grace == {}

    def test_positive_counter_excludes_and_decrements(self):
        merged, grace = merge([record('a'), record('b')], {'a': 4})
        assert ids(merged) == ['b']
        assert grace == {'a': 3}

    def test_zero_counter_is_removed_and_included(self):
        merged, grace = merge([record('a')], {'a': 0})
        assert ids(merged) == ['a']
        assert grace == {}

    def test_unreported_identity_leaves_grace(self):
        merged, grace = merge([record('b')], {'a': 3})
        assert ids(merged) == ['b']
        assert grace == {}

    def test_input_mapping_untouched(self):
        original = {'a': 2}
        merge([record('a')], original)
        assert original == {'a': 2}

    def test_every_lobby_of_identity_suppressed(self):
        merged, grace = merge([record('a', lobby_id='1'), record('a', lobby_id='2')], {'a': 4})
        assert merged == ()
        assert grace == {'a': 2}

    @pytest.mark.parametrize('counter', [1, 2, 4, 10])
    def test_decrements_by_exactly_one(self, counter):
        merged, grace = merge([record('a')], {'a': counter})
        assert 'a' not in ids(merged)
        assert grace['a'] == counter - 1


class TestReconciliationState:
    """Tests for ReconciliationState."""

    def test_create_starts_health_clock(self):
        state = ReconciliationState.create(now=100.0)
        assert state.health == HealthClock(last_successful_query=100.0)
        assert state.snapshot == ()

    def test_apply_updates_snapshot_and_health(self, recon_state, clock):
        clock.advance(4)
        merged = recon_state.apply([record('srv-1')], clock())

        assert ids(merged) == ['srv-1']
        assert recon_state.snapshot == merged
        assert recon_state.health.last_successful_query == clock()

    def test_begin_grace_replaces_mapping(self, recon_state):
        before = recon_state.grace
        recon_state.begin_grace('srv-1')

        assert recon_state.grace == {'srv-1': 4}
        assert before == {}

    def test_custom_grace_cycles(self):
        state = ReconciliationState.create(now=0.0, grace_cycles=2)
        state.begin_grace('srv-1')
        assert state.grace == {'srv-1': 2}

    def test_grace_scenario(self, recon_state, clock):
        """Four echoes are suppressed, then the entry expires once unreported."""
        recon_state.begin_grace('srv-1')

        for remaining in (3, 2, 1, 0):
            clock.advance(4)
            merged = recon_state.apply([record('srv-1'), record('srv-2')], clock())
            assert ids(merged) == ['srv-2']
            assert recon_state.grace == {'srv-1': remaining}

        clock.advance(4)
        merged = recon_state.apply([record('srv-2')], clock())
        assert ids(merged) == ['srv-2']
        assert recon_state.grace == {}

    def test_get_and_records_for(self, recon_state, clock):
        recon_state.apply([record('a', lobby_id='1'), record('a', lobby_id='2'), record('b')], clock())

        assert recon_state.get('a').lobby_id == '1'
        assert [r.lobby_id for r in recon_state.records_for('a')] == ['1', '2']
        assert recon_state.get('missing') is None

    def test_record_auth(self, recon_state):
        recon_state.record_auth(123.0)
        assert recon_state.health.last_auth == 123.0

    def test_grace_started_during_apply_is_kept(self, recon_state, clock, mocker):
        """A deregistration racing a merge still suppresses the next echo."""
        real_merge = reconciliation.merge
        threads = []

        def merge_with_concurrent_grace(snapshot, grace):
            thread = threading.Thread(target=recon_state.begin_grace, args=('srv-2',))
            thread.start()
            thread.join(0.1)
            threads.append(thread)
            return real_merge(snapshot, grace)

        mocker.patch('starter.reconciliation.merge', side_effect=merge_with_concurrent_grace)
        recon_state.apply([record('srv-1'), record('srv-2')], clock())
        threads[0].join(1.0)

        assert recon_state.grace == {'srv-2': 4}

        mocker.stopall()
        clock.advance(4)
        merged = recon_state.apply([record('srv-1'), record('srv-2')], clock())
        assert ids(merged) == ['srv-1']
        assert recon_state.grace == {'srv-2': 3}
