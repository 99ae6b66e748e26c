"""Tests for ``lifecycle_spine.queue.store.ActionQueue``."""

from __future__ import annotations

from datetime import timedelta

import pytest

from lifecycle_spine.core.errors import InvalidTransitionError, NotFoundError
from lifecycle_spine.queue.models import QueueStatus, validate_queue_transition
from lifecycle_spine.queue.store import ActionQueue, UpsertResult

T1 = "dw.sales:P1"
T2 = "dw.sales:P2"


@pytest.fixture
def queue(conn, clock):
    return ActionQueue(conn, clock)


def _pending(queue, policy_id=1, target_id=T1, eligible=True, reason="age 120d ≥ 90d threshold"):
    queue.upsert_decision(policy_id, target_id, eligible, reason)
    return queue.get_for(policy_id, target_id)


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (QueueStatus.PENDING, QueueStatus.DONE),
            (QueueStatus.DONE, QueueStatus.PENDING),
            (QueueStatus.FAILED, QueueStatus.RUNNING),
        ],
    )
    def test_illegal(self, current, target):
        with pytest.raises(InvalidTransitionError):
            validate_queue_transition(current, target)

    def test_terminal(self):
        assert QueueStatus.DONE.is_terminal
        assert not QueueStatus.RUNNING.is_terminal


class TestUpsertDecision:
    def test_insert_then_refresh(self, queue, clock):
        assert queue.upsert_decision(1, T1, False, "age 40d < 90d threshold") is UpsertResult.INSERTED
        clock.advance(days=1)
        assert queue.upsert_decision(1, T1, True, "age 91d ≥ 90d threshold") is UpsertResult.REFRESHED

        [entry] = queue.list()
        assert entry.eligible is True
        assert entry.reason == "age 91d ≥ 90d threshold"
        assert entry.evaluated_at == clock()
        assert entry.created_at == clock() - timedelta(days=1)

    def test_one_row_per_pair(self, queue):
        queue.upsert_decision(1, T1, True, "r")
        queue.upsert_decision(2, T1, True, "r")
        queue.upsert_decision(1, T1, True, "r")
        assert len(queue.list()) == 2

    def test_running_is_skipped(self, queue):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        assert queue.upsert_decision(1, T1, False, "changed") is UpsertResult.SKIPPED
        assert queue.require(entry.entry_id).reason == entry.reason

    def test_done_superseded_when_eligible_again(self, queue):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        queue.complete(entry.entry_id)
        queue.commit()

        assert queue.upsert_decision(1, T1, True, "again") is UpsertResult.SUPERSEDED
        fresh = queue.get_for(1, T1)
        assert fresh.entry_id > entry.entry_id
        assert fresh.status is QueueStatus.PENDING
        assert fresh.attempt_count == 0

    def test_done_kept_when_superseding_disabled(self, queue):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        queue.complete(entry.entry_id)
        queue.commit()

        result = queue.upsert_decision(1, T1, True, "custom action reindex", supersede_done=False)
        assert result is UpsertResult.REFRESHED
        done = queue.require(entry.entry_id)
        assert done.status is QueueStatus.DONE
        assert done.reason == "custom action reindex"

    def test_done_keeps_status_when_ineligible(self, queue):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        queue.complete(entry.entry_id)
        queue.commit()

        result = queue.upsert_decision(1, T1, False, "already at target state: profile HIGH")
        assert result is UpsertResult.REFRESHED
        done = queue.require(entry.entry_id)
        assert done.status is QueueStatus.DONE
        assert done.reason == "already at target state: profile HIGH"


class TestClaim:
    def test_claim_moves_to_running(self, queue, clock):
        entry = _pending(queue)
        claimed = queue.claim(entry.entry_id)
        assert claimed.status is QueueStatus.RUNNING
        assert claimed.attempt_count == 1
        assert claimed.started_at == clock()

    def test_claim_twice(self, queue):
        entry = _pending(queue)
        assert queue.claim(entry.entry_id) is not None
        assert queue.claim(entry.entry_id) is None

    def test_ineligible_not_claimable(self, queue):
        entry = _pending(queue, eligible=False)
        assert queue.claim(entry.entry_id) is None

    def test_one_running_entry_per_target(self, queue):
        first = _pending(queue, policy_id=1)
        second = _pending(queue, policy_id=2)
        other = _pending(queue, policy_id=2, target_id=T2)

        assert queue.claim(first.entry_id) is not None
        assert queue.claim(second.entry_id) is None
        assert queue.claim(other.entry_id) is not None
        assert queue.running_targets() == {T1, T2}
        assert queue.running_count() == 2


class TestCompletion:
    def test_complete_with_warning(self, queue):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        queue.complete(entry.entry_id, warning="statistics refresh failed")
        queue.commit()

        done = queue.require(entry.entry_id)
        assert done.status is QueueStatus.DONE
        assert done.warning == "statistics refresh failed"
        assert done.completed_at is not None

    def test_fail(self, queue):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        queue.fail(entry.entry_id, "compress failed: permission denied")
        queue.commit()
        failed = queue.require(entry.entry_id)
        assert failed.status is QueueStatus.FAILED
        assert failed.last_error == "compress failed: permission denied"

    def test_release_for_retry(self, queue, clock):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        retry_at = clock() + timedelta(minutes=5)
        queue.release_for_retry(entry.entry_id, retry_at, "busy")
        queue.commit()

        released = queue.require(entry.entry_id)
        assert released.status is QueueStatus.PENDING
        assert released.next_attempt_at == retry_at
        assert released.attempt_count == 1

    def test_complete_requires_running(self, queue):
        entry = _pending(queue)
        with pytest.raises(InvalidTransitionError):
            queue.complete(entry.entry_id)


class TestDispatchable:
    def test_respects_backoff_and_policy_state(self, queue, conn, clock):
        conn.executemany(
            "INSERT INTO lc_policies "
            "(policy_id, name, selector, category, action_type, priority, enabled, created_at) "
            "VALUES (?, ?, 'dw.sales', 'COMPRESSION', 'COMPRESS', ?, ?, '2025-01-01T00:00:00+00:00')",
            [(1, "slow", 200, 1), (2, "fast", 10, 1), (3, "off", 1, 0)],
        )
        conn.commit()
        slow = _pending(queue, policy_id=1)
        fast = _pending(queue, policy_id=2, target_id=T2)
        _pending(queue, policy_id=3, target_id=T2)
        _pending(queue, policy_id=2, target_id="dw.sales:P3", eligible=False)

        assert [e.entry_id for e in queue.dispatchable()] == [fast.entry_id, slow.entry_id]

        queue.claim(slow.entry_id)
        queue.release_for_retry(slow.entry_id, clock() + timedelta(minutes=5), "busy")
        queue.commit()
        assert [e.entry_id for e in queue.dispatchable()] == [fast.entry_id]
        clock.advance(minutes=5)
        assert [e.entry_id for e in queue.dispatchable()] == [fast.entry_id, slow.entry_id]


class TestOperatorActions:
    def test_requeue_failed(self, queue):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        queue.fail(entry.entry_id, "boom")
        queue.commit()

        fresh = queue.requeue(entry.entry_id)
        assert fresh.entry_id != entry.entry_id
        assert fresh.status is QueueStatus.PENDING
        assert fresh.attempt_count == 0
        assert fresh.reason == entry.reason
        assert queue.get(entry.entry_id) is None

    def test_requeue_rejects_non_failed(self, queue):
        entry = _pending(queue)
        with pytest.raises(InvalidTransitionError):
            queue.requeue(entry.entry_id)

    def test_requeue_unknown(self, queue):
        with pytest.raises(NotFoundError):
            queue.requeue(999)

    def test_recover_stale_running(self, queue, clock):
        entry = _pending(queue)
        queue.claim(entry.entry_id)
        assert queue.recover_stale_running() == 1
        recovered = queue.require(entry.entry_id)
        assert recovered.status is QueueStatus.PENDING
        assert recovered.last_error == "recovered: executor interrupted"

    def test_clear_pending(self, queue):
        _pending(queue, policy_id=1)
        _pending(queue, policy_id=2)
        running = _pending(queue, policy_id=1, target_id=T2)
        queue.claim(running.entry_id)

        assert queue.clear_pending(policy_id=2) == 1
        assert queue.clear_pending() == 1
        assert [e.status for e in queue.list()] == [QueueStatus.RUNNING]

    def test_purge_stale_pending(self, queue, clock):
        _pending(queue, target_id=T1)
        clock.advance(days=10)
        _pending(queue, target_id=T2)
        assert queue.purge_stale_pending(clock() - timedelta(days=7)) == 1
        assert [e.target_id for e in queue.list()] == [T2]

    def test_purge_stale_pending_keeps_attempted_entries(self, queue, clock):
        entry = _pending(queue, target_id=T1)
        queue.claim(entry.entry_id)
        with queue.transaction():
            queue.release_for_retry(entry.entry_id, clock(), "TransientExecutionError: busy")
        clock.advance(days=10)

        assert queue.purge_stale_pending(clock() - timedelta(days=7)) == 0
        assert queue.require(entry.entry_id).attempt_count == 1


class TestQueries:
    def test_list_filters(self, queue):
        _pending(queue, policy_id=1, target_id=T1)
        _pending(queue, policy_id=2, target_id=T1, eligible=False)
        _pending(queue, policy_id=2, target_id=T2)

        assert len(queue.list(policy_id=2)) == 2
        assert len(queue.list(target_id=T1)) == 2
        assert len(queue.list(eligible=False)) == 1
        assert len(queue.list(status=QueueStatus.PENDING, limit=2)) == 2
        assert queue.counts_by_status() == {"PENDING": 3}
