"""FlowStatusStore 테스트.

단일 세션 유지, 종료 상태 단조성, 대체된 세션의 쓰기 무효화 검증.
"""

import threading

import pytest

from authlink.flows.session import (
    NO_FLOW_MESSAGE,
    FlowSession,
    FlowSnapshot,
    FlowStatus,
    FlowStatusStore,
)
from authlink.providers.base import GrantType


def make_session(provider: str = "github") -> FlowSession:
    return FlowSession(
        provider=provider,
        grant_type=GrantType.DEVICE_CODE,
        client_id="cid",
        created_at=0.0,
        expires_at=900.0,
        device_code="dev",
        poll_interval=5.0,
    )


class TestFlowSnapshot:
    """스냅샷 직렬화 테스트."""

    def test_pending_has_only_status(self):
        assert FlowSnapshot(FlowStatus.PENDING).to_dict() == {"status": "pending"}

    def test_complete_includes_token(self):
        snapshot = FlowSnapshot(FlowStatus.COMPLETE, token="tok_123")
        assert snapshot.to_dict() == {"status": "complete", "token": "tok_123"}

    def test_error_includes_message(self):
        snapshot = FlowSnapshot(FlowStatus.DENIED, error="nope")
        assert snapshot.to_dict() == {"status": "denied", "error": "nope"}


class TestFlowStatusStore:
    """FlowStatusStore 테스트."""

    @pytest.fixture
    def store(self):
        return FlowStatusStore()

    def test_no_flow(self, store):
        """세션이 없으면 no_flow."""
        snapshot = store.snapshot("github")
        assert snapshot.status is FlowStatus.NO_FLOW
        assert snapshot.error == NO_FLOW_MESSAGE

    def test_install_replaces_previous(self, store):
        first = make_session()
        second = make_session()

        assert store.install(first) is None
        assert store.install(second) is first
        assert store.current("github") is second
        assert not store.is_current(first)
        assert store.is_current(second)

    def test_generations_increase(self):
        first = make_session()
        second = make_session()
        assert second.generation > first.generation

    def test_providers_are_independent(self, store):
        github = make_session("github")
        sentry = make_session("sentry")
        store.install(github)
        store.install(sentry)

        store.transition(github, FlowStatus.COMPLETE, token="tok")

        assert store.snapshot("github").status is FlowStatus.COMPLETE
        assert store.snapshot("sentry").status is FlowStatus.PENDING

    def test_transition_to_complete(self, store):
        session = make_session()
        store.install(session)

        assert store.transition(
            session, FlowStatus.COMPLETE, token="tok_123", refresh_token="ref"
        )

        snapshot = store.snapshot("github")
        assert snapshot == FlowSnapshot(FlowStatus.COMPLETE, token="tok_123")
        assert session.refresh_token == "ref"
        assert session.device_code is None

    def test_terminal_is_final(self, store):
        """종료 상태에서 다른 상태로 전이 불가."""
        session = make_session()
        store.install(session)
        store.transition(session, FlowStatus.DENIED, error_message="denied")

        assert not store.transition(session, FlowStatus.COMPLETE, token="tok")
        assert not store.transition(session, FlowStatus.ERROR, error_message="x")
        assert store.snapshot("github").status is FlowStatus.DENIED

    def test_stale_session_write_is_ignored(self, store):
        """대체된 세션의 쓰기는 현재 슬롯에 반영되지 않음."""
        old = make_session()
        new = make_session()
        store.install(old)
        store.install(new)

        assert not store.transition(old, FlowStatus.COMPLETE, token="old_token")
        assert not store.update(old, poll_interval=99.0)

        assert store.snapshot("github").status is FlowStatus.PENDING
        assert old.status is FlowStatus.PENDING

    def test_token_only_with_complete(self, store):
        session = make_session()
        store.install(session)

        with pytest.raises(ValueError):
            store.transition(session, FlowStatus.COMPLETE)
        with pytest.raises(ValueError):
            store.transition(session, FlowStatus.ERROR, token="tok")

    def test_pending_is_not_a_transition_target(self, store):
        session = make_session()
        store.install(session)
        with pytest.raises(ValueError):
            store.transition(session, FlowStatus.PENDING)

    def test_update_rejects_status_fields(self, store):
        session = make_session()
        store.install(session)
        with pytest.raises(ValueError):
            store.update(session, status=FlowStatus.COMPLETE)

    def test_update_poll_interval(self, store):
        session = make_session()
        store.install(session)
        assert store.update(session, poll_interval=10.0)
        assert session.poll_interval == 10.0

    def test_claim_callback_once(self, store):
        session = make_session()
        store.install(session)
        assert store.claim_callback(session)
        assert not store.claim_callback(session)

    def test_repeated_snapshots_identical(self, store):
        """종료 후 반복 조회 결과가 동일."""
        session = make_session()
        store.install(session)
        store.transition(session, FlowStatus.EXPIRED, error_message="Authorization timed out")

        snapshots = [store.snapshot("github") for _ in range(5)]
        assert all(s == snapshots[0] for s in snapshots)

    def test_evict_retired_only_observed_terminal(self, store):
        done = make_session("github")
        waiting = make_session("sentry")
        unseen = make_session("linear")
        for s in (done, waiting, unseen):
            store.install(s)
        store.transition(done, FlowStatus.COMPLETE, token="tok")
        store.transition(unseen, FlowStatus.ERROR, error_message="x")
        store.snapshot("github")

        assert store.evict_retired() == ["github"]
        assert store.snapshot("github").status is FlowStatus.NO_FLOW
        assert store.snapshot("sentry").status is FlowStatus.PENDING
        assert store.snapshot("linear").status is FlowStatus.ERROR

    def test_session_snapshot_does_not_mark_observed(self, store):
        """세션 자체의 스냅샷은 조회 표시를 남기지 않음."""
        session = make_session()
        store.install(session)
        store.transition(session, FlowStatus.DENIED, error_message="no")

        assert session.snapshot() == FlowSnapshot(FlowStatus.DENIED, error="no")
        assert store.evict_retired() == []

        store.snapshot("github")
        assert store.evict_retired() == ["github"]

    def test_concurrent_transitions_single_winner(self, store):
        """동시에 여러 스레드가 전이해도 하나만 기록."""
        session = make_session()
        store.install(session)
        results = []
        barrier = threading.Barrier(8)

        def worker(i):
            barrier.wait()
            results.append(
                store.transition(session, FlowStatus.COMPLETE, token=f"tok_{i}")
            )

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert store.snapshot("github").token == session.token
