"""Tests for the moderation gateway."""

import logging
import threading

import pytest

from moderation.core.queue import (
    AlreadyReviewedError,
    ForbiddenError,
    InMemorySubmissionStore,
    ModerationGateway,
    ReviewVerb,
    StatsAggregator,
    StatsCache,
    StatusConflictError,
    SubmissionKind,
    SubmissionNotFoundError,
    SubmissionStatus,
    TERMINAL_STATUSES,
)
from moderation.core.rbac import RolePolicy

ADMIN = "admin"
USER = "user"
BUSINESS = SubmissionKind.BUSINESS


class RacingStore(InMemorySubmissionStore):
    """Holds every thread's first fetch until all parties have fetched.

    Forces concurrent decisions to observe the same pending status.
    """

    def __init__(self, parties: int):
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)
        self._local = threading.local()

    def get(self, kind, submission_id):
        submission = super().get(kind, submission_id)
        if not getattr(self._local, "fetched", False):
            self._local.fetched = True
            self.barrier.wait()
        return submission


class AlwaysConflictingStore(InMemorySubmissionStore):
    """Compare-and-set loses every race."""

    def __init__(self):
        super().__init__()
        self.attempts = 0

    def compare_and_set_status(self, kind, submission_id, expected, new, actor_id):
        self.attempts += 1
        raise StatusConflictError(kind, submission_id, expected, SubmissionStatus.PENDING)


class BrokenAggregator(StatsAggregator):
    def invalidate(self, kind=None):
        raise RuntimeError("stats backend unavailable")


class TestAuthorization:

    def test_non_admin_is_forbidden_everywhere(self, gateway, seeded_store):
        before = seeded_store.get(BUSINESS, "business-0")

        with pytest.raises(ForbiddenError):
            gateway.list_pending(BUSINESS, USER)
        with pytest.raises(ForbiddenError):
            gateway.list_all_pending(USER)
        with pytest.raises(ForbiddenError):
            gateway.decide(BUSINESS, "business-0", ReviewVerb.APPROVE, USER, "user-1")
        with pytest.raises(ForbiddenError):
            gateway.decide_many(BUSINESS, ["business-0"], ReviewVerb.REJECT, USER, "user-1")
        with pytest.raises(ForbiddenError):
            gateway.get_history(BUSINESS, "business-0", USER)
        with pytest.raises(ForbiddenError):
            gateway.get_stats(USER)

        assert seeded_store.get(BUSINESS, "business-0") == before

    @pytest.mark.parametrize("role", [None, "", "unknown-role"])
    def test_missing_or_unknown_role(self, gateway, role):
        with pytest.raises(ForbiddenError):
            gateway.get_stats(role)

    def test_forbidden_checked_before_lookup(self, gateway):
        with pytest.raises(ForbiddenError):
            gateway.decide(BUSINESS, "missing", ReviewVerb.APPROVE, USER, "user-1")

    def test_custom_role_with_partial_permissions(self, seeded_store):
        policy = RolePolicy({"viewer": ["submissions:list", "stats:read"]})
        gateway = ModerationGateway(seeded_store, policy)

        assert len(gateway.list_pending(BUSINESS, "viewer")) == 2
        assert gateway.get_stats("viewer").total_pending == 6
        with pytest.raises(ForbiddenError) as exc_info:
            gateway.decide(BUSINESS, "business-0", ReviewVerb.REJECT, "viewer", "v-1")
        assert exc_info.value.required_permission == "submissions:reject"


class TestListPending:

    def test_only_pending_of_kind(self, gateway, seeded_store):
        gateway.decide(BUSINESS, "business-0", ReviewVerb.APPROVE, ADMIN, "admin-1")

        pending = gateway.list_pending(BUSINESS, ADMIN)
        assert [s.id for s in pending] == ["business-1"]

    def test_all_kinds(self, gateway, seeded_store):
        queues = gateway.list_all_pending(ADMIN)
        assert set(queues) == set(SubmissionKind)
        assert [s.id for s in queues[SubmissionKind.ARTIST]] == ["artist-0", "artist-1"]


class TestDecide:

    def test_approve(self, gateway, seeded_store):
        result = gateway.decide(BUSINESS, "business-0", ReviewVerb.APPROVE, ADMIN, "admin-1")

        assert result.status == SubmissionStatus.APPROVED
        assert result.last_change.actor_id == "admin-1"
        assert seeded_store.get(BUSINESS, "business-0").status == SubmissionStatus.APPROVED

    def test_unknown_submission(self, gateway):
        with pytest.raises(SubmissionNotFoundError):
            gateway.decide(BUSINESS, "missing", ReviewVerb.APPROVE, ADMIN, "admin-1")

    def test_identical_replay_is_noop_success(self, gateway, seeded_store):
        first = gateway.decide(BUSINESS, "business-0", ReviewVerb.APPROVE, ADMIN, "admin-1")
        second = gateway.decide(BUSINESS, "business-0", ReviewVerb.APPROVE, ADMIN, "admin-1")

        assert first.status == second.status == SubmissionStatus.APPROVED
        stored = seeded_store.get(BUSINESS, "business-0")
        assert [c.status for c in stored.history] == [SubmissionStatus.APPROVED]

    def test_same_verb_by_other_operator_is_already_reviewed(self, gateway, seeded_store):
        gateway.decide(BUSINESS, "business-0", ReviewVerb.APPROVE, ADMIN, "admin-1")

        with pytest.raises(AlreadyReviewedError) as exc_info:
            gateway.decide(BUSINESS, "business-0", ReviewVerb.APPROVE, ADMIN, "admin-2")
        assert exc_info.value.status == SubmissionStatus.APPROVED

    def test_first_writer_wins(self, gateway, seeded_store):
        gateway.decide(BUSINESS, "business-0", ReviewVerb.APPROVE, ADMIN, "admin-1")

        with pytest.raises(AlreadyReviewedError):
            gateway.decide(BUSINESS, "business-0", ReviewVerb.REJECT, ADMIN, "admin-1")

        stored = seeded_store.get(BUSINESS, "business-0")
        assert stored.status == SubmissionStatus.APPROVED
        assert len(stored.history) == 1

    def test_terminal_monotonicity(self, gateway, seeded_store):
        for verb in [ReviewVerb.REJECT, ReviewVerb.APPROVE, ReviewVerb.REJECT]:
            try:
                gateway.decide(SubmissionKind.ARTIST, "artist-0", verb, ADMIN, "admin-1")
            except AlreadyReviewedError:
                pass

        stored = seeded_store.get(SubmissionKind.ARTIST, "artist-0")
        assert stored.status == SubmissionStatus.REJECTED
        assert len(stored.history) == 1
        assert stored.history[0].status in TERMINAL_STATUSES

    def test_conflict_retried_once_then_raised(self, role_policy):
        store = AlwaysConflictingStore()
        store.create(BUSINESS, "owner", submission_id="b-1")
        gateway = ModerationGateway(store, role_policy)

        with pytest.raises(StatusConflictError):
            gateway.decide(BUSINESS, "b-1", ReviewVerb.APPROVE, ADMIN, "admin-1")
        assert store.attempts == 2

    def test_max_attempts_must_be_positive(self, memory_store, role_policy):
        with pytest.raises(ValueError):
            ModerationGateway(memory_store, role_policy, max_attempts=0)

    def test_stats_failure_does_not_mask_decision(self, seeded_store, role_policy, caplog):
        gateway = ModerationGateway(
            seeded_store, role_policy, aggregator=BrokenAggregator(seeded_store)
        )

        with caplog.at_level(logging.ERROR, logger="moderation"):
            result = gateway.decide(BUSINESS, "business-0", ReviewVerb.REJECT, ADMIN, "admin-1")

        assert result.status == SubmissionStatus.REJECTED
        assert "Failed to invalidate stats" in caplog.text


class TestConcurrentDecisions:

    def test_opposing_verbs_have_one_winner(self, role_policy):
        store = RacingStore(parties=2)
        store.create(BUSINESS, "owner", submission_id="b-1")
        gateway = ModerationGateway(store, role_policy)
        outcomes = {}

        def operator(verb, actor):
            try:
                outcomes[actor] = gateway.decide(BUSINESS, "b-1", verb, ADMIN, actor)
            except AlreadyReviewedError as e:
                outcomes[actor] = e

        threads = [
            threading.Thread(target=operator, args=(ReviewVerb.APPROVE, "admin-1")),
            threading.Thread(target=operator, args=(ReviewVerb.REJECT, "admin-2")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        errors = [o for o in outcomes.values() if isinstance(o, AlreadyReviewedError)]
        winners = [o for o in outcomes.values() if not isinstance(o, AlreadyReviewedError)]
        assert len(errors) == 1
        assert len(winners) == 1

        # Bypass the barrier for the final read
        stored = InMemorySubmissionStore.get(store, BUSINESS, "b-1")
        assert stored.status == winners[0].status
        assert len(stored.history) == 1

    def test_unrelated_submissions_proceed_independently(self, gateway, seeded_store):
        threads = [
            threading.Thread(
                target=gateway.decide,
                args=(kind, f"{kind.value}-{n}", ReviewVerb.APPROVE, ADMIN, "admin-1"),
            )
            for kind in SubmissionKind
            for n in range(2)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert gateway.get_stats(ADMIN).total_pending == 0


class TestBatchAndHistory:

    def test_decide_many_reports_each_item(self, gateway, seeded_store):
        gateway.decide(BUSINESS, "business-1", ReviewVerb.APPROVE, ADMIN, "admin-1")

        result = gateway.decide_many(
            BUSINESS, ["business-0", "business-1", "missing"], ReviewVerb.REJECT, ADMIN, "admin-1"
        )

        assert [s.id for s in result.succeeded] == ["business-0"]
        assert {f["id"]: f["code"] for f in result.failed} == {
            "business-1": "already_reviewed",
            "missing": "not_found",
        }
        assert result.to_dict()["succeeded"] == ["business-0"]

    def test_history(self, gateway, seeded_store):
        assert gateway.get_history(BUSINESS, "business-0", ADMIN) == []

        gateway.decide(BUSINESS, "business-0", ReviewVerb.REJECT, ADMIN, "admin-7")
        history = gateway.get_history(BUSINESS, "business-0", ADMIN)

        assert len(history) == 1
        assert history[0].status == SubmissionStatus.REJECTED
        assert history[0].actor_id == "admin-7"


class TestStatsConsistency:

    def test_pending_counts_match_queues(self, gateway, seeded_store):
        gateway.decide(SubmissionKind.ORGANISATION, "organisation-0", ReviewVerb.APPROVE, ADMIN, "a")
        gateway.decide(SubmissionKind.ARTIST, "artist-1", ReviewVerb.REJECT, ADMIN, "a")

        stats = gateway.get_stats(ADMIN)
        for kind in SubmissionKind:
            assert stats.pending_for(kind) == len(gateway.list_pending(kind, ADMIN))

    def test_pending_counts_match_after_create(self, gateway, seeded_store):
        gateway.get_stats(ADMIN)

        seeded_store.create(BUSINESS, "owner-new", submission_id="business-new")

        stats = gateway.get_stats(ADMIN)
        assert stats.pending_businesses == 3
        for kind in SubmissionKind:
            assert stats.pending_for(kind) == len(gateway.list_pending(kind, ADMIN))

    def test_other_worker_sees_decision(self, seeded_store, role_policy):
        worker_1 = ModerationGateway(seeded_store, role_policy)
        worker_2 = ModerationGateway(seeded_store, role_policy)
        assert worker_2.get_stats(ADMIN).pending_artists == 2

        worker_1.decide(SubmissionKind.ARTIST, "artist-0", ReviewVerb.APPROVE, ADMIN, "admin-1")

        assert worker_2.get_stats(ADMIN).pending_artists == 1

    def test_cached_stats_follow_creates_and_decisions(self, role_policy):
        cache = StatsCache(ttl_seconds=60)
        store = InMemorySubmissionStore(on_create=cache.invalidate)
        store.create(BUSINESS, "owner-1", submission_id="b-1")
        gateway = ModerationGateway(
            store, role_policy, aggregator=StatsAggregator(store, cache)
        )
        assert gateway.get_stats(ADMIN).pending_businesses == 1

        store.create(BUSINESS, "owner-2", submission_id="b-2")
        assert gateway.get_stats(ADMIN).pending_businesses == 2

        gateway.decide(BUSINESS, "b-1", ReviewVerb.REJECT, ADMIN, "admin-1")
        stats = gateway.get_stats(ADMIN)
        assert stats.pending_businesses == len(gateway.list_pending(BUSINESS, ADMIN)) == 1

    def test_business_rejection_scenario(self, gateway, seeded_store):
        before = gateway.get_stats(ADMIN)

        result = gateway.decide(BUSINESS, "business-0", ReviewVerb.REJECT, ADMIN, "A1")

        assert result.status == SubmissionStatus.REJECTED
        assert "business-0" not in [s.id for s in gateway.list_pending(BUSINESS, ADMIN)]
        after = gateway.get_stats(ADMIN)
        assert after.pending_businesses == before.pending_businesses - 1
        assert after.total_pending == before.total_pending - 1
        assert after.businesses == before.businesses
