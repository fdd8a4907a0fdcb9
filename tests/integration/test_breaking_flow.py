"""Integration tests for breaking alerts against a real store."""

import sqlite3
from collections.abc import Generator

import pytest

from news_digest.config.schemas import BreakingSettings
from news_digest.pipeline.breaking import BreakingAlertRunner
from news_digest.store.store import StateStore
from news_digest.urgency.detector import UrgencyDetector
from news_digest.urgency.models import SkipReason
from tests.helpers.factories import make_cluster, make_profile, persist_cluster
from tests.helpers.fakes import RecordingDispatcher
from tests.helpers.time import FIXED_NOW


SIX_SOURCES = ["A", "B", "C", "D", "E", "F"]


class LockedForAlice(StateStore):
    """Store whose alert lookups fail for one user."""

    def has_alert(self, user: str, cluster_id: str) -> bool:
        if user == "alice":
            msg = "database is locked"
            raise sqlite3.OperationalError(msg)
        return super().has_alert(user, cluster_id)


@pytest.fixture
def store() -> Generator[StateStore]:
    """Create a connected in-memory store."""
    store = StateStore(":memory:", run_id="test-run")
    store.connect()
    yield store
    store.close()


def _runner(
    store: StateStore, dispatcher: RecordingDispatcher, **overrides: object
) -> BreakingAlertRunner:
    settings = BreakingSettings.model_validate(overrides)
    detector = UrgencyDetector(store, settings, min_sources_for_trending=3, run_id="t")
    return BreakingAlertRunner(store, detector, dispatcher, settings, run_id="t")


def _critical(store: StateStore, cluster_id: str = "quake") -> None:
    # urgency 1.0: velocity 0.3, sources 0.3, fresh 0.2, breaking term 0.2
    persist_cluster(
        store,
        make_cluster(
            cluster_id,
            label="Breaking: earthquake hits coast",
            sources=SIX_SOURCES,
            peak_velocity=5.0,
        ),
    )


def _urgent(store: StateStore, cluster_id: str = "storm") -> None:
    # urgency 0.8: above the threshold, below the critical level
    persist_cluster(
        store,
        make_cluster(
            cluster_id,
            label="Storm moves up the coast",
            sources=SIX_SOURCES,
            peak_velocity=3.0,
        ),
    )


class TestBreakingFlow:
    """Tests for the check, gate, send and record sequence."""

    def test_critical_alert_overrides_quiet_hours(self, store: StateStore) -> None:
        """A critical story reaches a user during their quiet hours."""
        _critical(store)
        dispatcher = RecordingDispatcher()
        users = {"alice": make_profile(), "bob": make_profile(breaking_enabled=False)}

        result = _runner(store, dispatcher).run(users, FIXED_NOW)

        assert result.candidates == 1
        assert result.alerts_sent == 1
        assert dispatcher.alerts == [("alice", "quake")]
        sent = [r for r in result.results if r.sent]
        assert sent[0].decision.quiet_hours_overridden
        skipped = [r for r in result.results if not r.sent]
        assert skipped[0].decision.reason == SkipReason.BREAKING_DISABLED
        assert store.has_alert("alice", "quake")
        assert not store.has_alert("bob", "quake")

    def test_story_alerts_once_per_user(self, store: StateStore) -> None:
        """A second check does not repeat an alert."""
        _critical(store)
        dispatcher = RecordingDispatcher()
        users = {"alice": make_profile()}
        _runner(store, dispatcher).run(users, FIXED_NOW)

        result = _runner(store, dispatcher).run(users, FIXED_NOW)

        assert result.alerts_sent == 0
        assert result.results[0].decision.reason == SkipReason.ALREADY_ALERTED
        assert len(dispatcher.alerts) == 1

    def test_quiet_hours_hold_non_critical(self, store: StateStore) -> None:
        """Non-critical stories wait out quiet hours unless forced."""
        _urgent(store)
        dispatcher = RecordingDispatcher()
        night_owl = {"alice": make_profile()}
        daytime = {"carol": make_profile(timezone="Australia/Sydney")}

        quiet = _runner(store, dispatcher).run(night_owl, FIXED_NOW)
        forced = _runner(store, dispatcher).run(night_owl, FIXED_NOW, force=True)
        awake = _runner(store, dispatcher).run(daytime, FIXED_NOW)

        assert quiet.results[0].decision.reason == SkipReason.QUIET_HOURS
        assert forced.alerts_sent == 1
        assert awake.alerts_sent == 1
        assert dispatcher.alerts == [("alice", "storm"), ("carol", "storm")]

    def test_daily_cap(self, store: StateStore) -> None:
        """The cap stops alerts even for critical stories."""
        _critical(store, "quake")
        _critical(store, "fire")
        dispatcher = RecordingDispatcher()

        result = _runner(store, dispatcher, max_per_day=1).run(
            {"alice": make_profile()}, FIXED_NOW
        )

        assert result.candidates == 2
        assert result.alerts_sent == 1
        reasons = [r.decision.reason for r in result.results if not r.sent]
        assert reasons == [SkipReason.DAILY_CAP]

    def test_failed_delivery_is_not_recorded(self, store: StateStore) -> None:
        """A failed send leaves no record, so the next check retries."""
        _critical(store)
        users = {"alice": make_profile()}

        failed = _runner(store, RecordingDispatcher(fail_users={"alice"})).run(
            users, FIXED_NOW
        )
        assert len(failed.errors) == 1
        assert not store.has_alert("alice", "quake")

        retried = _runner(store, RecordingDispatcher()).run(users, FIXED_NOW)
        assert retried.alerts_sent == 1

    def test_disabled_globally(self, store: StateStore) -> None:
        """Nothing is evaluated when breaking alerts are off."""
        _critical(store)
        dispatcher = RecordingDispatcher()

        result = _runner(store, dispatcher, enabled=False).run(
            {"alice": make_profile()}, FIXED_NOW
        )

        assert result.candidates == 0
        assert dispatcher.alerts == []

    def test_store_failure_is_isolated(self) -> None:
        """A store error for one user does not stop alerts to the others."""
        store = LockedForAlice(":memory:", run_id="test-run")
        store.connect()
        try:
            _critical(store)
            dispatcher = RecordingDispatcher()
            users = {"alice": make_profile(), "bob": make_profile()}

            result = _runner(store, dispatcher).run(users, FIXED_NOW)
        finally:
            store.close()

        assert result.alerts_sent == 1
        assert dispatcher.alerts == [("bob", "quake")]
        assert [r.decision.user for r in result.errors] == ["alice"]
        assert "database is locked" in (result.errors[0].error or "")
