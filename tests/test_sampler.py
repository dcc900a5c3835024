from __future__ import annotations

from pathlib import Path

import pytest

from branch_clock.git import FakeGitRunner
from branch_clock.storage import DurationStore, StoreWriteError
from branch_clock.tracker import ActivityMonitor, SampleOutcome, Sampler, SessionState

REPO = "/work/project"
T0 = 1_700_000_000


def _sampler(store: DurationStore, resolver: FakeGitRunner, *, start: int = T0) -> Sampler:
    return Sampler(
        store,
        resolver,
        SessionState.started(start),
        check_interval=600,
        idle_threshold=1800,
        sleep_suspend_bound=3600,
    )


def test_activity_monitor_idle_boundary() -> None:
    monitor = ActivityMonitor(SessionState.started(T0))

    assert monitor.is_idle(T0 + 1800, 1800) is False
    assert monitor.is_idle(T0 + 1801, 1800) is True

    monitor.record_activity(T0 + 1000)
    assert monitor.state.last_activity_time == T0 + 1000
    assert monitor.is_idle(T0 + 2800, 1800) is False
    assert monitor.is_idle(T0 + 2801, 1800) is True


def test_maybe_sample_waits_for_check_interval(store: DurationStore) -> None:
    resolver = FakeGitRunner(REPO, "main")
    sampler = _sampler(store, resolver)

    assert sampler.maybe_sample(T0 + 599) is SampleOutcome.NOT_DUE
    assert resolver.invocations == []
    assert sampler.state.last_sample_time == T0

    sampler.record_activity(T0 + 550)
    assert sampler.maybe_sample(T0 + 600) is SampleOutcome.RECORDED
    assert store.aggregate(REPO)[0].total_seconds == 600
    assert sampler.state.last_sample_time == T0 + 600


def test_consecutive_samples_build_one_interval(store: DurationStore) -> None:
    sampler = _sampler(store, FakeGitRunner(REPO, "main"))

    for step in (600, 1200, 1800, 2400):
        sampler.record_activity(T0 + step - 10)
        assert sampler.maybe_sample(T0 + step) is SampleOutcome.RECORDED

    durations = store.load().repositories[REPO].durations
    assert len(durations) == 1
    assert (durations[0].start, durations[0].end) == (T0, T0 + 2400)


def test_outside_repository_leaves_state_untouched(store: DurationStore) -> None:
    sampler = _sampler(store, FakeGitRunner(None, None))

    assert sampler.sample(T0 + 700) is SampleOutcome.NO_CONTEXT
    assert sampler.state == SessionState(last_sample_time=T0, last_activity_time=T0)
    assert not store.path.exists()


def test_detached_head_is_no_context(store: DurationStore) -> None:
    sampler = _sampler(store, FakeGitRunner(REPO, None))

    assert sampler.sample(T0 + 700) is SampleOutcome.NO_CONTEXT
    assert sampler.state.last_sample_time == T0


def test_idle_session_discards_time_and_resets_both_timestamps(store: DurationStore) -> None:
    sampler = _sampler(store, FakeGitRunner(REPO, "main"))

    assert sampler.sample(T0 + 1801) is SampleOutcome.IDLE
    assert sampler.state == SessionState(last_sample_time=T0 + 1801, last_activity_time=T0 + 1801)
    assert store.aggregate(REPO) == []


def test_suspend_gap_is_discarded_but_advances_sample_time(store: DurationStore) -> None:
    sampler = _sampler(store, FakeGitRunner(REPO, "main"))
    sampler.record_activity(T0 + 3590)

    assert sampler.sample(T0 + 3600) is SampleOutcome.DISCONTINUITY
    assert sampler.state.last_sample_time == T0 + 3600
    assert sampler.state.last_activity_time == T0 + 3590
    assert store.aggregate(REPO) == []


def test_clock_stepping_back_is_discontinuity(store: DurationStore) -> None:
    sampler = _sampler(store, FakeGitRunner(REPO, "main"))

    assert sampler.sample(T0 - 5) is SampleOutcome.DISCONTINUITY
    assert sampler.state.last_sample_time == T0 - 5
    assert not store.path.exists()

    sampler.record_activity(T0 + 500)
    assert sampler.sample(T0 + 595) is SampleOutcome.RECORDED
    assert store.aggregate(REPO)[0].total_seconds == 600


def test_delta_just_below_suspend_bound_is_recorded(store: DurationStore) -> None:
    sampler = _sampler(store, FakeGitRunner(REPO, "main"))
    sampler.record_activity(T0 + 3590)

    assert sampler.sample(T0 + 3599) is SampleOutcome.RECORDED
    assert store.aggregate(REPO)[0].total_seconds == 3599


def test_branch_switch_attributes_time_to_current_branch(store: DurationStore) -> None:
    resolver = FakeGitRunner(REPO, "main")
    sampler = _sampler(store, resolver)

    sampler.record_activity(T0 + 500)
    sampler.sample(T0 + 600)
    resolver.branch = "feature"
    sampler.record_activity(T0 + 1100)
    sampler.sample(T0 + 1200)
    resolver.branch = "main"
    sampler.record_activity(T0 + 1700)
    sampler.sample(T0 + 1800)

    durations = [(r.branch, r.start - T0, r.end - T0) for r in store.load().repositories[REPO].durations]
    assert durations == [("main", 0, 1800), ("feature", 600, 1200)]


def test_store_failure_is_reported_not_raised(
    store: DurationStore,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def failing_record(*_args, **_kwargs):
        raise StoreWriteError("disk full")

    monkeypatch.setattr(store, "record", failing_record)
    sampler = _sampler(store, FakeGitRunner(REPO, "main"))
    sampler.record_activity(T0 + 500)

    with caplog.at_level("WARNING"):
        assert sampler.sample(T0 + 600) is SampleOutcome.FAILED

    assert sampler.state.last_sample_time == T0 + 600
    assert "sample dropped" in caplog.text


def test_corrupted_store_is_reported_not_raised(store: DurationStore, tmp_path: Path) -> None:
    store.path.parent.mkdir(parents=True)
    store.path.write_text("[]", encoding="utf-8")
    sampler = _sampler(store, FakeGitRunner(REPO, "main"))
    sampler.record_activity(T0 + 500)

    assert sampler.sample(T0 + 600) is SampleOutcome.FAILED
    assert store.path.read_text(encoding="utf-8") == "[]"


def test_from_settings_uses_configured_thresholds(settings, store: DurationStore) -> None:
    sampler = Sampler.from_settings(settings, store, FakeGitRunner(REPO, "main"), SessionState.started(T0))

    assert sampler.maybe_sample(T0 + settings.check_interval - 1) is SampleOutcome.NOT_DUE
    assert sampler.sample(T0 + settings.idle_threshold + 1) is SampleOutcome.IDLE
