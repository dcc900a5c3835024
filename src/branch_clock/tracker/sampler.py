"""Periodic sampling that turns elapsed shell time into branch durations."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from ..storage import DurationStore, StoreCorruptedError, StoreError
from .session import ActivityMonitor, SessionState

if TYPE_CHECKING:  # pragma: no cover
    from ..config import BranchClockSettings

logger = logging.getLogger(__name__)


class ContextResolver(Protocol):
    """Answers which repository and branch the shell is currently in."""

    def resolve_repository_root(self) -> str | None:
        ...

    def resolve_current_branch(self) -> str | None:
        ...


class SampleOutcome(str, Enum):
    NOT_DUE = "not_due"
    NO_CONTEXT = "no_context"
    IDLE = "idle"
    DISCONTINUITY = "discontinuity"
    RECORDED = "recorded"
    FAILED = "failed"


class Sampler:
    """Decides whether elapsed time since the last sample counts as work.

    Idle time (no command within ``idle_threshold``) and deltas of at least
    ``sleep_suspend_bound`` (the machine was suspended) are dropped. Storage
    failures are logged and never raised to the calling shell.
    """

    def __init__(
        self,
        store: DurationStore,
        resolver: ContextResolver,
        state: SessionState,
        *,
        check_interval: int = 600,
        idle_threshold: int = 1800,
        sleep_suspend_bound: int = 3600,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._monitor = ActivityMonitor(state)
        self._check_interval = check_interval
        self._idle_threshold = idle_threshold
        self._sleep_suspend_bound = sleep_suspend_bound

    @classmethod
    def from_settings(
        cls,
        settings: "BranchClockSettings",
        store: DurationStore,
        resolver: ContextResolver,
        state: SessionState,
    ) -> "Sampler":
        return cls(
            store,
            resolver,
            state,
            check_interval=settings.check_interval,
            idle_threshold=settings.idle_threshold,
            sleep_suspend_bound=settings.sleep_suspend_bound,
        )

    @property
    def state(self) -> SessionState:
        return self._monitor.state

    @property
    def monitor(self) -> ActivityMonitor:
        return self._monitor

    def record_activity(self, now: int) -> None:
        self._monitor.record_activity(now)

    def maybe_sample(self, now: int) -> SampleOutcome:
        if now - self.state.last_sample_time < self._check_interval:
            return SampleOutcome.NOT_DUE
        return self.sample(now)

    def sample(self, now: int) -> SampleOutcome:
        repository = self._resolver.resolve_repository_root()
        if repository is None:
            return SampleOutcome.NO_CONTEXT
        branch = self._resolver.resolve_current_branch()
        if branch is None:
            return SampleOutcome.NO_CONTEXT

        state = self.state
        if self._monitor.is_idle(now, self._idle_threshold):
            state.last_activity_time = now
            state.last_sample_time = now
            logger.debug("Skipping idle sample", extra={"repository": repository, "branch": branch})
            return SampleOutcome.IDLE

        delta = now - state.last_sample_time
        if delta < 0 or delta >= self._sleep_suspend_bound:
            # the wall clock stepped back, or the machine was suspended
            outcome = SampleOutcome.DISCONTINUITY
            logger.info(
                "Discarding sample across clock discontinuity",
                extra={"repository": repository, "branch": branch, "delta": delta},
            )
        else:
            outcome = self._record(repository, branch, now - delta, delta)

        state.last_sample_time = now
        return outcome

    def _record(self, repository: str, branch: str, sample_start: int, delta: int) -> SampleOutcome:
        try:
            self._store.record(repository, branch, sample_start, delta)
        except StoreCorruptedError as exc:
            logger.error(
                "Tracking data is unreadable; sample dropped",
                extra={"repository": repository, "branch": branch, "error": str(exc)},
            )
            return SampleOutcome.FAILED
        except StoreError as exc:
            logger.warning(
                "Could not record sample; sample dropped",
                extra={"repository": repository, "branch": branch, "error": str(exc)},
            )
            return SampleOutcome.FAILED
        return SampleOutcome.RECORDED


__all__ = ["ContextResolver", "SampleOutcome", "Sampler"]
