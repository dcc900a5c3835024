"""Per-shell session state and idle detection."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class SessionState:
    """Timestamps owned by one running shell, in epoch seconds."""

    last_sample_time: int
    last_activity_time: int

    @classmethod
    def started(cls, now: int) -> "SessionState":
        return cls(last_sample_time=now, last_activity_time=now)


class ActivityMonitor:
    """Tracks when the user last issued a command."""

    def __init__(self, state: SessionState) -> None:
        self._state = state

    @property
    def state(self) -> SessionState:
        return self._state

    def record_activity(self, now: int) -> None:
        self._state.last_activity_time = now

    def is_idle(self, now: int, idle_threshold: int) -> bool:
        return now - self._state.last_activity_time > idle_threshold


__all__ = ["ActivityMonitor", "SessionState"]
