from __future__ import annotations

from pathlib import Path

import pytest

from branch_clock.config import BranchClockSettings
from branch_clock.storage import DurationStore


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> BranchClockSettings:
    monkeypatch.setenv("BRANCH_CLOCK_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("BRANCH_CLOCK_STORE_FILE", raising=False)
    monkeypatch.delenv("BRANCH_CLOCK_MERGE_THRESHOLD", raising=False)
    monkeypatch.delenv("BRANCH_CLOCK_CHECK_INTERVAL", raising=False)
    monkeypatch.delenv("BRANCH_CLOCK_IDLE_THRESHOLD", raising=False)
    return BranchClockSettings()


@pytest.fixture
def store(tmp_path: Path) -> DurationStore:
    return DurationStore(tmp_path / "data" / "durations.json", clock=lambda: 1_700_000_000)
