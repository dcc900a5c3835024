from __future__ import annotations

from pathlib import Path

import pytest

from branch_clock.git import FakeGitRunner, GitNotFoundError, GitRunner
from branch_clock.git.utils import sanitize_environment


def _fake_git(tmp_path: Path, body: str) -> Path:
    script = tmp_path / "git"
    script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    script.chmod(0o755)
    return script


def test_resolves_repository_and_branch(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    script = _fake_git(
        tmp_path,
        f"""
case "$1" in
  rev-parse) echo "{repo}" ;;
  symbolic-ref) echo "feature/login" ;;
  *) exit 1 ;;
esac
""",
    )

    runner = GitRunner(script)

    assert runner.resolve_repository_root() == str(repo.resolve())
    assert runner.resolve_current_branch() == "feature/login"


def test_repository_root_is_canonical(tmp_path: Path) -> None:
    real = tmp_path / "real"
    real.mkdir()
    link = tmp_path / "link"
    link.symlink_to(real)
    script = _fake_git(tmp_path, f'echo "{link}"\n')

    assert GitRunner(script).resolve_repository_root() == str(real.resolve())


def test_outside_repository_returns_none(tmp_path: Path) -> None:
    script = _fake_git(tmp_path, 'echo "fatal: not a git repository" >&2\nexit 128\n')

    runner = GitRunner(script)

    assert runner.resolve_repository_root() is None
    assert runner.resolve_current_branch() is None


def test_detached_head_returns_none(tmp_path: Path) -> None:
    script = _fake_git(
        tmp_path,
        """
case "$1" in
  rev-parse) echo "/tmp" ;;
  symbolic-ref) exit 1 ;;
esac
""",
    )

    assert GitRunner(script).resolve_current_branch() is None


def test_slow_git_times_out(tmp_path: Path) -> None:
    script = _fake_git(tmp_path, "exec sleep 5\n")

    runner = GitRunner(script, timeout=0.2)

    assert runner.resolve_current_branch() is None


def test_runs_in_requested_directory(tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()
    script = _fake_git(tmp_path, "pwd\n")

    runner = GitRunner(script, cwd=workdir)

    assert runner.resolve_current_branch() == str(workdir.resolve())


def test_git_not_found(tmp_path: Path) -> None:
    with pytest.raises(GitNotFoundError):
        GitRunner(tmp_path / "missing")


def test_git_not_on_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(GitNotFoundError):
        GitRunner()


def test_fake_git_runner_records_invocations() -> None:
    fake = FakeGitRunner("/work/project", "main")

    assert fake.resolve_repository_root() == "/work/project"
    assert fake.resolve_current_branch() == "main"
    assert fake.invocations == ["repository", "branch"]


def test_sanitize_environment_disables_optional_locks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_PAGER", "less")
    env = sanitize_environment({"EXTRA": "1"})

    assert "GIT_PAGER" not in env
    assert env["GIT_OPTIONAL_LOCKS"] == "0"
    assert env["EXTRA"] == "1"
