"""Synchronous runner for the git CLI."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .utils import sanitize_environment

logger = logging.getLogger(__name__)


class GitRunnerError(RuntimeError):
    """Base class for git runner errors."""


class GitNotFoundError(GitRunnerError):
    """Raised when the git executable cannot be located."""


@dataclass(slots=True)
class GitExecutionResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Answer "which repository and branch is this shell in" using git."""

    def __init__(
        self,
        executable: Path | None = None,
        *,
        cwd: Path | None = None,
        timeout: float = 2.0,
    ) -> None:
        self._executable_path = self._resolve_executable(executable)
        self._cwd = cwd
        self._timeout = timeout

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    def resolve_repository_root(self) -> str | None:
        """Return the canonical top-level directory of the current repository."""

        output = self._query("rev-parse", "--show-toplevel")
        if output is None:
            return None
        return str(Path(output).resolve())

    def resolve_current_branch(self) -> str | None:
        """Return the checked-out branch name, or None on a detached HEAD."""

        return self._query("symbolic-ref", "--short", "-q", "HEAD")

    def _query(self, *args: str) -> str | None:
        try:
            result = self._invoke(*args)
        except subprocess.TimeoutExpired:
            logger.warning("git query timed out", extra={"git_args": args, "timeout": self._timeout})
            return None
        except OSError as exc:
            logger.warning("git query failed to start", extra={"git_args": args, "error": str(exc)})
            return None
        if not result.ok:
            return None
        output = result.stdout.strip()
        return output or None

    def _invoke(self, *args: str) -> GitExecutionResult:
        cmd = [str(self._executable_path), *args]
        process = subprocess.run(
            cmd,
            cwd=str(self._cwd) if self._cwd is not None else None,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=self._timeout,
            env=sanitize_environment(),
        )
        stdout = process.stdout.decode("utf-8", errors="replace")
        stderr = process.stderr.decode("utf-8", errors="replace")
        return GitExecutionResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


class FakeGitRunner(GitRunner):
    """Test double that answers repository and branch queries from fixed values."""

    def __init__(self, repository: str | None = None, branch: str | None = None) -> None:  # type: ignore[override]
        self.repository = repository
        self.branch = branch
        self._executable_path = Path("/tmp/fake-git")
        self._invocations: list[str] = []

    def resolve_repository_root(self) -> str | None:  # type: ignore[override]
        self._invocations.append("repository")
        return self.repository

    def resolve_current_branch(self) -> str | None:  # type: ignore[override]
        self._invocations.append("branch")
        return self.branch

    @property
    def invocations(self) -> list[str]:
        return self._invocations
