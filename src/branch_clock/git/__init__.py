"""git CLI helpers that resolve the tracking context."""

from .runner import FakeGitRunner, GitExecutionResult, GitNotFoundError, GitRunner, GitRunnerError

__all__ = [
    "FakeGitRunner",
    "GitExecutionResult",
    "GitNotFoundError",
    "GitRunner",
    "GitRunnerError",
]
