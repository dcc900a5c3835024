"""Utility helpers for the git runner."""

from __future__ import annotations

import os
from typing import Mapping

_SANITIZED_VARS = {
    "GIT_TRACE",
    "GIT_TRACE_PERFORMANCE",
    "GIT_PAGER",
    "PAGER",
}

_FORCED_VARS = {
    # read-only queries must never take the index lock of a repo in use
    "GIT_OPTIONAL_LOCKS": "0",
    "GIT_TERMINAL_PROMPT": "0",
    "LC_ALL": "C",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for git subprocess execution."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    env.update(_FORCED_VARS)
    if additional:
        env.update(additional)
    return env
