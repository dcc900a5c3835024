"""branch-clock command line: shell hook entry points and reports."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import asdict
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from .config import BranchClockSettings, configure_logging, get_settings
from .git import GitNotFoundError, GitRunner
from .storage import (
    BranchTotal,
    DurationStore,
    StoreError,
    StoreUnavailableError,
    dump_export,
)
from .tracker import ContextResolver, Sampler, SessionState

logger = logging.getLogger(__name__)

RULE = "━" * 46

ZSH_HOOK = """\
# branch-clock: per-branch time tracking for zsh
zmodload zsh/datetime
typeset -g BRANCH_CLOCK_LAST_SAMPLE=0
typeset -g BRANCH_CLOCK_LAST_ACTIVITY=0
typeset -g BRANCH_CLOCK_ENABLED=0

function __branch_clock_start() {
    local state
    if state=$(command branch-clock session-start); then
        eval "$state"
        BRANCH_CLOCK_ENABLED=1
    fi
}

function __branch_clock_preexec() {
    BRANCH_CLOCK_LAST_ACTIVITY=$EPOCHSECONDS
}

function __branch_clock_precmd() {
    (( BRANCH_CLOCK_ENABLED )) || return
    (( EPOCHSECONDS - BRANCH_CLOCK_LAST_SAMPLE >= ${BRANCH_CLOCK_CHECK_INTERVAL:-600} )) || return
    local state
    state=$(command branch-clock sample \\
        --last-sample "$BRANCH_CLOCK_LAST_SAMPLE" \\
        --last-activity "$BRANCH_CLOCK_LAST_ACTIVITY") && eval "$state"
}

autoload -U add-zsh-hook
add-zsh-hook precmd __branch_clock_precmd
add-zsh-hook preexec __branch_clock_preexec
__branch_clock_start
"""


def load_store(settings: BranchClockSettings) -> DurationStore:
    """Construct a DurationStore using the provided settings."""

    return DurationStore.from_settings(settings)


def load_resolver(settings: BranchClockSettings) -> ContextResolver:
    """Construct the git-backed repository/branch resolver."""

    return GitRunner(Path(settings.git_path) if settings.git_path else None)


def format_duration(seconds: int) -> str:
    hours, remainder = divmod(seconds, 3600)
    return f"{hours:3d}h {remainder // 60:2d}m"


def _state_assignments(state: SessionState) -> str:
    return (
        f"BRANCH_CLOCK_LAST_SAMPLE={state.last_sample_time} "
        f"BRANCH_CLOCK_LAST_ACTIVITY={state.last_activity_time}"
    )


def _confirm(prompt: str, reader: Callable[[str], str] | None = None) -> bool:
    reader = reader or input
    try:
        answer = reader(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() == "y"


def _print_totals(repository: str, totals: list[BranchTotal]) -> None:
    print(f"Repository: {repository}")
    print()
    print("Time spent per branch:")
    print(RULE)
    for total in totals:
        print(f"{total.branch:<40} {format_duration(total.total_seconds)}")


def cmd_session_start(args: argparse.Namespace, settings: BranchClockSettings) -> int:
    store = load_store(settings)
    try:
        store.ensure_available()
    except StoreUnavailableError as exc:
        print(f"branch-clock: tracking disabled for this session: {exc}", file=sys.stderr)
        return 1
    now = args.now if args.now is not None else int(time.time())
    print(_state_assignments(SessionState.started(now)))
    return 0


def cmd_sample(args: argparse.Namespace, settings: BranchClockSettings) -> int:
    now = args.now if args.now is not None else int(time.time())
    state = SessionState(last_sample_time=args.last_sample, last_activity_time=args.last_activity)

    try:
        resolver = load_resolver(settings)
    except GitNotFoundError as exc:
        logger.warning("Sampling skipped", extra={"error": str(exc)})
        print(_state_assignments(state))
        return 0

    sampler = Sampler.from_settings(settings, load_store(settings), resolver, state)
    outcome = sampler.sample(now) if args.force else sampler.maybe_sample(now)
    logger.debug("Sample finished", extra={"outcome": outcome.value})
    print(_state_assignments(sampler.state))
    return 0


def cmd_stats(args: argparse.Namespace, settings: BranchClockSettings) -> int:
    store = load_store(settings)

    if args.all:
        try:
            grouped = store.aggregate_by_repository(args.branch)
        except StoreError as exc:
            print(f"Tracking data unavailable: {exc}", file=sys.stderr)
            return 1
        if args.json:
            payload = {repo: [asdict(total) for total in totals] for repo, totals in grouped.items()}
            print(json.dumps(payload, indent=2))
            return 0
        print("Time tracking statistics (all repositories)")
        print(RULE)
        print()
        if not grouped:
            print("No tracking data available.")
            return 0
        for repository, totals in grouped.items():
            _print_totals(repository, totals)
            print()
        return 0

    try:
        resolver = load_resolver(settings)
    except GitNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    repository = resolver.resolve_repository_root()
    if repository is None:
        print("Not in a git repository. Use --all to see stats from all repositories.")
        return 1
    branch = args.branch or resolver.resolve_current_branch()

    try:
        totals = store.aggregate(repository, branch)
    except StoreError as exc:
        print(f"Tracking data unavailable: {exc}", file=sys.stderr)
        return 1

    if args.json:
        payload = {repository: [asdict(total) for total in totals]}
        print(json.dumps(payload, indent=2))
        return 0
    if not totals:
        print("No tracking data available for this repository.")
        return 0
    _print_totals(repository, totals)
    return 0


def cmd_export(args: argparse.Namespace, settings: BranchClockSettings) -> int:
    store = load_store(settings)
    try:
        document = store.export()
    except StoreError as exc:
        print(f"Tracking data unavailable: {exc}", file=sys.stderr)
        return 1

    output_text = dump_export(document, args.format)
    if args.output == "-":
        sys.stdout.write(output_text)
        return 0

    output_path = Path(args.output or f"branch-clock-export.{args.format}")
    output_path.write_text(output_text, encoding="utf-8")
    print(f"Data exported to: {output_path}")
    return 0


def cmd_clear(args: argparse.Namespace, settings: BranchClockSettings) -> int:
    store = load_store(settings)

    if args.all:
        if not (args.yes or _confirm("Clear all tracking data?")):
            print("Cancelled.")
            return 0
        try:
            store.clear_all()
        except StoreError as exc:
            print(f"Could not clear tracking data: {exc}", file=sys.stderr)
            return 1
        print("All tracking data cleared.")
        return 0

    try:
        resolver = load_resolver(settings)
    except GitNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    repository = resolver.resolve_repository_root()
    if repository is None:
        print("Not in a git repository.")
        return 1
    if not (args.yes or _confirm("Clear tracking data for this repository?")):
        print("Cancelled.")
        return 0
    try:
        store.clear_repository(repository)
    except StoreError as exc:
        print(f"Could not clear tracking data: {exc}", file=sys.stderr)
        return 1
    print("Tracking data cleared for this repository.")
    return 0


def cmd_shell_init(args: argparse.Namespace, settings: BranchClockSettings) -> int:
    sys.stdout.write(ZSH_HOOK)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="branch-clock",
        description="Track time spent on git branches across repositories",
    )
    sub = parser.add_subparsers(dest="cmd")

    p_start = sub.add_parser("session-start", help="Check storage and print initial session state")
    p_start.add_argument("--now", type=int, default=None, help=argparse.SUPPRESS)
    p_start.set_defaults(func=cmd_session_start)

    p_sample = sub.add_parser("sample", help="Record elapsed time for the current branch")
    p_sample.add_argument("--last-sample", type=int, required=True)
    p_sample.add_argument("--last-activity", type=int, required=True)
    p_sample.add_argument("--now", type=int, default=None, help=argparse.SUPPRESS)
    p_sample.add_argument(
        "--force",
        action="store_true",
        help="Sample even if the check interval has not elapsed",
    )
    p_sample.set_defaults(func=cmd_sample)

    p_stats = sub.add_parser("stats", help="Show time spent per branch")
    p_stats.add_argument("-a", "--all", action="store_true", help="Report every repository")
    p_stats.add_argument("-b", "--branch", default=None, help="Only report this branch")
    p_stats.add_argument("--json", action="store_true", help="Output JSON")
    p_stats.set_defaults(func=cmd_stats)

    p_export = sub.add_parser("export", help="Export all tracking data")
    p_export.add_argument(
        "output",
        nargs="?",
        default=None,
        help="Output path (default: branch-clock-export.<format>, '-' for stdout)",
    )
    p_export.add_argument(
        "--format",
        choices=("json", "yaml"),
        default="json",
        help="Output format (default: json)",
    )
    p_export.set_defaults(func=cmd_export)

    p_clear = sub.add_parser("clear", help="Clear tracking data")
    p_clear.add_argument("-a", "--all", action="store_true", help="Clear every repository")
    p_clear.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p_clear.set_defaults(func=cmd_clear)

    p_shell = sub.add_parser("shell-init", help="Print the zsh integration script")
    p_shell.set_defaults(func=cmd_shell_init)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        settings = get_settings()
    except ValidationError as exc:
        print(f"Invalid branch-clock configuration: {exc}", file=sys.stderr)
        raise SystemExit(2)
    configure_logging(settings.log_level)

    exit_code = args.func(args, settings)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
