"""Read-only reporting tools exposed over MCP."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Literal

from fastmcp import Context, FastMCP

from ..config import BranchClockSettings
from ..storage import BranchTotal, DurationStore, dump_export

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    branch_stats: Any
    repository_stats: Any
    export_durations: Any


def _serialize_totals(totals: list[BranchTotal]) -> list[dict[str, Any]]:
    return [asdict(total) for total in totals]


def register_tools(
    server: FastMCP,
    *,
    store: DurationStore,
    settings: BranchClockSettings,
) -> ToolHandles:
    """Register branch-clock's reporting tools on the server."""

    def _branch_stats(
        repository: str | None = None,
        branch: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Per-branch totals for one repository, or for all repositories combined."""

        totals = store.aggregate(repository, branch)
        _emit_log(
            context,
            "debug",
            "Computed branch totals",
            extra={"repository": repository, "branch": branch, "count": len(totals)},
        )
        return {
            "repository": repository,
            "branch": branch,
            "totals": _serialize_totals(totals),
            "total_seconds": sum(total.total_seconds for total in totals),
        }

    def _repository_stats(
        branch: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Per-branch totals grouped by repository."""

        grouped = store.aggregate_by_repository(branch)
        _emit_log(
            context,
            "debug",
            "Computed repository totals",
            extra={"branch": branch, "repositories": len(grouped)},
        )
        return {
            "branch": branch,
            "repositories": {
                repository: _serialize_totals(totals) for repository, totals in grouped.items()
            },
        }

    def _export_durations(
        format: Literal["json", "yaml"] = "json",
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Export every stored duration record as JSON or YAML."""

        document = store.export()
        payload = {"format": format, "data": dump_export(document, format)}
        _emit_log(
            context,
            "info",
            "Exported durations",
            extra={"format": format, "repositories": len(document.repositories)},
        )
        return payload

    tool_branch_stats = server.tool(
        name="branch_stats",
        description=(
            "Total tracked time per git branch. Pass a repository path to scope the "
            "report, and a branch name to filter it; omit both for a combined report."
        ),
    )(_branch_stats)

    tool_repository_stats = server.tool(
        name="repository_stats",
        description="Total tracked time per git branch, grouped by repository.",
    )(_repository_stats)

    tool_export = server.tool(
        name="export_durations",
        description=(
            "Export the full duration store with a generation timestamp "
            f"(store: {settings.store_path})."
        ),
    )(_export_durations)

    return ToolHandles(
        branch_stats=tool_branch_stats,
        repository_stats=tool_repository_stats,
        export_durations=tool_export,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["ToolHandles", "register_tools"]
