"""FastMCP reporting server for branch-clock."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastmcp import FastMCP

from . import __version__
from .config import BranchClockSettings, configure_logging, get_settings
from .storage import DurationStore, StoreError
from .tools import register_tools


def create_server(
    settings: Optional[BranchClockSettings] = None,
    store: DurationStore | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server over the configured duration store."""

    settings = settings or get_settings()
    store = store or DurationStore.from_settings(settings)

    store_metadata = {
        "available": False,
        "path": str(store.path),
        "error": None,
    }
    try:
        store.ensure_available()
        store_metadata["available"] = True
    except StoreError as exc:
        store_metadata["error"] = str(exc)

    server = FastMCP(
        name="branch-clock",
        instructions=(
            "branch-clock records how long each git branch was worked on from the "
            "shell. Use the provided tools to report per-branch totals or export "
            "the raw duration records. The tools never modify tracking data."
        ),
    )

    handles = register_tools(server, store=store, settings=settings)

    def status_payload() -> str:
        """Return a JSON string summarizing the store and tracking settings."""

        repository_count = None
        record_count = None
        store_error = store_metadata["error"]
        try:
            document = store.load()
            repository_count = len(document.repositories)
            record_count = sum(len(entry.durations) for entry in document.repositories.values())
        except StoreError as exc:
            store_error = str(exc)

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "store": {
                **store_metadata,
                "error": store_error,
                "repositories": repository_count,
                "records": record_count,
            },
            "tracking": {
                "check_interval": settings.check_interval,
                "idle_threshold": settings.idle_threshold,
                "duration_merge_threshold": settings.duration_merge_threshold,
                "sleep_suspend_bound": settings.sleep_suspend_bound,
            },
        }
        return json.dumps(payload)

    server.resource(
        "resource://branch-clock/status",
        name="branch_clock_status",
        description="Provides the current state of the branch-clock duration store.",
        mime_type="application/json",
    )(status_payload)

    setattr(server, "duration_store", store)
    setattr(server, "store_metadata", store_metadata)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_payload", status_payload)
    return server


def main() -> None:
    """Entry point for running the branch-clock MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching branch-clock MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "store_available": getattr(server, "store_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
