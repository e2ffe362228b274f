"""Queue tasks for reconciliation, search and import.

This module implements:
    - manual_sync_task: Operator-initiated reconciliation
    - scheduled_sync_task: Cron wrapper for the daily reconciliation
    - search_feed_task: Ranked, priced feed search
    - import_items_task: Import of selected feed items
    - clear_old_logs_task: Trim the activity log to its newest entries

Tasks never raise: failures are logged and returned as a result dict with
``status="error"`` and a short message.
"""
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

import structlog

from dropship_sync.errors.exceptions import DropshipError
from dropship_sync.services.activity_log import ActivityLog
from dropship_sync.services.importer import ImportService
from dropship_sync.services.reconciliation import ReconciliationEngine
from dropship_sync.services.search import SearchService

logger = structlog.get_logger(__name__)

GENERIC_FAILURE = "Internal error, see worker logs."
LOGS_KEPT_ON_CLEAR = 100


def _task_id(kind: str) -> str:
    return f"sync-{kind}-{int(datetime.now(timezone.utc).timestamp())}"


async def run_sync(
    ctx: Dict[str, Any],
    triggered_by: Literal["manual", "scheduled"],
    task_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Run the reconciliation engine stored in the worker context.

    Args:
        ctx: Worker context (contains "engine")
        triggered_by: What initiated the sync
        task_id: Identifier for log correlation

    Returns:
        Dictionary with task results:
            - task_id: Task identifier
            - status: "success", "lock_held" or "error"
            - triggered_by: What triggered the sync
            - updated: Number of records changed
            - pages: Catalog pages visited
            - duration_seconds: Wall time
            - error: Short reason (only on error)
    """
    task_id = task_id or _task_id(triggered_by)
    log = logger.bind(task_id=task_id, triggered_by=triggered_by)
    start_time = time.time()
    base = {"task_id": task_id, "triggered_by": triggered_by}

    engine: Optional[ReconciliationEngine] = ctx.get("engine")
    if engine is None:
        log.error("sync_task_no_engine")
        return {**base, "status": "error", "updated": 0, "error": GENERIC_FAILURE}

    try:
        result = await engine.run(triggered_by=triggered_by)
    except DropshipError as e:
        log.error("sync_task_failed", error=e.message, error_type=type(e).__name__)
        return {**base, "status": "error", "updated": 0, "error": e.message}
    except Exception as e:
        log.error("sync_task_crashed", error=str(e), error_type=type(e).__name__)
        return {**base, "status": "error", "updated": 0, "error": GENERIC_FAILURE}

    duration = round(time.time() - start_time, 2)
    log.info(
        "sync_task_completed",
        status=result.status.value,
        updated=result.updated,
        pages=result.pages,
        duration_seconds=duration,
    )
    return {
        **base,
        "status": result.status.value,
        "updated": result.updated,
        "pages": result.pages,
        "duration_seconds": duration,
    }


async def manual_sync_task(ctx: Dict[str, Any], task_id: Optional[str] = None, **kwargs) -> Dict[str, Any]:
    """Operator-initiated reconciliation."""
    return await run_sync(ctx, triggered_by="manual", task_id=task_id)


async def scheduled_sync_task(ctx: Dict[str, Any], **kwargs) -> Dict[str, Any]:
    """Cron wrapper for the daily reconciliation.

    Args:
        ctx: Worker context

    Returns:
        Result from run_sync
    """
    task_id = _task_id("scheduled")
    logger.info("scheduled_sync_task_started", task_id=task_id)
    return await run_sync(ctx, triggered_by="scheduled", task_id=task_id)


async def search_feed_task(
    ctx: Dict[str, Any],
    keyword: str = "",
    sku_only: bool = False,
    **kwargs,
) -> Dict[str, Any]:
    """Search the feed and return priced rows as plain dicts."""
    search: Optional[SearchService] = ctx.get("search")
    if search is None:
        logger.error("search_task_no_service")
        return {"status": "error", "rows": [], "error": GENERIC_FAILURE}

    try:
        rows = await search.search(keyword, sku_only=sku_only)
    except DropshipError as e:
        return {"status": "error", "rows": [], "error": e.message}
    return {"status": "success", "rows": [row.model_dump() for row in rows]}


async def import_items_task(ctx: Dict[str, Any], items: List[Any], **kwargs) -> Dict[str, Any]:
    """Import selected feed items (JSON strings or objects)."""
    importer: Optional[ImportService] = ctx.get("importer")
    if importer is None:
        logger.error("import_task_no_service")
        return {"status": "error", "imported": 0, "errors": [GENERIC_FAILURE]}

    try:
        result = await importer.import_items(items)
    except DropshipError as e:
        logger.error("import_task_failed", error=e.message, error_type=type(e).__name__)
        return {"status": "error", "imported": 0, "errors": [e.message]}
    return {"status": "success", **result.model_dump()}


async def clear_old_logs_task(ctx: Dict[str, Any], keep: int = LOGS_KEPT_ON_CLEAR, **kwargs) -> Dict[str, Any]:
    """Drop all but the newest ``keep`` activity entries.

    Args:
        ctx: Worker context (contains "activity_log")
        keep: Number of newest entries to retain

    Returns:
        Dictionary with status and the number of entries removed
    """
    activity_log: Optional[ActivityLog] = ctx.get("activity_log")
    if activity_log is None:
        logger.error("clear_logs_task_no_log")
        return {"status": "error", "removed": 0, "error": GENERIC_FAILURE}

    removed = await activity_log.keep_latest(keep)
    if removed:
        await activity_log.append("logs_cleared", {"removed": removed, "kept": keep})
    logger.info("activity_log_trimmed", removed=removed, kept=keep)
    return {"status": "success", "removed": removed}
