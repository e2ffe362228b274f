"""Queue task definitions for the dropship sync worker.

This module contains arq task functions for:
    - manual_sync_task: Operator-initiated reconciliation
    - scheduled_sync_task: Daily reconciliation (cron)
    - search_feed_task: Feed search with pricing
    - import_items_task: Import of selected feed items
    - clear_old_logs_task: Trim the activity log
"""
from dropship_sync.tasks.sync_tasks import (
    clear_old_logs_task,
    import_items_task,
    manual_sync_task,
    run_sync,
    scheduled_sync_task,
    search_feed_task,
)

__all__ = [
    "clear_old_logs_task",
    "import_items_task",
    "manual_sync_task",
    "run_sync",
    "scheduled_sync_task",
    "search_feed_task",
]
