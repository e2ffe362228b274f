"""arq worker configuration for the dropship sync service.

This module configures the arq worker with:
    - manual_sync_task: Operator-initiated reconciliation
    - scheduled_sync_task: Daily reconciliation at SYNC_HOUR:SYNC_MINUTE
    - search_feed_task: Feed search with pricing
    - import_items_task: Import of selected feed items
    - clear_old_logs_task: Activity log trimming

The service graph (cache, settings store, token manager, feed client,
catalog, engines) is built once in ``startup`` and shared through ``ctx``.
"""
from datetime import datetime, timezone
from typing import Any, Dict
from zoneinfo import ZoneInfo

import structlog
from arq import cron
from arq.connections import ArqRedis, RedisSettings

from dropship_sync.config import configure_logging, settings
from dropship_sync.db.catalog import load_catalog
from dropship_sync.scheduling import next_run_at
from dropship_sync.services.activity_log import RedisActivityLog
from dropship_sync.services.auth import TokenManager
from dropship_sync.services.cache import RedisCache
from dropship_sync.services.crypto import SecretCipher
from dropship_sync.services.feed_client import FeedClient
from dropship_sync.services.importer import ImportService
from dropship_sync.services.reconciliation import ReconciliationEngine
from dropship_sync.services.search import SearchService
from dropship_sync.services.settings_store import SettingsStore
from dropship_sync.services.sku_cache import SkuCache
from dropship_sync.tasks.sync_tasks import (
    clear_old_logs_task,
    import_items_task,
    manual_sync_task,
    scheduled_sync_task,
    search_feed_task,
)

# Configure logging
configure_logging(settings.log_level)
logger = structlog.get_logger(__name__)


def build_services(redis: ArqRedis) -> Dict[str, Any]:
    """Wire every service on top of one Redis connection.

    Args:
        redis: Connection provided by arq

    Returns:
        Mapping merged into the worker context
    """
    cache = RedisCache(redis)
    activity_log = RedisActivityLog(redis)
    store = SettingsStore(cache, SecretCipher(settings.settings_encryption_key), activity_log)
    tokens = TokenManager(
        cache,
        store,
        allowed_hosts=settings.allowed_api_hosts,
        timeout=settings.http_timeout_seconds,
    )
    feed_client = FeedClient(
        cache,
        store,
        tokens,
        allowed_hosts=settings.allowed_api_hosts,
        timeout=settings.http_timeout_seconds,
    )
    catalog = load_catalog(settings.catalog_factory)
    sku_cache = SkuCache(cache, catalog)

    return {
        "cache": cache,
        "activity_log": activity_log,
        "settings_store": store,
        "tokens": tokens,
        "feed_client": feed_client,
        "catalog": catalog,
        "sku_cache": sku_cache,
        "search": SearchService(feed_client, store, sku_cache, activity_log),
        "importer": ImportService(catalog, store, sku_cache, activity_log),
        "engine": ReconciliationEngine(
            cache,
            catalog,
            feed_client,
            store,
            activity_log,
            installation_id=settings.installation_id,
        ),
    }


async def startup(ctx: Dict[str, Any]) -> None:
    """Build the service graph and log the next scheduled sync."""
    ctx.update(build_services(ctx["redis"]))
    next_run = next_run_at(
        datetime.now(timezone.utc),
        settings.sync_hour,
        settings.sync_minute,
        settings.sync_timezone,
    )
    logger.info(
        "worker_started",
        queue_name=settings.queue_name,
        environment=settings.environment,
        catalog=type(ctx["catalog"]).__name__,
        next_sync_at=next_run.isoformat(),
    )


async def shutdown(ctx: Dict[str, Any]) -> None:
    logger.info("worker_stopped", queue_name=settings.queue_name)


class WorkerSettings:
    """arq worker configuration settings.

    This class is imported by arq CLI: `arq dropship_sync.worker.WorkerSettings`

    Registered Tasks:
        - manual_sync_task: Reconciliation on demand
        - search_feed_task: Feed search
        - import_items_task: Item import
        - clear_old_logs_task: Activity log trimming

    Cron Jobs:
        - scheduled_sync_task: Daily at SYNC_HOUR:SYNC_MINUTE in SYNC_TIMEZONE
    """

    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.queue_name
    job_timeout = settings.job_timeout
    keep_result = 3600  # Keep results for 1 hour
    max_tries = 1  # Sync failures are reported, the next trigger retries
    timezone = ZoneInfo(settings.sync_timezone)

    on_startup = startup
    on_shutdown = shutdown

    functions = [
        manual_sync_task,
        search_feed_task,
        import_items_task,
        clear_old_logs_task,
    ]

    cron_jobs = [
        cron(
            scheduled_sync_task,
            hour=settings.sync_hour,
            minute=settings.sync_minute,
            unique=True,
            run_at_startup=False,
        ),
    ]
