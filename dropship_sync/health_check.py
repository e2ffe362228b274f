"""Health check script for the sync worker."""
import asyncio
import sys

from redis.asyncio import Redis
from redis.exceptions import RedisError

from dropship_sync.config import settings
from dropship_sync.models.sync_messages import SyncStatusMessage
from dropship_sync.services.cache import RedisCache
from dropship_sync.services.sync_state import get_sync_status


async def check_redis_connection(redis: Redis) -> bool:
    """Check if Redis connection is available.

    Returns:
        True if Redis is accessible, False otherwise
    """
    try:
        await redis.ping()
        return True
    except (RedisError, OSError) as e:
        print(f"Redis health check failed: {e}", file=sys.stderr)
        return False


async def current_sync_status(redis: Redis) -> SyncStatusMessage:
    """Status of the last (or running) reconciliation."""
    return await get_sync_status(RedisCache(redis))


async def main() -> int:
    """Run health checks and return exit code.

    Returns:
        0 if all checks pass, 1 otherwise
    """
    redis = Redis.from_url(settings.redis_url)
    try:
        if not await check_redis_connection(redis):
            print("Health check failed: Redis connection unavailable", file=sys.stderr)
            return 1

        status = await current_sync_status(redis)
        print(
            f"Health check passed: sync state={status.state.value}"
            f" started_at={status.started_at or '-'} updated={status.updated}"
        )
        return 0
    finally:
        await redis.aclose()


# Only execute when run directly as a script
if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
