#!/usr/bin/env python3
"""Helper script for enqueuing a manual reconciliation to the Redis queue.

Usage:
    python scripts/enqueue_sync.py
    python scripts/enqueue_sync.py --task-id sync-manual-001
"""
import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

script_dir = Path(__file__).parent
project_root = script_dir.parent
sys.path.insert(0, str(project_root))

# Load .env file if it exists (for local development)
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)

from arq import ArqRedis
from arq.connections import RedisSettings, create_pool

from dropship_sync.config import settings


async def enqueue_manual_sync(task_id: Optional[str] = None) -> str:
    """Enqueue a manual_sync_task.

    Args:
        task_id: Identifier used in worker logs (generated when omitted)

    Returns:
        Enqueued job ID
    """
    task_id = task_id or f"sync-manual-{int(datetime.now(timezone.utc).timestamp())}"
    redis_settings = RedisSettings.from_dsn(settings.redis_url)

    print(f"Connecting to Redis: {settings.redis_url.split('@')[-1]}")
    pool: ArqRedis = await create_pool(redis_settings, default_queue_name=settings.queue_name)

    try:
        job = await pool.enqueue_job("manual_sync_task", task_id=task_id)
        if job is None:
            print("A job with this id is already queued.")
            return task_id

        print("Sync enqueued")
        print(f"   Task ID: {task_id}")
        print(f"   Job ID:  {job.job_id}")
        print(f"   Queue:   {settings.queue_name}")
        return job.job_id
    finally:
        await pool.close()


def main():
    parser = argparse.ArgumentParser(description="Enqueue a manual catalog reconciliation")
    parser.add_argument("--task-id", help="Task identifier for log correlation")
    args = parser.parse_args()

    asyncio.run(enqueue_manual_sync(args.task_id))


if __name__ == "__main__":
    main()
