from datetime import UTC, datetime
from typing import Any

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job

from app.core.config import settings

DAILY_CHECKS_TASK = "run_subscription_daily_checks_task"

redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def get_redis_pool() -> ArqRedis:
    return await create_pool(redis_settings)


async def enqueue_task(task_name: str, *args: Any, **kwargs: Any) -> Job | None:
    """Enqueue a worker task.

    Returns None when arq rejects a duplicate ``_job_id``.
    """
    pool = await get_redis_pool()
    try:
        return await pool.enqueue_job(task_name, *args, **kwargs)
    finally:
        await pool.close()


async def enqueue_subscription_daily_checks(now: datetime | None = None) -> Job | None:
    """Enqueue an out-of-schedule daily checks run, at most once per calendar day."""
    day = (now or datetime.now(UTC)).date().isoformat()
    return await enqueue_task(DAILY_CHECKS_TASK, _job_id=f"subscription-daily-checks:{day}")
