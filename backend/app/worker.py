import logging
from typing import Any

from arq import cron

from app.core.database import SessionLocal
from app.services.subscription_service import SubscriptionService
from app.tasks import redis_settings

logger = logging.getLogger(__name__)


async def run_subscription_daily_checks_task(ctx: dict[str, Any]) -> int:
    """Background task: send expiry reminders and move subscriptions into GRACE/EXPIRED.

    Runs daily at 03:10.
    """
    db = SessionLocal()
    try:
        count = SubscriptionService(db).run_daily_checks()
        if count > 0:
            logger.info("Applied %d subscription transitions", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        run_subscription_daily_checks_task,
    ]
    cron_jobs = [
        cron(run_subscription_daily_checks_task, hour=3, minute=10),  # daily at 03:10
    ]
    redis_settings = redis_settings
