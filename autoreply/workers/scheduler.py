"""Proactive credential refresh using APScheduler."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from autoreply.config import get_settings
from autoreply.errors import CredentialError
from autoreply.services.credential_cache import CredentialCache

logger = logging.getLogger(__name__)
settings = get_settings()

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=settings.timezone)

REFRESH_JOB_ID = "credential_refresh"


async def refresh_credentials(cache: CredentialCache) -> None:
    """Refresh the token if it is within the safety margin.

    This function is called by APScheduler on an interval so that inbound
    traffic rarely has to wait on the token endpoint.

    Args:
        cache: Credential cache to keep warm
    """
    try:
        await cache.get_token()
    except CredentialError as e:
        # The next dispatch retries on demand
        logger.error(f"Scheduled credential refresh failed: {e}")
        return

    logger.debug("Scheduled credential refresh completed")


def schedule_token_refresh(cache: CredentialCache, interval_seconds: int) -> None:
    """Add the credential refresh job to the scheduler.

    Args:
        cache: Credential cache to keep warm
        interval_seconds: Seconds between refresh checks
    """
    scheduler.add_job(
        func=refresh_credentials,
        trigger=IntervalTrigger(seconds=interval_seconds),
        args=[cache],
        id=REFRESH_JOB_ID,
        replace_existing=True,
    )

    logger.info(f"Scheduled credential refresh every {interval_seconds}s")


def unschedule_token_refresh() -> None:
    """Remove the credential refresh job from the scheduler."""
    if scheduler.get_job(REFRESH_JOB_ID):
        scheduler.remove_job(REFRESH_JOB_ID)
        logger.info("Unscheduled credential refresh")


def start_scheduler() -> None:
    """Start the scheduler."""
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
