import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import get_settings
from ..db.session import SessionLocal
from ..services import booking_service

logger = logging.getLogger(__name__)


def expire_stale_bookings() -> int:
    with SessionLocal() as db:
        try:
            return booking_service.expire_stale(db)
        except booking_service.StorageUnavailable:
            # next tick retries
            logger.warning("Skipping expiry run, storage unavailable")
            return 0


def get_scheduler() -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        expire_stale_bookings,
        "interval",
        seconds=settings.expire_interval_sec,
        id="expire_stale_bookings",
        max_instances=1,
        coalesce=True,
    )
    return scheduler
