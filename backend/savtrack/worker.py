"""
Scheduled SAV delay alert scanner.

Usage:
    python -m savtrack.worker

Runs scan_all_shops() every DELAY_ALERT_INTERVAL_SECONDS while the clock is
within [DELAY_ALERT_START_HOUR, DELAY_ALERT_END_HOUR]. Run it as a separate
process next to the API; alert deduplication is stored in the database so
restarts and overlapping runs do not double-alert.
"""
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from savtrack.core.config import get_settings
from savtrack.core.db import AsyncSessionLocal
from savtrack.services.clock import utcnow
from savtrack.services.delay_alerts import scan_all_shops

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.is_development else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def within_alert_hours(hour: int, start_hour: int, end_hour: int) -> bool:
    return start_hour <= hour <= end_hour


async def run_once() -> int:
    now = utcnow()
    async with AsyncSessionLocal() as db:
        return await scan_all_shops(db, now)


async def worker_loop() -> None:
    logger.info(
        "Delay alert worker starting (interval: %ss, hours: %d-%d)",
        settings.delay_alert_interval_seconds,
        settings.delay_alert_start_hour,
        settings.delay_alert_end_hour,
    )
    while True:
        hour = utcnow().hour
        if within_alert_hours(hour, settings.delay_alert_start_hour, settings.delay_alert_end_hour):
            try:
                await run_once()
            except SQLAlchemyError as exc:
                logger.error("Delay alert scan failed: %s", exc)
        else:
            logger.debug("Outside alert hours (%02dh), skipping scan", hour)
        await asyncio.sleep(settings.delay_alert_interval_seconds)


def main() -> None:
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
