"""Background scheduler task for the subscription expiry sweep"""
import asyncio
import logging

from heydj.core.config import settings
from heydj.db.session import SessionLocal
from heydj.services.subscription_service import downgrade_expired_users

logger = logging.getLogger(__name__)


def run_expiry_sweep() -> int:
    """One sweep with its own session. Returns the number of users downgraded."""
    db = SessionLocal()
    try:
        return downgrade_expired_users(db)
    finally:
        db.close()


async def expiry_sweep_task():
    """Background task that clears expired plans every EXPIRY_SWEEP_INTERVAL seconds"""
    logger.info("Starting expiry sweep scheduler task...")

    while True:
        try:
            await asyncio.sleep(settings.EXPIRY_SWEEP_INTERVAL)
            # Blocking DB work runs off the event loop
            await asyncio.to_thread(run_expiry_sweep)
        except asyncio.CancelledError:
            logger.info("Expiry sweep scheduler task cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in expiry sweep scheduler: {e}", exc_info=True)
