import asyncio
import logging
from app.database.supabase_client import get_supabase
from app.modules.picks.service import PickService

logger = logging.getLogger(__name__)

CHECK_INTERVAL_SECONDS = 300


async def expire_stale_pick_transactions():
    """Mark pending checkouts older than the recovery window as expired."""
    try:
        service = PickService(get_supabase())
        expired = service.expire_pending()
        if not expired:
            logger.debug("No stale pick transactions found")
            return
        logger.info(f"Expired {expired} stale pick transaction(s)")
    except Exception as e:
        logger.error(f"Error expiring pick transactions: {str(e)}")


async def pending_cleanup_loop():
    """Background task that periodically expires abandoned checkouts"""
    while True:
        await expire_stale_pick_transactions()
        await asyncio.sleep(CHECK_INTERVAL_SECONDS)
