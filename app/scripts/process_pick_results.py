"""
Process Pick Results Script
Settles every pick that has no result yet against driver_results_for_picks
and emails each player. Run after the race results are loaded, manually or
from a cron job; POST /api/admin/process-picks does the same over HTTP.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.database.supabase_client import get_supabase
from app.modules.picks.service import PickService
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    try:
        logger.info("Starting pick settlement...")
        results = PickService(get_supabase()).process_results()

        won = sum(1 for r in results if r["result"] == "won")
        partial = sum(1 for r in results if r["result"] == "partial")
        paid_out = sum(r["payout"] for r in results)

        logger.info(f"Settlement completed: {len(results)} picks, {won} won, {partial} partial")
        logger.info(f"Total payout: {paid_out:,.0f} COP")
    except Exception as e:
        logger.error(f"Error during settlement: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
