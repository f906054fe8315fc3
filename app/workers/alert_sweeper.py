import asyncio
import logging
from app.core.db import init_db, close_db
from app.core.config import ALERT_SWEEP_INTERVAL, LOG_LEVEL
from app.core.exceptions import StorageError
from app.services.alert_service import check_low_stock

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("alert_sweeper")


async def run_sweep():
    """
    One pass: re-syncs alert rows for every product and stores pending
    reorder suggestions. Storage failures are logged and retried next pass.
    """
    try:
        result = await check_low_stock()
    except StorageError as e:
        log.error(f"Sweep failed, retrying in {ALERT_SWEEP_INTERVAL}s: {e}")
        return None
    log.info(
        f"Sweep: {result['scanned']} products, {result['active_alerts']} active alerts, "
        f"{result['suggestions_created']} new suggestions"
    )
    return result


async def start_alert_sweeper():
    """Main loop for the sweeper service."""
    await init_db()
    log.info("--- Low Stock Alert Sweeper Started ---")

    try:
        while True:
            await run_sweep()
            await asyncio.sleep(ALERT_SWEEP_INTERVAL)
    finally:
        await close_db()

if __name__ == "__main__":
    try:
        asyncio.run(start_alert_sweeper())
    except KeyboardInterrupt:
        log.info("Sweeper service stopped.")
