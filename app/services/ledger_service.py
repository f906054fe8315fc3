import logging
from typing import Any, Dict, List, Optional

from app.core.config import MOVEMENT_HISTORY_LIMIT
from app.core.db import storage_errors
from app.core.exceptions import StockNotFound, StockValidationError
from app.models.stock import MovementType, StockMovement, StockRecord

log = logging.getLogger(__name__)

# Direction each movement type moves the on-hand quantity.
# Adjustment rows already carry a signed delta.
LEDGER_SIGN = {
    MovementType.IN: 1,
    MovementType.RETURNED: 1,
    MovementType.OUT: -1,
    MovementType.DAMAGED: -1,
    MovementType.EXPIRED: -1,
    MovementType.ADJUSTMENT: 1,
}


def signed_quantity(movement: StockMovement) -> int:
    return LEDGER_SIGN[MovementType(movement.movement_type)] * movement.quantity


async def append_movement(
    record: StockRecord,
    movement_type: MovementType,
    quantity: int,
    conn: Any,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> StockMovement:
    """Writes one ledger row inside the caller's transaction."""
    return await StockMovement.create(
        product_id=record.product_id,
        sku=record.sku,
        movement_type=movement_type,
        quantity=quantity,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        notes=notes,
        performed_by=performed_by,
        using_db=conn,
    )


def _check_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise StockValidationError(f"limit must be a positive integer, got {limit!r}", {"limit": limit})


async def get_stock_movements(product_id: int, limit: int = MOVEMENT_HISTORY_LIMIT) -> List[StockMovement]:
    """Newest first. Raises StockNotFound when the product has no stock record."""
    _check_limit(limit)
    async with storage_errors(f"fetching movements for product {product_id}"):
        if not await StockRecord.filter(product_id=product_id).exists():
            raise StockNotFound(product_id)
        return await StockMovement.filter(product_id=product_id).order_by("-created_at", "-id").limit(limit)


async def list_movements(
    movement_type: Optional[MovementType] = None,
    reference_id: Optional[str] = None,
    limit: int = MOVEMENT_HISTORY_LIMIT,
) -> List[StockMovement]:
    _check_limit(limit)
    async with storage_errors("listing movements"):
        query = StockMovement.all()
        if movement_type is not None:
            query = query.filter(movement_type=movement_type)
        if reference_id is not None:
            query = query.filter(reference_id=str(reference_id))
        return await query.order_by("-created_at", "-id").limit(limit)


async def reconcile_stock(product_id: int) -> Dict[str, Any]:
    """Compares the recorded on-hand quantity with the sum of the ledger."""
    async with storage_errors(f"reconciling product {product_id}"):
        record = await StockRecord.get_or_none(product_id=product_id)
        if not record:
            raise StockNotFound(product_id)
        movements = await StockMovement.filter(product_id=product_id)

    ledger_quantity = sum(signed_quantity(m) for m in movements)
    drift = record.quantity - ledger_quantity
    if drift:
        log.warning(f"Ledger drift for product {product_id}: recorded {record.quantity}, ledger {ledger_quantity}")
    return {
        "product_id": product_id,
        "recorded_quantity": record.quantity,
        "ledger_quantity": ledger_quantity,
        "drift": drift,
        "movement_count": len(movements),
        "is_consistent": drift == 0,
    }
