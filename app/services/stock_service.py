"""
Stock state transitions: reserve, release, confirm deduction, receive, return, adjust.

Every operation is one transaction: lock the stock row (SELECT ... FOR UPDATE),
validate against the freshly read values, write the record, append the ledger
row and sync the alert rows. Concurrent callers on the same product serialize
on the row lock, so two reservations can never both pass the availability
check against the same units.

None of these operations is idempotent: calling reserve twice with the same
order id reserves twice.
"""
import logging
from typing import Any, Dict, List, Optional

from tortoise import timezone
from tortoise.exceptions import IntegrityError
from tortoise.functions import Count

from app.core.config import DEFAULT_MAX_STOCK_LEVEL, DEFAULT_REORDER_LEVEL
from app.core.db import atomic, storage_errors
from app.core.exceptions import (
    InsufficientStock,
    InvalidAdjustment,
    InvalidDeduction,
    InvalidRelease,
    StockNotFound,
    StockValidationError,
    StorageError,
)
from app.models.stock import MovementType, StockMovement, StockRecord
from app.services.alert_service import is_below_reorder_level, sync_stock_alerts
from app.services.ledger_service import append_movement
from app.services.stock_store import lock_stock_record, require_positive

log = logging.getLogger(__name__)

ADJUSTABLE_MOVEMENT_TYPES = {MovementType.ADJUSTMENT, MovementType.DAMAGED, MovementType.EXPIRED}


async def _locked_or_missing(product_id: int, conn: Any) -> StockRecord:
    record = await lock_stock_record(product_id, conn)
    if not record:
        raise StockNotFound(product_id)
    return record


async def reserve_stock(product_id: int, quantity: int, order_id: str) -> StockRecord:
    """Logical hold on available stock. Physical quantity is untouched, no movement is written."""
    require_positive(quantity)
    async with atomic(f"reserving stock for product {product_id}") as conn:
        record = await _locked_or_missing(product_id, conn)
        if record.available_quantity < quantity:
            raise InsufficientStock(product_id, quantity, record.available_quantity)

        record.reserved_quantity += quantity
        await record.save(update_fields=['reserved_quantity', 'updated_at'], using_db=conn)
        await sync_stock_alerts(record, conn)

    log.info(f"Reserved {quantity} of product {product_id} for order {order_id}")
    return record


async def reserve_items(order_id: str, items: List[Dict[str, Any]]) -> List[StockRecord]:
    """
    All-or-nothing reservation for a multi-line order. Lines for the same product
    are merged; rows are locked in product_id order so concurrent batches cannot deadlock.
    """
    if not items:
        raise StockValidationError("Order must contain items.")

    requested: Dict[int, int] = {}
    for item in items:
        product_id = require_positive(item.get("product_id"), "product_id")
        requested[product_id] = requested.get(product_id, 0) + require_positive(item.get("quantity"))

    product_ids = sorted(requested)
    async with atomic(f"reserving stock for order {order_id}") as conn:
        locked = await StockRecord.filter(product_id__in=product_ids).using_db(conn).select_for_update().order_by("product_id")
        record_map = {r.product_id: r for r in locked}

        # Validate every line before writing any of them
        for product_id in product_ids:
            record = record_map.get(product_id)
            if not record:
                raise StockNotFound(product_id)
            if record.available_quantity < requested[product_id]:
                raise InsufficientStock(product_id, requested[product_id], record.available_quantity)

        for product_id in product_ids:
            record = record_map[product_id]
            record.reserved_quantity += requested[product_id]
            await record.save(update_fields=['reserved_quantity', 'updated_at'], using_db=conn)
            await sync_stock_alerts(record, conn)

    log.info(f"Reserved {len(product_ids)} products for order {order_id}")
    return [record_map[pid] for pid in product_ids]


async def release_stock(product_id: int, quantity: int, order_id: str) -> StockRecord:
    """Drops a reservation, e.g. when the order is cancelled before shipment."""
    require_positive(quantity)
    async with atomic(f"releasing stock for product {product_id}") as conn:
        record = await _locked_or_missing(product_id, conn)
        if record.reserved_quantity < quantity:
            raise InvalidRelease(product_id, quantity, record.reserved_quantity)

        record.reserved_quantity -= quantity
        await record.save(update_fields=['reserved_quantity', 'updated_at'], using_db=conn)
        await sync_stock_alerts(record, conn)

    log.info(f"Released {quantity} of product {product_id} for order {order_id}")
    return record


async def confirm_stock_deduction(product_id: int, quantity: int, order_id: str) -> StockRecord:
    """Consumes reserved units on shipment: both quantity and reserved_quantity drop."""
    require_positive(quantity)
    async with atomic(f"confirming deduction for product {product_id}") as conn:
        record = await _locked_or_missing(product_id, conn)
        if record.reserved_quantity < quantity or record.quantity < quantity:
            raise InvalidDeduction(product_id, quantity, record.reserved_quantity)

        record.quantity -= quantity
        record.reserved_quantity -= quantity
        await record.save(update_fields=['quantity', 'reserved_quantity', 'updated_at'], using_db=conn)
        await append_movement(
            record, MovementType.OUT, quantity, conn,
            reference_type="order",
            reference_id=order_id,
            notes=f"Stock deducted for order #{order_id}",
        )
        await sync_stock_alerts(record, conn)

    log.info(f"Deducted {quantity} of product {product_id} for order {order_id}")
    return record


async def _add_stock(
    product_id: int,
    quantity: int,
    movement_type: MovementType,
    reference_type: str,
    reference_id: str,
    notes: Optional[str],
    sku: Optional[str],
    performed_by: Optional[str],
) -> StockRecord:
    require_positive(quantity)
    args = (product_id, quantity, movement_type, reference_type, reference_id, notes, sku, performed_by)
    try:
        return await _apply_addition(*args)
    except StorageError as e:
        # Lost the insert race with a concurrent first receipt: the row exists now
        if not isinstance(e.__cause__, IntegrityError):
            raise
        log.info(f"Stock record for product {product_id} created concurrently, retrying")
        return await _apply_addition(*args)


async def _apply_addition(
    product_id: int,
    quantity: int,
    movement_type: MovementType,
    reference_type: str,
    reference_id: str,
    notes: Optional[str],
    sku: Optional[str],
    performed_by: Optional[str],
) -> StockRecord:
    async with atomic(f"adding stock for product {product_id}") as conn:
        record = await lock_stock_record(product_id, conn)
        if record is None:
            # First stock for this product: create the record with default levels
            require_positive(product_id, "product_id")
            record = await StockRecord.create(
                product_id=product_id,
                sku=sku or f"PRODUCT-{product_id}",
                quantity=0,
                reserved_quantity=0,
                reorder_level=DEFAULT_REORDER_LEVEL,
                max_stock_level=DEFAULT_MAX_STOCK_LEVEL,
                using_db=conn,
            )
            log.info(f"Auto-created stock record for product {product_id}")

        record.quantity += quantity
        update_fields = ['quantity', 'updated_at']
        if movement_type == MovementType.IN:
            record.last_restocked_at = timezone.now()
            update_fields.append('last_restocked_at')
        await record.save(update_fields=update_fields, using_db=conn)
        await append_movement(
            record, movement_type, quantity, conn,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            performed_by=performed_by,
        )
        await sync_stock_alerts(record, conn)
    return record


async def receive_stock(
    product_id: int,
    quantity: int,
    reference_id: str,
    notes: Optional[str] = None,
    sku: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> StockRecord:
    """Stock arriving from a supplier order. Creates the stock record if none exists."""
    record = await _add_stock(
        product_id, quantity, MovementType.IN,
        reference_type="supplier_order",
        reference_id=reference_id,
        notes=notes,
        sku=sku,
        performed_by=performed_by,
    )
    log.info(f"Received {quantity} of product {product_id} (ref {reference_id})")
    return record


async def return_stock(product_id: int, quantity: int, order_id: str, notes: Optional[str] = None) -> StockRecord:
    """Shipped units coming back from a customer order."""
    record = await _add_stock(
        product_id, quantity, MovementType.RETURNED,
        reference_type="order_return",
        reference_id=order_id,
        notes=notes or f"Stock returned from order #{order_id}",
        sku=None,
        performed_by=None,
    )
    log.info(f"Returned {quantity} of product {product_id} from order {order_id}")
    return record


async def adjust_stock(
    product_id: int,
    quantity: int,
    movement_type: MovementType = MovementType.ADJUSTMENT,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> StockRecord:
    """
    Manual correction. 'adjustment' takes a signed non-zero delta; 'damaged' and
    'expired' take the positive number of units written off.
    """
    movement_type = MovementType(movement_type)
    if movement_type not in ADJUSTABLE_MOVEMENT_TYPES:
        raise StockValidationError(
            f"movement_type must be one of {sorted(t.value for t in ADJUSTABLE_MOVEMENT_TYPES)}",
            {"movement_type": movement_type.value},
        )
    if movement_type == MovementType.ADJUSTMENT:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity == 0:
            raise StockValidationError(f"quantity must be a non-zero integer, got {quantity!r}", {"quantity": quantity})
        delta = quantity
    else:
        delta = -require_positive(quantity)

    async with atomic(f"adjusting stock for product {product_id}") as conn:
        record = await _locked_or_missing(product_id, conn)
        new_quantity = record.quantity + delta
        if new_quantity < record.reserved_quantity:
            raise InvalidAdjustment(
                f"Adjustment would leave {new_quantity} units for product {product_id} with {record.reserved_quantity} reserved",
                {"product_id": product_id, "quantity": new_quantity, "reserved": record.reserved_quantity},
            )

        record.quantity = new_quantity
        await record.save(update_fields=['quantity', 'updated_at'], using_db=conn)
        await append_movement(
            record, movement_type, quantity, conn,
            reference_type="adjustment",
            reference_id=reference_id,
            notes=notes,
            performed_by=performed_by,
        )
        await sync_stock_alerts(record, conn)

    log.info(f"Adjusted product {product_id} by {delta} ({movement_type.value})")
    return record


async def bulk_stock_check(items: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Read-only availability check; unknown products report zero available."""
    for item in items:
        require_positive(item.get("product_id"), "product_id")
        require_positive(item.get("quantity"))

    product_ids = {item["product_id"] for item in items}
    async with storage_errors("checking stock availability"):
        records = await StockRecord.filter(product_id__in=list(product_ids))
    record_map = {r.product_id: r for r in records}

    results = []
    for item in items:
        record = record_map.get(item["product_id"])
        available = record.available_quantity if record else 0
        results.append({
            "product_id": item["product_id"],
            "requested": item["quantity"],
            "available_quantity": available,
            "is_available": available >= item["quantity"],
        })
    return {
        "all_available": all(r["is_available"] for r in results),
        "items": results,
    }


async def get_inventory_analytics() -> Dict[str, Any]:
    async with storage_errors("computing inventory analytics"):
        records = await StockRecord.all()
        movement_counts = await (
            StockMovement.annotate(count=Count("id"))
            .group_by("movement_type")
            .values("movement_type", "count")
        )

    by_type = {t.value: 0 for t in MovementType}
    for row in movement_counts:
        by_type[MovementType(row["movement_type"]).value] = row["count"]

    return {
        "total_products": len(records),
        "total_quantity": sum(r.quantity for r in records),
        "total_reserved": sum(r.reserved_quantity for r in records),
        "total_available": sum(r.available_quantity for r in records),
        "low_stock_count": sum(1 for r in records if is_below_reorder_level(r) and r.available_quantity > 0),
        "out_of_stock_count": sum(1 for r in records if r.available_quantity == 0),
        "movements_by_type": by_type,
    }
