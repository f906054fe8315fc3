"""
Stock Record Store: create/read/update/delete of per-product stock records.

Quantity changes made through update_stock are written to the ledger as
adjustments so the movement history always reconciles with the record.
"""
import logging
from typing import Any, Dict, List, Optional

from tortoise import timezone
from tortoise.exceptions import IntegrityError

from app.core.config import DEFAULT_MAX_STOCK_LEVEL, DEFAULT_REORDER_LEVEL
from app.core.db import atomic, storage_errors
from app.core.exceptions import (
    DuplicateProduct,
    InvalidAdjustment,
    StockInUse,
    StockNotFound,
    StockValidationError,
    StorageError,
)
from app.models.alert import ReorderSuggestion, StockAlert, SuggestionStatus
from app.models.stock import MovementType, StockMovement, StockRecord
from app.services.alert_service import OPEN_SUGGESTION_STATUSES, is_below_reorder_level, sync_stock_alerts
from app.services.ledger_service import append_movement

log = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"sku", "quantity", "warehouse_location", "reorder_level", "max_stock_level"}


def require_positive(value: Any, field: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise StockValidationError(f"{field} must be a positive integer, got {value!r}", {field: value})
    return value


def require_non_negative(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise StockValidationError(f"{field} must be a non-negative integer, got {value!r}", {field: value})
    return value


def _require_sku(sku: Any) -> str:
    if not isinstance(sku, str) or not sku.strip():
        raise StockValidationError("sku must be a non-empty string", {"sku": sku})
    return sku.strip()


async def lock_stock_record(product_id: int, conn: Any) -> Optional[StockRecord]:
    """Row-locking read; must run inside a transaction."""
    return await StockRecord.filter(product_id=product_id).using_db(conn).select_for_update().first()


async def get_stock(product_id: int) -> StockRecord:
    async with storage_errors(f"fetching stock for product {product_id}"):
        record = await StockRecord.get_or_none(product_id=product_id)
    if not record:
        raise StockNotFound(product_id)
    return record


async def list_stock(
    low_stock_only: bool = False,
    warehouse_location: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[StockRecord]:
    require_positive(limit, "limit")
    require_non_negative(offset, "offset")
    async with storage_errors("listing stock"):
        query = StockRecord.all()
        if warehouse_location:
            query = query.filter(warehouse_location=warehouse_location)
        if not low_stock_only:
            return await query.order_by("product_id").offset(offset).limit(limit)
        records = await query.order_by("product_id")
    return [r for r in records if is_below_reorder_level(r)][offset:offset + limit]


async def create_stock(
    product_id: int,
    sku: str,
    quantity: int = 0,
    reorder_level: int = DEFAULT_REORDER_LEVEL,
    max_stock_level: int = DEFAULT_MAX_STOCK_LEVEL,
    warehouse_location: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> StockRecord:
    """
    Creates the stock record for a product. A non-zero opening quantity is
    written to the ledger as an 'in' movement referencing 'initial_stock'.
    """
    require_positive(product_id, "product_id")
    sku = _require_sku(sku)
    require_non_negative(quantity, "quantity")
    require_non_negative(reorder_level, "reorder_level")
    require_non_negative(max_stock_level, "max_stock_level")

    try:
        async with atomic(f"creating stock for product {product_id}") as conn:
            if await StockRecord.filter(product_id=product_id).using_db(conn).exists():
                raise DuplicateProduct(product_id)

            record = await StockRecord.create(
                product_id=product_id,
                sku=sku,
                quantity=quantity,
                reserved_quantity=0,
                reorder_level=reorder_level,
                max_stock_level=max_stock_level,
                warehouse_location=warehouse_location,
                using_db=conn,
            )
            if quantity > 0:
                await append_movement(
                    record, MovementType.IN, quantity, conn,
                    reference_type="initial_stock",
                    notes="Opening balance",
                    performed_by=performed_by,
                )
            await sync_stock_alerts(record, conn)
    except StorageError as e:
        # Lost a race with a concurrent create for the same product
        if isinstance(e.__cause__, IntegrityError):
            raise DuplicateProduct(product_id) from e
        raise

    log.info(f"Created stock record for product {product_id} with quantity {quantity}")
    return record


async def update_stock(product_id: int, changes: Dict[str, Any], performed_by: Optional[str] = None) -> StockRecord:
    """
    Applies field changes under a row lock. A new quantity must stay at or above
    the reserved quantity; the delta is recorded as an adjustment movement.
    """
    changes = dict(changes)
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise StockValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}", {"fields": sorted(unknown)})
    if "sku" in changes:
        changes["sku"] = _require_sku(changes["sku"])
    for field in ("quantity", "reorder_level", "max_stock_level"):
        if field in changes:
            require_non_negative(changes[field], field)

    async with atomic(f"updating stock for product {product_id}") as conn:
        record = await lock_stock_record(product_id, conn)
        if not record:
            raise StockNotFound(product_id)

        previous_quantity = record.quantity
        new_quantity = changes.get("quantity", previous_quantity)
        if new_quantity != previous_quantity and new_quantity < record.reserved_quantity:
            raise InvalidAdjustment(
                f"Quantity {new_quantity} is below the {record.reserved_quantity} units reserved for product {product_id}",
                {"product_id": product_id, "quantity": new_quantity, "reserved": record.reserved_quantity},
            )

        for field, value in changes.items():
            setattr(record, field, value)
        await record.save(update_fields=list(changes) + ['updated_at'], using_db=conn)
        # Written after the record so the movement carries the new sku
        if new_quantity != previous_quantity:
            await append_movement(
                record, MovementType.ADJUSTMENT, new_quantity - previous_quantity, conn,
                reference_type="manual_update",
                notes=f"Quantity set from {previous_quantity} to {new_quantity}",
                performed_by=performed_by,
            )
        await sync_stock_alerts(record, conn)

    log.info(f"Updated stock record for product {product_id}: {sorted(changes)}")
    return record


async def delete_stock(product_id: int) -> None:
    """
    Hard delete is only allowed for records no movement or reservation refers to.
    Alert rows go with the record; open reorder suggestions are rejected.
    """
    async with atomic(f"deleting stock for product {product_id}") as conn:
        record = await lock_stock_record(product_id, conn)
        if not record:
            raise StockNotFound(product_id)
        if record.reserved_quantity > 0:
            raise StockInUse(
                f"Product {product_id} has {record.reserved_quantity} units reserved",
                {"product_id": product_id, "reserved": record.reserved_quantity},
            )
        if await StockMovement.filter(product_id=product_id).using_db(conn).exists():
            raise StockInUse(
                f"Product {product_id} has stock movements and cannot be deleted",
                {"product_id": product_id},
            )
        await StockAlert.filter(product_id=product_id).using_db(conn).delete()
        now = timezone.now()
        await ReorderSuggestion.filter(
            product_id=product_id, status__in=OPEN_SUGGESTION_STATUSES
        ).using_db(conn).update(
            status=SuggestionStatus.REJECTED,
            processed_at=now,
            updated_at=now,
            notes="Stock record deleted",
        )
        await record.delete(using_db=conn)

    log.info(f"Deleted stock record for product {product_id}")
