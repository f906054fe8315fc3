"""
Low stock alerting and reorder suggestions.

scan_low_stock, compute_reorder_suggestions and get_alert_stats are projections
computed from the current stock records on every call. The stock_alerts and
reorder_suggestions tables hold the lifecycle (raised/resolved/ignored,
pending/approved/...) and are synced from the same records.
"""
import logging
from typing import Any, Dict, List, Optional

from tortoise import timezone

from app.clients.product_client import ProductServiceClient
from app.core.config import REORDER_SUGGESTION_LIMIT
from app.core.db import atomic, storage_errors
from app.core.exceptions import AlertNotFound, InvalidStatusTransition, SuggestionNotFound
from app.models.alert import AlertStatus, AlertType, ReorderSuggestion, StockAlert, SuggestionStatus
from app.models.stock import StockRecord

log = logging.getLogger(__name__)

UNKNOWN_PRODUCT_NAME = "Unknown Product"

SUGGESTION_TRANSITIONS = {
    SuggestionStatus.PENDING: {SuggestionStatus.APPROVED, SuggestionStatus.REJECTED},
    SuggestionStatus.APPROVED: {SuggestionStatus.ORDERED, SuggestionStatus.REJECTED},
}

OPEN_SUGGESTION_STATUSES = [SuggestionStatus.PENDING, SuggestionStatus.APPROVED]


def is_below_reorder_level(record: StockRecord) -> bool:
    return record.available_quantity <= record.reorder_level


def classify_stock_level(record: StockRecord) -> Optional[AlertType]:
    """Out of stock wins over low stock, which wins over overstock."""
    available = record.available_quantity
    if available == 0:
        return AlertType.OUT_OF_STOCK
    if available <= record.reorder_level:
        return AlertType.LOW_STOCK
    if record.quantity > record.max_stock_level:
        return AlertType.OVERSTOCK
    return None


def suggested_order_quantity(record: StockRecord) -> int:
    return max(record.max_stock_level - record.available_quantity, 0)


def _alert_row(record: StockRecord) -> Dict[str, Any]:
    return {
        "product_id": record.product_id,
        "sku": record.sku,
        "current_quantity": record.available_quantity,
        "quantity": record.quantity,
        "reserved_quantity": record.reserved_quantity,
        "available_quantity": record.available_quantity,
        "reorder_level": record.reorder_level,
        "max_stock_level": record.max_stock_level,
        "warehouse_location": record.warehouse_location,
        "alert_type": (AlertType.OUT_OF_STOCK if record.available_quantity == 0 else AlertType.LOW_STOCK).value,
        "status": AlertStatus.ACTIVE.value,
    }


def _suggestion_row(record: StockRecord) -> Dict[str, Any]:
    return {
        "product_id": record.product_id,
        "sku": record.sku,
        "quantity": record.quantity,
        "reserved_quantity": record.reserved_quantity,
        "available_quantity": record.available_quantity,
        "reorder_level": record.reorder_level,
        "max_stock_level": record.max_stock_level,
        "shortfall": record.reorder_level - record.available_quantity,
        "suggested_order_quantity": suggested_order_quantity(record),
        "warehouse_location": record.warehouse_location,
        "status": SuggestionStatus.PENDING.value,
    }


async def _load_records() -> List[StockRecord]:
    async with storage_errors("loading stock records"):
        return await StockRecord.all().order_by("product_id")


async def scan_low_stock() -> List[Dict[str, Any]]:
    """
    Every product whose available quantity is at or below its reorder level.
    Out of stock items come first, then ascending by available quantity.
    """
    records = [r for r in await _load_records() if is_below_reorder_level(r)]
    records.sort(key=lambda r: (r.available_quantity != 0, r.available_quantity, r.product_id))
    return [_alert_row(r) for r in records]


async def compute_reorder_suggestions(limit: Optional[int] = REORDER_SUGGESTION_LIMIT) -> List[Dict[str, Any]]:
    """Same candidates as scan_low_stock, largest shortfall first."""
    records = [r for r in await _load_records() if is_below_reorder_level(r)]
    records.sort(key=lambda r: (-(r.reorder_level - r.available_quantity), r.product_id))
    if limit is not None:
        records = records[:limit]
    return [_suggestion_row(r) for r in records]


async def get_alert_stats() -> Dict[str, int]:
    """Recomputed on every call; 'resolved' means not currently below threshold."""
    records = await _load_records()
    active = sum(1 for r in records if is_below_reorder_level(r))
    return {
        "active_alerts": active,
        "critical_alerts": sum(1 for r in records if r.available_quantity == 0),
        "resolved_alerts": len(records) - active,
        "total_items": len(records),
    }


async def enrich_with_product_details(rows: List[Dict[str, Any]], client: ProductServiceClient) -> List[Dict[str, Any]]:
    """Adds product_name/product_sku/unit_price, falling back to placeholders."""
    product_ids = sorted({row["product_id"] for row in rows})
    products = await client.get_products_by_ids(product_ids) if product_ids else []
    product_map = {str(p.get("id")): p for p in products if isinstance(p, dict)}

    for row in rows:
        product = product_map.get(str(row["product_id"]), {})
        row["product_name"] = product.get("name") or UNKNOWN_PRODUCT_NAME
        row["product_sku"] = product.get("sku") or row["sku"]
        row["unit_price"] = product.get("unit_price") or 0
    return rows


# --- Persisted alert lifecycle ---

async def sync_stock_alerts(record: StockRecord, conn: Any) -> Optional[StockAlert]:
    """
    Brings the stock_alerts rows of one product in line with its current level.
    Must be called with the connection of the transaction that changed the record.
    """
    desired = classify_stock_level(record)
    alerts = await StockAlert.filter(product_id=record.product_id).using_db(conn)
    now = timezone.now()
    current = None

    for alert in alerts:
        if alert.alert_type == desired:
            current = alert
        elif alert.status != AlertStatus.RESOLVED:
            alert.status = AlertStatus.RESOLVED
            alert.resolved_at = now
            alert.current_quantity = record.available_quantity
            await alert.save(update_fields=['status', 'resolved_at', 'current_quantity', 'updated_at'], using_db=conn)
            log.info(f"Resolved {alert.alert_type.value} alert for product {record.product_id}")

    if desired is None:
        return None

    if current is None:
        current = await StockAlert.create(
            product_id=record.product_id,
            sku=record.sku,
            current_quantity=record.available_quantity,
            reorder_level=record.reorder_level,
            alert_type=desired,
            status=AlertStatus.ACTIVE,
            using_db=conn,
        )
        log.warning(f"ALERT: {desired.value} for product {record.product_id}. Available: {record.available_quantity}")
        return current

    if current.status == AlertStatus.RESOLVED:
        current.status = AlertStatus.ACTIVE
        current.resolved_at = None
        log.warning(f"ALERT: {desired.value} raised again for product {record.product_id}")
    current.sku = record.sku
    current.current_quantity = record.available_quantity
    current.reorder_level = record.reorder_level
    await current.save(
        update_fields=['status', 'resolved_at', 'sku', 'current_quantity', 'reorder_level', 'updated_at'],
        using_db=conn,
    )
    return current


async def list_alerts(status: Optional[AlertStatus] = None) -> List[StockAlert]:
    async with storage_errors("listing alerts"):
        query = StockAlert.all()
        if status is not None:
            query = query.filter(status=status)
        return await query.order_by("-updated_at", "-id")


async def ignore_alert(alert_id: int) -> StockAlert:
    """Only active alerts can be ignored; they resolve normally once stock recovers."""
    async with atomic(f"ignoring alert {alert_id}") as conn:
        alert = await StockAlert.filter(id=alert_id).using_db(conn).select_for_update().first()
        if not alert:
            raise AlertNotFound(f"Alert {alert_id} not found", {"alert_id": alert_id})
        if alert.status != AlertStatus.ACTIVE:
            raise InvalidStatusTransition(
                f"Alert {alert_id} is {alert.status.value}; only active alerts can be ignored",
                {"alert_id": alert_id, "status": alert.status.value},
            )
        alert.status = AlertStatus.IGNORED
        await alert.save(update_fields=['status', 'updated_at'], using_db=conn)
    return alert


# --- Persisted reorder suggestions ---

async def generate_reorder_suggestions() -> int:
    """
    Stores a pending suggestion for each candidate without an open one and
    refreshes the quantities of pending ones. Returns the number created.

    The candidates' stock rows are locked (in product_id order) before the
    open suggestions are read, so concurrent sweeps cannot both insert one.
    """
    candidate_ids = sorted(row["product_id"] for row in await compute_reorder_suggestions(limit=None))
    if not candidate_ids:
        return 0

    created = 0
    async with atomic("generating reorder suggestions") as conn:
        records = await (
            StockRecord.filter(product_id__in=candidate_ids)
            .using_db(conn)
            .select_for_update()
            .order_by("product_id")
        )
        open_suggestions = await ReorderSuggestion.filter(
            product_id__in=candidate_ids, status__in=OPEN_SUGGESTION_STATUSES
        ).using_db(conn)
        open_by_product = {s.product_id: s for s in open_suggestions}

        for record in records:
            # Re-checked under the lock
            quantity = suggested_order_quantity(record)
            if not is_below_reorder_level(record) or quantity <= 0:
                continue
            existing = open_by_product.get(record.product_id)
            if existing is None:
                await ReorderSuggestion.create(
                    product_id=record.product_id,
                    sku=record.sku,
                    current_quantity=record.available_quantity,
                    suggested_quantity=quantity,
                    using_db=conn,
                )
                created += 1
            elif existing.status == SuggestionStatus.PENDING:
                existing.current_quantity = record.available_quantity
                existing.suggested_quantity = quantity
                await existing.save(update_fields=['current_quantity', 'suggested_quantity', 'updated_at'], using_db=conn)

    if created:
        log.info(f"Created {created} reorder suggestions")
    return created


async def list_suggestions(status: SuggestionStatus = SuggestionStatus.PENDING) -> List[ReorderSuggestion]:
    async with storage_errors("listing reorder suggestions"):
        return await ReorderSuggestion.filter(status=status).order_by("-created_at", "-id")


async def update_suggestion_status(
    suggestion_id: int,
    status: SuggestionStatus,
    processed_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> ReorderSuggestion:
    """pending -> approved|rejected, approved -> ordered|rejected."""
    async with atomic(f"updating reorder suggestion {suggestion_id}") as conn:
        suggestion = await ReorderSuggestion.filter(id=suggestion_id).using_db(conn).select_for_update().first()
        if not suggestion:
            raise SuggestionNotFound(f"Reorder suggestion {suggestion_id} not found", {"suggestion_id": suggestion_id})

        allowed = SUGGESTION_TRANSITIONS.get(suggestion.status, set())
        if status not in allowed:
            raise InvalidStatusTransition(
                f"Cannot move suggestion {suggestion_id} from {suggestion.status.value} to {status.value}",
                {"suggestion_id": suggestion_id, "from": suggestion.status.value, "to": status.value},
            )

        suggestion.status = status
        suggestion.processed_at = timezone.now()
        suggestion.processed_by = processed_by
        if notes is not None:
            suggestion.notes = notes
        await suggestion.save(
            update_fields=['status', 'processed_at', 'processed_by', 'notes', 'updated_at'],
            using_db=conn,
        )
    log.info(f"Reorder suggestion {suggestion_id} moved to {status.value}")
    return suggestion


async def check_low_stock() -> Dict[str, int]:
    """
    Full sweep: re-syncs the alert rows of every product (one short transaction
    per product) and persists reorder suggestions.
    """
    product_ids = [r.product_id for r in await _load_records()]
    for product_id in product_ids:
        async with atomic(f"syncing alerts for product {product_id}") as conn:
            record = await StockRecord.filter(product_id=product_id).using_db(conn).select_for_update().first()
            if record:
                await sync_stock_alerts(record, conn)

    created = await generate_reorder_suggestions()
    async with storage_errors("counting active alerts"):
        active = await StockAlert.filter(status=AlertStatus.ACTIVE).count()
    log.info(f"Low stock sweep finished: {len(product_ids)} products, {active} active alerts")
    return {
        "scanned": len(product_ids),
        "active_alerts": active,
        "suggestions_created": created,
    }
