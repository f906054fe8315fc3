import asyncio

import pytest

from app.core.exceptions import (
    DuplicateProduct,
    InvalidAdjustment,
    StockInUse,
    StockNotFound,
    StockValidationError,
)
from app.models.alert import AlertType, StockAlert, SuggestionStatus
from app.models.stock import MovementType, StockMovement
from app.services.alert_service import generate_reorder_suggestions, list_suggestions
from app.services.ledger_service import get_stock_movements, list_movements, reconcile_stock
from app.services.stock_service import reserve_stock
from app.services.stock_store import create_stock, delete_stock, get_stock, list_stock, update_stock


@pytest.mark.asyncio
async def test_create_and_get(db):
    created = await create_stock(1, "SKU-1", quantity=25, reorder_level=5, max_stock_level=80, warehouse_location="A-1")

    record = await get_stock(1)

    assert record.id == created.id
    assert record.sku == "SKU-1"
    assert record.quantity == 25
    assert record.reserved_quantity == 0
    assert record.available_quantity == 25
    assert record.warehouse_location == "A-1"
    assert record.created_at is not None
    assert record.updated_at is not None


@pytest.mark.asyncio
async def test_create_writes_opening_balance_to_ledger(db):
    await create_stock(1, "SKU-1", quantity=25)

    movements = await get_stock_movements(1)

    assert len(movements) == 1
    assert movements[0].movement_type == MovementType.IN
    assert movements[0].reference_type == "initial_stock"
    assert (await reconcile_stock(1))["is_consistent"] is True


@pytest.mark.asyncio
async def test_create_with_zero_quantity_writes_no_movement(db):
    await create_stock(1, "SKU-1")

    assert await StockMovement.filter(product_id=1).count() == 0


@pytest.mark.asyncio
async def test_create_duplicate_product(db):
    await create_stock(1, "SKU-1", quantity=1)

    with pytest.raises(DuplicateProduct):
        await create_stock(1, "SKU-OTHER", quantity=1)


@pytest.mark.asyncio
async def test_concurrent_creates_yield_one_record(db):
    results = await asyncio.gather(
        create_stock(1, "SKU-1", quantity=1),
        create_stock(1, "SKU-1", quantity=1),
        return_exceptions=True,
    )

    assert sum(isinstance(r, DuplicateProduct) for r in results) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"quantity": -1},
    {"reorder_level": -5},
    {"max_stock_level": "lots"},
    {"sku": "   "},
])
async def test_create_validation(db, kwargs):
    params = {"product_id": 1, "sku": "SKU-1"}
    params.update(kwargs)

    with pytest.raises(StockValidationError):
        await create_stock(**params)


@pytest.mark.asyncio
async def test_get_missing(db):
    with pytest.raises(StockNotFound):
        await get_stock(123)


@pytest.mark.asyncio
async def test_update_levels_and_location(db):
    await create_stock(1, "SKU-1", quantity=50)

    record = await update_stock(1, {"reorder_level": 30, "max_stock_level": 400, "warehouse_location": "C-9"})

    assert (record.reorder_level, record.max_stock_level, record.warehouse_location) == (30, 400, "C-9")
    assert record.quantity == 50


@pytest.mark.asyncio
async def test_update_quantity_records_adjustment(db):
    await create_stock(1, "SKU-1", quantity=50)

    await update_stock(1, {"quantity": 42}, performed_by="clerk-7")

    movement = (await get_stock_movements(1, limit=1))[0]
    assert movement.movement_type == MovementType.ADJUSTMENT
    assert movement.quantity == -8
    assert movement.performed_by == "clerk-7"
    assert (await reconcile_stock(1))["ledger_quantity"] == 42


@pytest.mark.asyncio
async def test_update_quantity_below_reserved_fails(db):
    await create_stock(1, "SKU-1", quantity=50)
    await reserve_stock(1, 20, "ORD-1")

    with pytest.raises(InvalidAdjustment):
        await update_stock(1, {"quantity": 19})

    assert (await get_stock(1)).quantity == 50


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(db):
    await create_stock(1, "SKU-1", quantity=50)

    with pytest.raises(StockValidationError):
        await update_stock(1, {"reserved_quantity": 0})


@pytest.mark.asyncio
async def test_update_missing(db):
    with pytest.raises(StockNotFound):
        await update_stock(5, {"reorder_level": 1})


@pytest.mark.asyncio
async def test_update_raising_reorder_level_raises_alert(db):
    await create_stock(1, "SKU-1", quantity=50, reorder_level=10)

    await update_stock(1, {"reorder_level": 60})

    alert = await StockAlert.get(product_id=1, alert_type=AlertType.LOW_STOCK)
    assert alert.reorder_level == 60


@pytest.mark.asyncio
async def test_delete_unused_record(db):
    await create_stock(1, "SKU-1")

    await delete_stock(1)

    with pytest.raises(StockNotFound):
        await get_stock(1)
    assert await StockAlert.filter(product_id=1).count() == 0


@pytest.mark.asyncio
async def test_delete_refused_when_movements_exist(db):
    await create_stock(1, "SKU-1", quantity=3)

    with pytest.raises(StockInUse):
        await delete_stock(1)


@pytest.mark.asyncio
async def test_list_stock_filters(db):
    await create_stock(3, "SKU-3", quantity=100, warehouse_location="A")
    await create_stock(1, "SKU-1", quantity=2, warehouse_location="A")
    await create_stock(2, "SKU-2", quantity=1, warehouse_location="B")

    assert [r.product_id for r in await list_stock()] == [1, 2, 3]
    assert [r.product_id for r in await list_stock(warehouse_location="A")] == [1, 3]
    assert [r.product_id for r in await list_stock(low_stock_only=True)] == [1, 2]
    assert [r.product_id for r in await list_stock(limit=1, offset=1)] == [2]


@pytest.mark.asyncio
async def test_list_movements_by_type(db):
    await create_stock(1, "SKU-1", quantity=10)
    await create_stock(2, "SKU-2", quantity=10)

    movements = await list_movements(movement_type=MovementType.IN)
    assert len(movements) == 2

    with pytest.raises(StockValidationError):
        await list_movements(limit=0)


@pytest.mark.asyncio
async def test_movements_for_unknown_product(db):
    with pytest.raises(StockNotFound):
        await get_stock_movements(99)


@pytest.mark.asyncio
async def test_update_sku_and_quantity_records_movement_under_new_sku(db):
    await create_stock(1, "OLD", quantity=5)

    record = await update_stock(1, {"sku": "NEW", "quantity": 9})

    movement = (await get_stock_movements(1, limit=1))[0]
    assert record.sku == "NEW"
    assert movement.sku == "NEW"
    assert movement.quantity == 4


@pytest.mark.asyncio
async def test_delete_rejects_open_reorder_suggestions(db):
    await create_stock(1, "SKU-1")
    assert await generate_reorder_suggestions() == 1

    await delete_stock(1)

    assert await list_suggestions(SuggestionStatus.PENDING) == []
    rejected = await list_suggestions(SuggestionStatus.REJECTED)
    assert [s.product_id for s in rejected] == [1]
    assert rejected[0].processed_at is not None
    assert rejected[0].notes == "Stock record deleted"
