import logging
from typing import Optional

from fastapi import APIRouter, Query, status

from app.core.config import MOVEMENT_HISTORY_LIMIT
from app.core.exceptions import InventoryError
from app.models.stock import MovementType
from app.schemas.inventory import (
    AdjustRequest,
    BatchReserveRequest,
    BulkCheckRequest,
    MovementResponse,
    ReceiveRequest,
    ReturnRequest,
    StockCreateRequest,
    StockOperationRequest,
    StockRecordResponse,
    StockUpdateRequest,
)
from app.schemas.response import SuccessResponse
from app.services.ledger_service import get_stock_movements, list_movements, reconcile_stock
from app.services.stock_service import (
    adjust_stock,
    bulk_stock_check,
    confirm_stock_deduction,
    get_inventory_analytics,
    receive_stock,
    release_stock,
    reserve_items,
    reserve_stock,
    return_stock,
)
from app.services.stock_store import create_stock, delete_stock, get_stock, list_stock, update_stock

log = logging.getLogger("uvicorn")
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

router = APIRouter()


def _stock(record) -> dict:
    return StockRecordResponse.model_validate(record).model_dump()


def _movement(movement) -> dict:
    return MovementResponse.model_validate(movement).model_dump()


# ----------- Stock records -----------

@router.get("/", response_model=SuccessResponse)
async def list_stock_endpoint(
    low_stock_only: bool = False,
    warehouse_location: Optional[str] = None,
    limit: int = Query(100, gt=0, le=500),
    offset: int = Query(0, ge=0),
):
    """Lists stock records ordered by product id."""
    records = await list_stock(low_stock_only, warehouse_location, limit, offset)
    return SuccessResponse(count=len(records), data=[_stock(r) for r in records])


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_stock_endpoint(request_data: StockCreateRequest):
    """Creates the stock record for a product (409 if one already exists)."""
    try:
        record = await create_stock(**request_data.model_dump())
    except InventoryError as e:
        log.warning(f"Create stock rejected: {e.message}")
        raise
    return SuccessResponse(data=_stock(record))


@router.get("/product/{product_id}", response_model=SuccessResponse)
async def get_stock_endpoint(product_id: int):
    """Fetches the stock record of a product."""
    record = await get_stock(product_id)
    return SuccessResponse(data=_stock(record))


@router.put("/product/{product_id}", response_model=SuccessResponse)
async def update_stock_endpoint(product_id: int, request_data: StockUpdateRequest, performed_by: Optional[str] = None):
    """Updates levels, location or quantity. Quantity changes are recorded as adjustments."""
    changes = request_data.model_dump(exclude_unset=True)
    try:
        record = await update_stock(product_id, changes, performed_by=performed_by)
    except InventoryError as e:
        log.warning(f"Update of product {product_id} rejected: {e.message}")
        raise
    return SuccessResponse(data=_stock(record))


@router.delete("/product/{product_id}", response_model=SuccessResponse)
async def delete_stock_endpoint(product_id: int):
    """Deletes a stock record that has no movements and no reservations."""
    await delete_stock(product_id)
    return SuccessResponse(data={"product_id": product_id, "deleted": True})


@router.get("/product/{product_id}/movements", response_model=SuccessResponse)
async def get_stock_movements_endpoint(product_id: int, limit: int = Query(MOVEMENT_HISTORY_LIMIT, gt=0, le=500)):
    """Movement history of one product, newest first."""
    movements = await get_stock_movements(product_id, limit)
    return SuccessResponse(count=len(movements), data=[_movement(m) for m in movements])


@router.get("/product/{product_id}/reconcile", response_model=SuccessResponse)
async def reconcile_stock_endpoint(product_id: int):
    """Compares the recorded quantity against the movement ledger."""
    return SuccessResponse(data=await reconcile_stock(product_id))


# ----------- State transitions -----------

@router.post("/reserve", response_model=SuccessResponse)
async def reserve_stock_endpoint(request_data: StockOperationRequest):
    """Reserves stock for an order. 409 insufficient_stock tells the caller to backorder or reject."""
    try:
        record = await reserve_stock(request_data.product_id, request_data.quantity, request_data.order_id)
    except InventoryError as e:
        log.warning(f"Reserve for order {request_data.order_id} rejected: {e.message}")
        raise
    return SuccessResponse(data=_stock(record))


@router.post("/reserve/batch", response_model=SuccessResponse)
async def reserve_items_endpoint(request_data: BatchReserveRequest):
    """Reserves every line of an order or none of them."""
    items = [item.model_dump() for item in request_data.items]
    try:
        records = await reserve_items(request_data.order_id, items)
    except InventoryError as e:
        log.warning(f"Batch reserve for order {request_data.order_id} rejected: {e.message}")
        raise
    return SuccessResponse(count=len(records), data=[_stock(r) for r in records])


@router.post("/release", response_model=SuccessResponse)
async def release_stock_endpoint(request_data: StockOperationRequest):
    """Releases reserved stock (order cancelled before shipment)."""
    try:
        record = await release_stock(request_data.product_id, request_data.quantity, request_data.order_id)
    except InventoryError as e:
        log.warning(f"Release for order {request_data.order_id} rejected: {e.message}")
        raise
    return SuccessResponse(data=_stock(record))


@router.post("/confirm", response_model=SuccessResponse)
async def confirm_deduction_endpoint(request_data: StockOperationRequest):
    """Confirms the deduction of reserved stock (order shipped)."""
    try:
        record = await confirm_stock_deduction(request_data.product_id, request_data.quantity, request_data.order_id)
    except InventoryError as e:
        log.warning(f"Deduction for order {request_data.order_id} rejected: {e.message}")
        raise
    return SuccessResponse(data=_stock(record))


@router.post("/receive", response_model=SuccessResponse)
async def receive_stock_endpoint(request_data: ReceiveRequest):
    """Receives stock from a supplier order."""
    record = await receive_stock(
        request_data.product_id,
        request_data.quantity,
        request_data.supplier_order_id,
        notes=request_data.notes,
        sku=request_data.sku,
    )
    return SuccessResponse(data=_stock(record))


@router.post("/return", response_model=SuccessResponse)
async def return_stock_endpoint(request_data: ReturnRequest):
    """Puts shipped units returned by a customer back on hand."""
    record = await return_stock(
        request_data.product_id,
        request_data.quantity,
        request_data.order_id,
        notes=request_data.notes,
    )
    return SuccessResponse(data=_stock(record))


@router.post("/adjust", response_model=SuccessResponse)
async def adjust_stock_endpoint(request_data: AdjustRequest):
    """Manual adjustment, or write-off of damaged/expired units."""
    try:
        record = await adjust_stock(
            request_data.product_id,
            request_data.quantity,
            movement_type=request_data.movement_type,
            notes=request_data.notes,
            performed_by=request_data.performed_by,
            reference_id=request_data.reference_id,
        )
    except InventoryError as e:
        log.warning(f"Adjustment of product {request_data.product_id} rejected: {e.message}")
        raise
    return SuccessResponse(data=_stock(record))


# ----------- Queries -----------

@router.post("/bulk-check", response_model=SuccessResponse)
async def bulk_stock_check_endpoint(request_data: BulkCheckRequest):
    """Checks availability of several products without reserving anything."""
    result = await bulk_stock_check([item.model_dump() for item in request_data.items])
    return SuccessResponse(data=result)


@router.get("/movements", response_model=SuccessResponse)
async def list_movements_endpoint(
    movement_type: Optional[MovementType] = None,
    reference_id: Optional[str] = None,
    limit: int = Query(MOVEMENT_HISTORY_LIMIT, gt=0, le=500),
):
    """Ledger across all products, newest first."""
    movements = await list_movements(movement_type, reference_id, limit)
    return SuccessResponse(count=len(movements), data=[_movement(m) for m in movements])


@router.get("/analytics", response_model=SuccessResponse)
async def inventory_analytics_endpoint():
    """Inventory totals and movement counts."""
    return SuccessResponse(data=await get_inventory_analytics())
