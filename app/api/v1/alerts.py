import logging
from typing import Optional

from fastapi import APIRouter, Depends

from app.clients.product_client import ProductServiceClient, get_product_client
from app.models.alert import AlertStatus, SuggestionStatus
from app.schemas.alert import AlertResponse, SuggestionResponse, SuggestionStatusUpdate
from app.schemas.response import SuccessResponse
from app.services.alert_service import (
    check_low_stock,
    compute_reorder_suggestions,
    enrich_with_product_details,
    get_alert_stats,
    ignore_alert,
    list_alerts,
    list_suggestions,
    scan_low_stock,
    update_suggestion_status,
)

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.get("/low-stock", response_model=SuccessResponse)
async def low_stock_endpoint(client: ProductServiceClient = Depends(get_product_client)):
    """Products at or below their reorder level, most urgent first, with product names."""
    rows = await scan_low_stock()
    rows = await enrich_with_product_details(rows, client)
    return SuccessResponse(count=len(rows), data=rows)


@router.get("/reorder-suggestions", response_model=SuccessResponse)
async def reorder_suggestions_endpoint(client: ProductServiceClient = Depends(get_product_client)):
    """Suggested order quantities (max level minus available), largest shortfall first."""
    rows = await compute_reorder_suggestions()
    rows = await enrich_with_product_details(rows, client)
    return SuccessResponse(count=len(rows), data=rows)


@router.get("/stats", response_model=SuccessResponse)
async def alert_stats_endpoint():
    """Alert counts recomputed from current stock levels."""
    return SuccessResponse(data=await get_alert_stats())


@router.post("/check", response_model=SuccessResponse)
async def check_low_stock_endpoint():
    """Runs the alert and reorder suggestion sweep immediately."""
    result = await check_low_stock()
    log.info(f"On-demand low stock check: {result}")
    return SuccessResponse(data=result)


@router.get("/", response_model=SuccessResponse)
async def list_alerts_endpoint(status: Optional[AlertStatus] = None):
    """Persisted alert lifecycle rows, optionally filtered by status."""
    alerts = await list_alerts(status)
    return SuccessResponse(count=len(alerts), data=[AlertResponse.model_validate(a).model_dump() for a in alerts])


@router.patch("/{alert_id}/ignore", response_model=SuccessResponse)
async def ignore_alert_endpoint(alert_id: int):
    """Marks an active alert as ignored until its condition clears."""
    alert = await ignore_alert(alert_id)
    return SuccessResponse(data=AlertResponse.model_validate(alert).model_dump())


@router.get("/suggestions", response_model=SuccessResponse)
async def list_suggestions_endpoint(status: SuggestionStatus = SuggestionStatus.PENDING):
    """Persisted reorder suggestions in the given status."""
    suggestions = await list_suggestions(status)
    return SuccessResponse(
        count=len(suggestions),
        data=[SuggestionResponse.model_validate(s).model_dump() for s in suggestions],
    )


@router.patch("/suggestions/{suggestion_id}", response_model=SuccessResponse)
async def update_suggestion_endpoint(suggestion_id: int, payload: SuggestionStatusUpdate):
    """Approves, rejects or marks a reorder suggestion as ordered."""
    suggestion = await update_suggestion_status(
        suggestion_id, payload.status, processed_by=payload.processed_by, notes=payload.notes
    )
    return SuccessResponse(data=SuggestionResponse.model_validate(suggestion).model_dump())
