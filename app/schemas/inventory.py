from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.stock import MovementType


class StockCreateRequest(BaseModel):
    """Schema for creating the stock record of a product."""
    product_id: int = Field(..., gt=0, description="Catalog product identifier.")
    sku: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(0, ge=0, description="Opening quantity on hand.")
    reorder_level: int = Field(10, ge=0, description="Available level at or below which the product is low on stock.")
    max_stock_level: int = Field(1000, ge=0, description="Target level used to size reorder suggestions.")
    warehouse_location: Optional[str] = Field(None, max_length=100)


class StockUpdateRequest(BaseModel):
    """Only the fields present in the body are changed."""
    sku: Optional[str] = Field(None, min_length=1, max_length=50)
    quantity: Optional[int] = Field(None, ge=0)
    warehouse_location: Optional[str] = Field(None, max_length=100)
    reorder_level: Optional[int] = Field(None, ge=0)
    max_stock_level: Optional[int] = Field(None, ge=0)


class StockOperationRequest(BaseModel):
    """Body for reserve / release / confirm."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    order_id: str = Field(..., min_length=1, max_length=64)


class ReturnRequest(StockOperationRequest):
    notes: Optional[str] = None


class ReceiveRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    supplier_order_id: str = Field(..., min_length=1, max_length=64)
    notes: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=50, description="Used only if the stock record has to be created.")


class AdjustRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., description="Signed delta for 'adjustment', units written off for 'damaged'/'expired'.")
    movement_type: MovementType = MovementType.ADJUSTMENT
    notes: Optional[str] = None
    performed_by: Optional[str] = Field(None, max_length=64)
    reference_id: Optional[str] = Field(None, max_length=64)


class StockLine(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class BatchReserveRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    order_id: str = Field(..., min_length=1, max_length=64)
    items: List[StockLine] = Field(..., min_length=1)


class BulkCheckRequest(BaseModel):
    items: List[StockLine] = Field(..., min_length=1)


class StockRecordResponse(BaseModel):
    """Schema for a stock record, including the derived available quantity."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    sku: str
    quantity: int
    reserved_quantity: int
    available_quantity: int
    warehouse_location: Optional[str] = None
    reorder_level: int
    max_stock_level: int
    last_restocked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MovementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    sku: str
    movement_type: MovementType
    quantity: int
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None
    created_at: Optional[datetime] = None
