from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.alert import AlertStatus, AlertType, SuggestionStatus


class AlertResponse(BaseModel):
    """Schema for a persisted alert lifecycle row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    sku: str
    current_quantity: int
    reorder_level: int
    alert_type: AlertType
    status: AlertStatus
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    sku: str
    current_quantity: int
    suggested_quantity: int
    status: SuggestionStatus
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class SuggestionStatusUpdate(BaseModel):
    """Schema for moving a reorder suggestion through its workflow."""
    status: SuggestionStatus
    processed_by: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = None
