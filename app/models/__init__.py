# app/models/__init__.py
from .stock import StockRecord, StockMovement, MovementType
from .alert import StockAlert, ReorderSuggestion, AlertType, AlertStatus, SuggestionStatus

# Export all models
__all__ = [
    "StockRecord",
    "StockMovement",
    "MovementType",
    "StockAlert",
    "ReorderSuggestion",
    "AlertType",
    "AlertStatus",
    "SuggestionStatus",
]
