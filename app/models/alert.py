from enum import Enum
from tortoise import fields, models


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    OVERSTOCK = "overstock"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    IGNORED = "ignored"


class SuggestionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ORDERED = "ordered"


class StockAlert(models.Model):
    """
    Materialized alert lifecycle, one row per (product, alert type).
    Kept in sync with the stock record inside the same transaction.
    """
    id = fields.IntField(primary_key=True)
    product_id = fields.IntField()
    sku = fields.CharField(max_length=50)
    current_quantity = fields.IntField()  # Available quantity at last sync
    reorder_level = fields.IntField()
    alert_type = fields.CharEnumField(AlertType, max_length=20)
    status = fields.CharEnumField(AlertStatus, max_length=20, default=AlertStatus.ACTIVE)
    resolved_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "stock_alerts"
        unique_together = (("product_id", "alert_type"),)
        indexes = [
            ("product_id",),
            ("status",),
        ]


class ReorderSuggestion(models.Model):
    id = fields.IntField(primary_key=True)
    product_id = fields.IntField()
    sku = fields.CharField(max_length=50)
    current_quantity = fields.IntField()
    suggested_quantity = fields.IntField()
    status = fields.CharEnumField(SuggestionStatus, max_length=20, default=SuggestionStatus.PENDING)
    processed_at = fields.DatetimeField(null=True)
    processed_by = fields.CharField(max_length=64, null=True)
    notes = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "reorder_suggestions"
        indexes = [
            ("product_id",),
            ("status",),
        ]
