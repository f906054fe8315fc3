from enum import Enum
from tortoise import fields, models


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"  # Signed delta, manual correction
    DAMAGED = "damaged"
    EXPIRED = "expired"
    RETURNED = "returned"


class StockRecord(models.Model):
    """
    Per-product stock counts. The service is the sole writer; every change to
    quantity or reserved_quantity happens under a row lock.
    """
    id = fields.IntField(primary_key=True)
    # Single inventory record per catalog product
    product_id = fields.IntField(unique=True)
    sku = fields.CharField(max_length=50)
    quantity = fields.IntField(default=0)  # Total on hand
    reserved_quantity = fields.IntField(default=0)  # Held for pending orders
    warehouse_location = fields.CharField(max_length=100, null=True)
    reorder_level = fields.IntField(default=10)
    max_stock_level = fields.IntField(default=1000)
    last_restocked_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "inventory"
        indexes = [
            ("sku",),
            ("reserved_quantity",),
        ]

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity


class StockMovement(models.Model):
    """Append-only ledger entry. Rows are never updated after insert."""
    id = fields.IntField(primary_key=True)
    product_id = fields.IntField()
    sku = fields.CharField(max_length=50)
    movement_type = fields.CharEnumField(MovementType, max_length=20)
    # Magnitude for in/out/damaged/expired/returned, signed delta for adjustment
    quantity = fields.IntField()
    reference_type = fields.CharField(max_length=50, null=True)  # e.g., 'order', 'supplier_order'
    reference_id = fields.CharField(max_length=64, null=True)
    notes = fields.TextField(null=True)
    performed_by = fields.CharField(max_length=64, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "stock_movements"
        indexes = [
            ("product_id",),
            ("movement_type",),
            ("created_at",),
            ("reference_type", "reference_id"),
        ]
