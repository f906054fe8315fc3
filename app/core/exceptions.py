"""
Typed failures raised by the inventory services.

Business-rule violations derive from InventoryError and are expected,
recoverable outcomes for the caller. StorageError sits outside that
hierarchy and signals a persistence problem the caller may retry.
"""
from typing import Any, Optional


class InventoryError(Exception):
    status_code = 400
    code = "inventory_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StockValidationError(InventoryError):
    """Malformed quantity or field value (negative, zero, non-numeric)."""
    code = "validation_error"


class StockNotFound(InventoryError):
    status_code = 404
    code = "not_found"

    def __init__(self, product_id: Any):
        super().__init__(
            f"Inventory not found for product {product_id}",
            {"product_id": product_id},
        )


class DuplicateProduct(InventoryError):
    status_code = 409
    code = "duplicate_product"

    def __init__(self, product_id: Any):
        super().__init__(
            f"Inventory already exists for product {product_id}",
            {"product_id": product_id},
        )


class InsufficientStock(InventoryError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, product_id: Any, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}. Requested: {requested}, Available: {available}",
            {"product_id": product_id, "requested": requested, "available": available},
        )


class InvalidRelease(InventoryError):
    status_code = 409
    code = "invalid_release"

    def __init__(self, product_id: Any, requested: int, reserved: int):
        super().__init__(
            f"Cannot release {requested} units of product {product_id}: only {reserved} reserved",
            {"product_id": product_id, "requested": requested, "reserved": reserved},
        )


class InvalidDeduction(InventoryError):
    status_code = 409
    code = "invalid_deduction"

    def __init__(self, product_id: Any, requested: int, reserved: int):
        super().__init__(
            f"Cannot deduct {requested} units of product {product_id}: only {reserved} reserved",
            {"product_id": product_id, "requested": requested, "reserved": reserved},
        )


class InvalidAdjustment(InventoryError):
    status_code = 409
    code = "invalid_adjustment"


class StockInUse(InventoryError):
    status_code = 409
    code = "stock_in_use"


class AlertNotFound(InventoryError):
    status_code = 404
    code = "not_found"


class SuggestionNotFound(InventoryError):
    status_code = 404
    code = "not_found"


class InvalidStatusTransition(InventoryError):
    status_code = 409
    code = "invalid_transition"


class StorageError(Exception):
    """Persistence-layer failure (connection loss, constraint violation)."""
    status_code = 503
    code = "storage_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
