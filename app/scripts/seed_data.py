# scripts/seed_data.py
import asyncio
from app.core.db import init_db, close_db
from app.core.exceptions import DuplicateProduct
from app.services.stock_store import create_stock, get_stock

SEED_STOCK = [
    # product_id, sku, quantity, reorder_level, max_stock_level, location
    (1, "ELEC-LAPTOP-001", 45, 10, 200, "A-01-01"),
    (2, "ELEC-MOUSE-002", 8, 20, 500, "A-01-02"),
    (3, "OFF-CHAIR-003", 0, 5, 60, "B-02-01"),
    (4, "OFF-DESK-004", 120, 15, 100, "B-02-02"),
]

async def seed():
    for product_id, sku, qty, reorder, max_level, location in SEED_STOCK:
        try:
            record = await create_stock(
                product_id=product_id,
                sku=sku,
                quantity=qty,
                reorder_level=reorder,
                max_stock_level=max_level,
                warehouse_location=location,
                performed_by="seed",
            )
            print("Created:", record.product_id, record.sku, record.quantity)
        except DuplicateProduct:
            # Safe to run more than once
            record = await get_stock(product_id)
            print("Exists:", record.product_id, record.sku, record.quantity)

    print("Inventory seeded.")

async def main():
    await init_db()
    await seed()
    await close_db()

if __name__ == "__main__":
    asyncio.run(main())
