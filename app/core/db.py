from contextlib import asynccontextmanager
from tortoise import Tortoise
from tortoise.exceptions import BaseORMException
from tortoise.transactions import in_transaction
from app.core.config import DB_URL
from app.core.exceptions import StorageError
import logging
from logging import INFO

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)
log = logging.getLogger(__name__)

# Define all models modules for the ORM
MODELS_MODULES = [
    "app.models.stock",
    "app.models.alert",
]

async def init_db(db_url: str = DB_URL):
    """Initializes the Tortoise ORM connection and generates schemas."""
    try:
        await Tortoise.init(
            db_url=db_url,
            modules={"models": MODELS_MODULES},
        )
        # Create inventory, stock_movements, stock_alerts, reorder_suggestions
        await Tortoise.generate_schemas(safe=True)
        print("Database connection established and schemas generated.")
    except Exception as e:
        print(f"FATAL ERROR: Could not connect to database at {db_url}. Error: {e}")
        # Re-raise to prevent the application from starting without a database
        raise

async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    print("Database connections closed.")


@asynccontextmanager
async def storage_errors(action: str):
    """Surfaces ORM/driver failures as StorageError so callers can retry."""
    try:
        yield
    except BaseORMException as e:
        log.error(f"Storage failure while {action}: {e}")
        raise StorageError(f"Storage failure while {action}") from e


@asynccontextmanager
async def atomic(action: str):
    """
    Runs the block in a single transaction and yields its connection.
    Business errors raised inside roll the transaction back and propagate as-is.
    """
    async with storage_errors(action):
        async with in_transaction() as conn:
            yield conn
