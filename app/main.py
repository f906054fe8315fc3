import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from app.core.db import init_db, close_db
from app.api.v1.inventory import router as inventory_router
from app.api.v1.alerts import router as alerts_router
from app.clients.product_client import close_product_client
from app.core.config import PROJECT_NAME, VERSION, LOG_LEVEL
from app.core.exception_handlers import setup_exception_handlers

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db() # Connect to DB and generate schemas
    yield
    await close_product_client()
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(inventory_router, prefix="/api/v1/inventory", tags=["Inventory Ledger"])
app.include_router(alerts_router, prefix="/api/v1/alerts", tags=["Alerts & Reorder"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
