import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/kubestock_inventory")

# Application Metadata
PROJECT_NAME = "KubeStock Inventory Ledger Service"
VERSION = "1.0.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Product Catalog Service (used only to enrich alert output with names)
PRODUCT_SERVICE_URL = os.getenv("PRODUCT_SERVICE_URL", "http://product-catalog-service:3002")
PRODUCT_SERVICE_TIMEOUT = float(os.getenv("PRODUCT_SERVICE_TIMEOUT", 5.0))

# Defaults applied when Receive creates a stock record implicitly
DEFAULT_REORDER_LEVEL = int(os.getenv("DEFAULT_REORDER_LEVEL", 10))
DEFAULT_MAX_STOCK_LEVEL = int(os.getenv("DEFAULT_MAX_STOCK_LEVEL", 1000))

MOVEMENT_HISTORY_LIMIT = int(os.getenv("MOVEMENT_HISTORY_LIMIT", 50)) # Default page size for ledger queries
REORDER_SUGGESTION_LIMIT = int(os.getenv("REORDER_SUGGESTION_LIMIT", 50))

# Alert Sweeper Configuration
ALERT_SWEEP_INTERVAL = int(os.getenv("ALERT_SWEEP_INTERVAL", 60)) # Seconds between low stock sweeps
