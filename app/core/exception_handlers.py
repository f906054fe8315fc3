import uuid
import logging
from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from app.core.exceptions import InventoryError, StorageError

log = logging.getLogger(__name__)


# Generate a clean request id for every response
def _rid():
    """Generates a unique request ID for tracing."""
    return uuid.uuid4().hex


def _error_body(code: str, message, **extra):
    error = {"code": code, "message": message}
    error.update(extra)
    return {"success": False, "error": error, "request_id": _rid()}


# ----------- Exception Handlers (called by FastAPI) -----------

def inventory_exception_handler(request: Request, exc: InventoryError):
    """Business-rule failures: insufficient stock, over-release, not found, ..."""
    extra = {"details": exc.details} if exc.details else {}
    body = _error_body(exc.code, exc.message, **extra)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


def storage_exception_handler(request: Request, exc: StorageError):
    """Persistence failures are transient; tell the caller it may retry."""
    body = _error_body(exc.code, exc.message, retryable=True)
    return JSONResponse(status_code=exc.status_code, content=body)


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    body = _error_body("http_error", exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body)


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    body = _error_body("validation_error", "Invalid input data", details=exc.errors())
    return JSONResponse(status_code=422, content=jsonable_encoder(body))


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.error(f"Unhandled exception on path: {request.url.path}", exc_info=exc)
    body = _error_body("server_error", "Internal Server Error")
    return JSONResponse(status_code=500, content=body)


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(InventoryError, inventory_exception_handler)
    app.add_exception_handler(StorageError, storage_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
