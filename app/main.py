# ABOUTME: FastAPI application entry point
# ABOUTME: Configures app, registers routers, and sets up middleware and error handlers

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from app.api import health, auth, keys, accounts, public
from app.config import get_settings
from app.exceptions import KeyVPNError
from app.middleware.logging import RequestLoggingMiddleware
from app.models.errors import ErrorResponse
from app.utils.logging_setup import setup_logging

setup_logging(get_settings().log_level)

app = FastAPI(
    title="KeyVPN Admin API",
    description="Admin API for VPN key groups, keys and accounts",
    version="0.1.0",
)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Custom exception handler to format error responses."""
    # If detail is a dict, use it directly (for our custom error format)
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.detail
        )
    # Otherwise, wrap it in standard format
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": "ERROR", "message": exc.detail}
    )


@app.exception_handler(KeyVPNError)
async def domain_exception_handler(request: Request, exc: KeyVPNError):
    """Translate domain errors into the standard error format."""
    body = ErrorResponse(code=exc.code, message=exc.message, details=exc.details or None)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


# Register routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(keys.router)
app.include_router(accounts.router)
app.include_router(public.router)
