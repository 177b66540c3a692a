"""AgencyHub Backend - Main FastAPI Application

Tenant isolation and secrets protection for the multi-tenant agency platform.

This module creates and configures the main FastAPI application, including:
- API routers (organizations, provider credentials, API keys, audit)
- Middleware (request ID correlation, tenant context reset, CORS)
- Exception handlers
- Health and observability endpoints
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from database import get_session_factory
from infrastructure.encryption import SecretCipherError, build_cipher

# Observability
from observability.logging_config import configure_logging
from observability.middleware import RequestIDMiddleware
from observability.router import router as observability_router

# Tenancy
from tenancy.errors import TenantError
from tenancy.middleware import TenantContextMiddleware
from tenancy.router import router as tenancy_router

# Domain Routers
from audit.router import router as audit_router
from audit.service import AuditRecorder, request_metadata
from api_keys.router import router as api_keys_router
from providers.router import router as providers_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    - Startup: Build the secret cipher once (a missing MASTER_KEY aborts
      startup) and the audit recorder
    - Shutdown: Log only; the engine is disposed by the process exit
    """
    settings: Settings = app.state.settings
    logger.info("AgencyHub API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if getattr(app.state, "cipher", None) is None:
        app.state.cipher = build_cipher(settings)
    if getattr(app.state, "audit_recorder", None) is None:
        app.state.audit_recorder = AuditRecorder(get_session_factory())

    yield

    logger.info("AgencyHub API shutting down...")


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def tenant_exception_handler(request: Request, exc: TenantError) -> JSONResponse:
    """Map expected tenant conditions to typed JSON errors.

    InternalError keeps an opaque message; the cause is only logged.
    """
    if exc.status_code >= 500:
        logger.error(f"Tenant resolution failed on {request.method} {request.url.path}: {exc.message}")
        content = {"error": exc.code, "message": "An internal error occurred while resolving the organization."}
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}")
        content = exc.to_dict()

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def cipher_exception_handler(request: Request, exc: SecretCipherError) -> JSONResponse:
    """Secret decryption failures abort the request. No key material or plaintext is returned."""
    logger.error(
        f"Secret cipher failure on {request.method} {request.url.path}: {type(exc).__name__}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "secret_error",
            "message": "A stored secret could not be decrypted.",
        },
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.method} {request.url.path}: {len(details)} error(s)")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "validation_error", "message": "Request validation failed", "details": details},
    )


def opaque_error_handler(error: str, message: str):
    """Build a 500 handler that logs the cause and returns only `error`/`message`.

    When the request had already resolved an organization, the failure is
    also written to that organization's audit trail as an ERROR entry.
    """

    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}", exc_info=exc)

        context = getattr(request.state, "org_context", None)
        recorder = getattr(request.app.state, "audit_recorder", None)
        if context is not None and recorder is not None:
            await recorder.log_error(
                context,
                f"{type(exc).__name__} on {request.method} {request.url.path}",
                error=exc,
                metadata={"error": error},
                request_meta=request_metadata(request),
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": error, "message": message},
        )

    return handler


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Tests build their own instance and may pre-populate app.state.cipher and
    app.state.audit_recorder before the first request.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    docs_enabled = not settings.is_production
    app = FastAPI(
        title="AgencyHub API",
        description="Tenant isolation and secrets protection for the AgencyHub platform",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware (last added runs first)
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Exception handlers: specific conditions before the generic fallbacks
    app.add_exception_handler(TenantError, tenant_exception_handler)
    app.add_exception_handler(SecretCipherError, cipher_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(
        SQLAlchemyError, opaque_error_handler("database_error", "A database error occurred. Please try again later.")
    )
    app.add_exception_handler(
        Exception, opaque_error_handler("internal_error", "An unexpected error occurred. Please try again later.")
    )

    # Observability (health, metrics)
    app.include_router(observability_router)

    app.include_router(tenancy_router, prefix="/api/v1")
    app.include_router(providers_router, prefix="/api/v1")
    app.include_router(api_keys_router, prefix="/api/v1")
    app.include_router(audit_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        """Root endpoint - API information."""
        return {
            "name": "AgencyHub API",
            "version": "0.1.0",
            "status": "running",
            "docs": "/docs" if docs_enabled else None,
        }

    return app


app = create_app()


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=get_settings().ENVIRONMENT == "development",
        log_level=get_settings().LOG_LEVEL.lower(),
    )
