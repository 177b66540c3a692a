"""Health and metrics endpoints (unauthenticated, outside /api/v1)."""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from .health import HealthStatus, check_cipher_health, check_database_health, get_overall_health

router = APIRouter(tags=["Observability"])


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get(
    "/health",
    summary="Health check",
    description="Database connectivity and secret cipher readiness. 503 if any component is unhealthy.",
)
async def health_check(request: Request, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    components = {
        "database": await check_database_health(db),
        "secret_cipher": check_cipher_health(getattr(request.app.state, "cipher", None)),
    }
    overall = get_overall_health(components)

    return JSONResponse(
        status_code=503 if overall == HealthStatus.UNHEALTHY else 200,
        content={
            "status": overall.value,
            "components": {name: component.to_dict() for name, component in components.items()},
        },
    )
