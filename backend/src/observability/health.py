"""Component health checks for the tenancy and secrets layer.

`database` runs a trivial query. `secret_cipher` encrypts and decrypts a
canary value bound to a throwaway context, which proves the master key is
loaded without touching any stored secret.
"""

import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .logging_config import get_logger

logger = get_logger(__name__)

_CANARY_VALUE = "agencyhub-health-canary"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> dict:
        return {"status": self.status.value, "message": self.message, "latency_ms": self.latency_ms}


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


async def check_database_health(db: AsyncSession) -> ComponentHealth:
    started = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.error("Database health check failed", exc_info=True)
        return ComponentHealth(HealthStatus.UNHEALTHY, "Database unavailable")
    return ComponentHealth(HealthStatus.HEALTHY, "Database connection OK", _elapsed_ms(started))


def check_cipher_health(cipher) -> ComponentHealth:
    """Round-trip a canary value through the cipher."""
    if cipher is None:
        return ComponentHealth(HealthStatus.UNHEALTHY, "Secret cipher not initialized")

    started = time.perf_counter()
    context = f"health:{uuid.uuid4()}"
    try:
        ok = cipher.decrypt(cipher.encrypt(_CANARY_VALUE, context), context) == _CANARY_VALUE
    except Exception as exc:
        logger.error("Secret cipher health check failed: %s", type(exc).__name__)
        ok = False
    if not ok:
        return ComponentHealth(HealthStatus.UNHEALTHY, "Secret cipher round-trip failed")
    return ComponentHealth(HealthStatus.HEALTHY, "Secret cipher OK", _elapsed_ms(started))


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    if any(c.status == HealthStatus.UNHEALTHY for c in components.values()):
        return HealthStatus.UNHEALTHY
    return HealthStatus.HEALTHY
