from typing import Any

from fastapi import APIRouter

from datepoll import db, state

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, Any]:
    redis_status = "disabled"
    if state.redis_client:
        try:
            await state.redis_client.ping()
            redis_status = "healthy"
        except Exception:
            redis_status = "unhealthy"

    return {
        "status": "ok",
        "rate_limiter": "ready" if state.rate_limiter else "not_initialized",
        "redis": redis_status,
        "database": db.get_pool_stats(),
    }
