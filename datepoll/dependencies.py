"""Dependency injection for FastAPI endpoints.

Usage in controllers:
    from datepoll.dependencies import ClientIP, Limiter

    @router.post("/example")
    async def example(limiter: Limiter, client_ip: ClientIP):
        ...
"""

from typing import Annotated

from fastapi import Depends, Request

from datepoll import state
from datepoll.errors import ServiceUnavailableError
from datepoll.ratelimit import RateLimiter, RateLimitPolicies


def get_rate_limiter() -> RateLimiter:
    """Get the rate limiter.

    Raises:
        ServiceUnavailableError: If the limiter has not been initialized.
    """
    if state.rate_limiter is None:
        raise ServiceUnavailableError(detail="Rate limiter not initialized")
    return state.rate_limiter


def get_rate_limit_policies() -> RateLimitPolicies:
    return state.rate_limit_policies


def get_client_ip(request: Request) -> str:
    """Best-effort client address: first X-Forwarded-For hop, then X-Real-IP, then the peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


Limiter = Annotated[RateLimiter, Depends(get_rate_limiter)]
Policies = Annotated[RateLimitPolicies, Depends(get_rate_limit_policies)]
ClientIP = Annotated[str, Depends(get_client_ip)]
