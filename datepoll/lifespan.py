"""Application startup and shutdown.

Builds the rate limiter (memory or Redis backed), starts its sweep loop,
and opens the database pool when enabled.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import redis.asyncio as redis
from redis.asyncio import BlockingConnectionPool as RedisConnectionPool

from datepoll import db, state
from datepoll.config import get_settings
from datepoll.ratelimit import (
    MemoryRateLimitStore,
    RateLimiter,
    RateLimitPolicies,
    RateLimitStore,
    RedisRateLimitStore,
)

logger = logging.getLogger(__name__)


@dataclass
class LifespanResources:
    """Container for resources initialized during lifespan."""

    redis_client: redis.Redis | None = None
    rate_limiter: RateLimiter | None = None
    stop_event: asyncio.Event | None = None
    background_tasks: list[asyncio.Task] = field(default_factory=list)
    db_enabled: bool = False


async def init_redis() -> redis.Redis:
    """Initialize Redis connection with connection pool."""
    settings = get_settings()

    redis_pool = RedisConnectionPool(
        host=settings.redis.host,
        port=settings.redis.port,
        password=settings.redis.password if settings.redis.password else None,
        max_connections=settings.redis.max_connections,
        timeout=settings.redis.pool_timeout_sec,
        socket_timeout=settings.redis.socket_timeout,
        socket_connect_timeout=settings.redis.socket_connect_timeout,
        decode_responses=True,
    )
    client = redis.Redis(connection_pool=redis_pool)

    if settings.debug.redis:
        logging.getLogger("datepoll.redis").setLevel(logging.DEBUG)
    return client


async def init_database() -> bool:
    """Open the pool and migrate when ENABLE_DB is set."""
    if not get_settings().features.db:
        return False
    try:
        await db.init_pool()
        return True
    except Exception as e:
        logger.warning("Failed to initialize database: %s", e)
    return False


async def setup_resources() -> LifespanResources:
    settings = get_settings()
    resources = LifespanResources()

    store: RateLimitStore
    if settings.rate_limit.backend == "redis":
        resources.redis_client = await init_redis()
        store = RedisRateLimitStore(resources.redis_client)
        logger.info("Rate limiting backed by redis at %s:%d", settings.redis.host, settings.redis.port)
    else:
        store = MemoryRateLimitStore()
        logger.info("Rate limiting backed by process memory")

    resources.rate_limiter = RateLimiter(store)
    resources.stop_event = asyncio.Event()
    resources.background_tasks.append(
        asyncio.create_task(
            resources.rate_limiter.run_sweeper(
                resources.stop_event, settings.rate_limit.sweep_interval_sec
            )
        )
    )

    resources.db_enabled = await init_database()

    state.redis_client = resources.redis_client
    state.rate_limiter = resources.rate_limiter
    state.rate_limit_policies = RateLimitPolicies.from_settings(settings.rate_limit)

    return resources


async def cleanup_resources(resources: LifespanResources) -> None:
    if resources.background_tasks and resources.stop_event:
        resources.stop_event.set()
        try:
            await asyncio.wait_for(
                asyncio.gather(*resources.background_tasks, return_exceptions=True),
                timeout=5,
            )
        except asyncio.TimeoutError:
            for t in resources.background_tasks:
                t.cancel()

    if resources.db_enabled:
        try:
            await db.close_pool()
        except Exception as e:
            logger.warning("Failed to close database pool: %s", e)

    if resources.redis_client:
        await resources.redis_client.aclose()

    state.redis_client = None
    state.rate_limiter = None
