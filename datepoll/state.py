import redis.asyncio as redis

from datepoll.ratelimit import RateLimiter, RateLimitPolicies

# Global runtime state initialized in lifespan.setup_resources
redis_client: redis.Redis | None = None
rate_limiter: RateLimiter | None = None
rate_limit_policies: RateLimitPolicies = RateLimitPolicies()
