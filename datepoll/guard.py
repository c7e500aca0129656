"""Admin-code gate for reading summaries and mutating events.

Every admin operation re-checks the code; there is no session. The code is a
4-digit string stored in clear text and compared exactly. A missing event and
a wrong code look the same to the caller.
"""

import hmac
import logging

from datepoll import db
from datepoll.errors import RateLimitedError
from datepoll.models.events import ActionResult
from datepoll.ratelimit import RateLimiter, RateLimitPolicies

logger = logging.getLogger("datepoll.guard")

INVALID_CODE = "Invalid admin code"
TOO_MANY_ATTEMPTS = "Too many attempts. Please try again later."


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


async def verify_admin_code(
    limiter: RateLimiter,
    client_ip: str,
    event_id: str,
    code: str,
    policies: RateLimitPolicies | None = None,
) -> bool:
    """Check ``code`` against the event's admin code.

    Raises:
        RateLimitedError: too many attempts for this (client, event) pair,
            whether or not the code would have matched.
    """
    policies = policies or RateLimitPolicies()
    check = await limiter.check(f"verify:{client_ip}:{event_id}", policies.verify_code)
    if not check.success:
        raise RateLimitedError(detail=TOO_MANY_ATTEMPTS, reset_in_ms=check.reset_in_ms)

    stored = await db.get_admin_code(event_id)
    if stored is None:
        logger.info("Admin code check for unknown event %s", event_id)
        return False
    if not hmac.compare_digest(stored.encode(), code.encode()):
        logger.warning("Wrong admin code for event %s from %s", event_id, client_ip)
        return False
    return True


async def _authorize(
    limiter: RateLimiter,
    client_ip: str,
    event_id: str,
    admin_code: str,
    policies: RateLimitPolicies | None,
) -> ActionResult | None:
    try:
        valid = await verify_admin_code(limiter, client_ip, event_id, admin_code, policies)
    except RateLimitedError as e:
        return ActionResult(success=False, error=e.detail, error_code="rate_limited")
    if not valid:
        return ActionResult(success=False, error=INVALID_CODE, error_code="unauthorized")
    return None


async def update_event(
    limiter: RateLimiter,
    client_ip: str,
    event_id: str,
    admin_code: str,
    title: str,
    location: str | None,
    description: str | None,
    policies: RateLimitPolicies | None = None,
) -> ActionResult:
    denied = await _authorize(limiter, client_ip, event_id, admin_code, policies)
    if denied:
        return denied

    title = (title or "").strip()
    if not title:
        return ActionResult(success=False, error="Title is required", error_code="validation_failed")

    await db.update_event_details(event_id, title, _clean(location), _clean(description))
    logger.info("Updated details of event %s", event_id)
    return ActionResult(success=True)


async def delete_response(
    limiter: RateLimiter,
    client_ip: str,
    event_id: str,
    admin_code: str,
    response_name: str,
    policies: RateLimitPolicies | None = None,
) -> ActionResult:
    denied = await _authorize(limiter, client_ip, event_id, admin_code, policies)
    if denied:
        return denied

    response_name = response_name.strip()
    deleted = await db.delete_response(event_id, response_name)
    logger.info("Deleted %d response(s) named %r from event %s", deleted, response_name, event_id)
    return ActionResult(success=True)
