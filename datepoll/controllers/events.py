import logging
import re
from datetime import date
from typing import Any

from fastapi import APIRouter, Header
from fastapi.responses import PlainTextResponse
from psycopg import Error as PsycopgError
from pydantic import BaseModel, field_validator

from datepoll import aggregation, db, guard
from datepoll.config import get_settings
from datepoll.dependencies import ClientIP, Limiter, Policies
from datepoll.errors import (
    BadRequestError,
    DatabaseError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
)
from datepoll.models.events import (
    ActionResult,
    CreatedEvent,
    EventResults,
    EventWithResponses,
    VerifyResult,
)
from datepoll.models.timeslots import TimeSlot, ordered, select_slots

logger = logging.getLogger("datepoll.events")
router = APIRouter(tags=["events"])

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
ADMIN_CODE_RE = re.compile(r"^\d{4}$")


def _check_date(d: str) -> str:
    if not DATE_RE.match(d):
        raise ValueError(f"invalid date format: {d}")
    try:
        date.fromisoformat(d)
    except ValueError:
        raise ValueError(f"invalid date: {d}") from None
    return d


def _optional_text(v: str | None, limit: int, field: str) -> str | None:
    if v is None:
        return None
    v = v.strip()
    if len(v) > limit:
        raise ValueError(f"{field} must be at most {limit} characters")
    return v or None


class CreateEventRequest(BaseModel):
    title: str
    location: str | None = None
    description: str | None = None
    admin_code: str
    host_dates: list[str]
    time_slots: list[TimeSlot]

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 200:
            raise ValueError("title must be 1-200 characters")
        return v

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str | None) -> str | None:
        return _optional_text(v, 200, "location")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return _optional_text(v, 2000, "description")

    @field_validator("admin_code")
    @classmethod
    def validate_admin_code(cls, v: str) -> str:
        if not ADMIN_CODE_RE.match(v):
            raise ValueError("admin_code must be exactly 4 digits")
        return v

    @field_validator("host_dates")
    @classmethod
    def validate_host_dates(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("host_dates must not be empty")
        return sorted({_check_date(d) for d in v})

    @field_validator("time_slots")
    @classmethod
    def validate_time_slots(cls, v: list[TimeSlot]) -> list[TimeSlot]:
        if not v:
            raise ValueError("time_slots must not be empty")
        return ordered(v)


class SubmitResponseRequest(BaseModel):
    name: str
    availability: dict[str, list[TimeSlot]]
    plus_one: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 100:
            raise ValueError("name must be 1-100 characters")
        return v

    @field_validator("plus_one")
    @classmethod
    def validate_plus_one(cls, v: str | None) -> str | None:
        return _optional_text(v, 100, "plus_one")

    @field_validator("availability")
    @classmethod
    def validate_availability(cls, v: dict[str, list[TimeSlot]]) -> dict[str, list[TimeSlot]]:
        return {_check_date(d): ordered(select_slots(slots)) for d, slots in v.items()}


class VerifyCodeRequest(BaseModel):
    code: str


class UpdateEventRequest(BaseModel):
    admin_code: str
    title: str = ""
    location: str | None = None
    description: str | None = None


async def _require_event(event_id: str) -> dict[str, Any]:
    event = await db.get_event(event_id)
    if not event:
        logger.warning("Event not found: %s", event_id)
        raise NotFoundError(event_id=event_id)
    return event


@router.post("/events", status_code=201, response_model=CreatedEvent)
async def create_event(
    req: CreateEventRequest, limiter: Limiter, policies: Policies, client_ip: ClientIP
) -> dict[str, Any]:
    check = await limiter.check(f"create:{client_ip}", policies.create_event)
    if not check.success:
        raise RateLimitedError(reset_in_ms=check.reset_in_ms)

    logger.info("POST /events title=%s dates=%d time_slots=%d", req.title, len(req.host_dates), len(req.time_slots))
    try:
        event = await db.create_event(
            title=req.title,
            admin_code=req.admin_code,
            host_dates=req.host_dates,
            time_slots=[s.value for s in req.time_slots],
            location=req.location,
            description=req.description,
        )
    except (PsycopgError, RuntimeError) as e:
        logger.exception("Failed to create event")
        raise DatabaseError(detail=str(e)) from e
    logger.info("Created event id=%s", event["id"])
    return {"id": event["id"], "share_url": get_settings().share.event_url(event["id"])}


@router.get("/events/{event_id}", response_model=EventWithResponses)
async def get_event(event_id: str) -> dict[str, Any]:
    data = await db.get_event_with_responses(event_id)
    if not data:
        logger.warning("Event not found: %s", event_id)
        raise NotFoundError(event_id=event_id)
    return data


@router.get("/events/{event_id}/results", response_model=EventResults)
async def get_results(event_id: str) -> dict[str, Any]:
    event = await _require_event(event_id)
    responses = await db.get_responses(event_id)
    return aggregation.build_results(event, responses)


@router.get("/events/{event_id}/share")
async def get_share_message(event_id: str) -> dict[str, str]:
    event = await _require_event(event_id)
    share = get_settings().share
    url = share.event_url(event_id)
    reply_by = aggregation.reply_by_date(date.today(), share.reply_days)
    return {"share_url": url, "message": aggregation.format_share_message(event, url, reply_by)}


@router.post("/events/{event_id}/verify", response_model=VerifyResult)
async def verify_code(
    event_id: str, req: VerifyCodeRequest, limiter: Limiter, policies: Policies, client_ip: ClientIP
) -> dict[str, bool]:
    valid = await guard.verify_admin_code(limiter, client_ip, event_id, req.code, policies)
    return {"valid": valid}


@router.get("/events/{event_id}/summary", response_class=PlainTextResponse)
async def get_summary(
    event_id: str,
    limiter: Limiter,
    policies: Policies,
    client_ip: ClientIP,
    x_admin_code: str = Header(...),
) -> PlainTextResponse:
    if not await guard.verify_admin_code(limiter, client_ip, event_id, x_admin_code, policies):
        raise UnauthorizedError()
    data = await db.get_event_with_responses(event_id)
    if not data:
        raise NotFoundError(event_id=event_id)
    return PlainTextResponse(aggregation.format_summary(data["event"], data["responses"]))


@router.post("/events/{event_id}/responses")
async def submit_response(
    event_id: str,
    req: SubmitResponseRequest,
    limiter: Limiter,
    policies: Policies,
    client_ip: ClientIP,
) -> dict[str, Any]:
    check = await limiter.check(f"submit:{client_ip}", policies.submit_response)
    if not check.success:
        raise RateLimitedError(reset_in_ms=check.reset_in_ms)

    logger.info("POST /events/%s/responses name=%s dates=%d", event_id, req.name, len(req.availability))
    event = await _require_event(event_id)
    host_dates = set(event["host_dates"])
    allowed = set(event["time_slots"])
    for day, slots in req.availability.items():
        if day not in host_dates:
            raise BadRequestError(detail=f"Date is not offered by this event: {day}")
        for slot in slots:
            if slot.value not in allowed:
                raise BadRequestError(detail=f"Time slot not offered by this event: {slot.value}")

    availability = {day: [s.value for s in slots] for day, slots in req.availability.items()}
    result = await db.upsert_response(event_id, req.name, availability, req.plus_one)
    logger.info("Upserted response for %s on event %s", req.name, event_id)
    return result


@router.patch("/events/{event_id}", response_model=ActionResult)
async def update_event(
    event_id: str, req: UpdateEventRequest, limiter: Limiter, policies: Policies, client_ip: ClientIP
) -> ActionResult:
    return await guard.update_event(
        limiter, client_ip, event_id, req.admin_code, req.title, req.location, req.description, policies
    )


@router.delete("/events/{event_id}/responses/{name}", response_model=ActionResult)
async def delete_response(
    event_id: str,
    name: str,
    limiter: Limiter,
    policies: Policies,
    client_ip: ClientIP,
    x_admin_code: str = Header(...),
) -> ActionResult:
    return await guard.delete_response(limiter, client_ip, event_id, x_admin_code, name, policies)
