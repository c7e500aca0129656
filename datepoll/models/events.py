from pydantic import BaseModel, computed_field

from datepoll.models.timeslots import TimeSlot


class SlotOption(BaseModel):
    value: TimeSlot
    label: str
    emoji: str
    hint: str


class Event(BaseModel):
    id: str
    title: str
    location: str | None = None
    description: str | None = None
    host_dates: list[str]
    time_slots: list[TimeSlot]
    created_at: str

    @computed_field
    @property
    def slot_options(self) -> list[SlotOption]:
        return [SlotOption(value=s, label=s.label, emoji=s.emoji, hint=s.hint) for s in self.time_slots]


class Response(BaseModel):
    name: str
    plus_one: str | None = None
    availability: dict[str, list[TimeSlot]]
    created_at: str
    updated_at: str


class EventWithResponses(BaseModel):
    event: Event
    responses: list[Response]


class CreatedEvent(BaseModel):
    id: str
    share_url: str


class VerifyResult(BaseModel):
    valid: bool


class ActionResult(BaseModel):
    """Outcome of an admin mutation; failures are reported, not raised."""

    success: bool
    error: str | None = None
    error_code: str | None = None


class EventResults(BaseModel):
    event: Event
    date_counts: dict[str, int]
    guest_counts: dict[str, int]
    best_dates: list[str]
    best_count: int
    total_responses: int
    total_guests: int
