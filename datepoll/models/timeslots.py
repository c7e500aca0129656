"""Time slot enumeration and the allday exclusivity rule."""

from collections.abc import Iterable
from enum import Enum


class TimeSlot(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    ALLDAY = "allday"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def emoji(self) -> str:
        return _EMOJIS[self]

    @property
    def hint(self) -> str:
        return _HINTS[self]


_LABELS = {
    TimeSlot.BREAKFAST: "Breakfast",
    TimeSlot.LUNCH: "Lunch",
    TimeSlot.DINNER: "Dinner",
    TimeSlot.ALLDAY: "All Day",
}

_EMOJIS = {
    TimeSlot.BREAKFAST: "🌅",
    TimeSlot.LUNCH: "☀️",
    TimeSlot.DINNER: "🌙",
    TimeSlot.ALLDAY: "🎉",
}

_HINTS = {
    TimeSlot.BREAKFAST: "~8-11am",
    TimeSlot.LUNCH: "~11am-2pm",
    TimeSlot.DINNER: "~6-9pm",
    TimeSlot.ALLDAY: "The whole day!",
}

# Declaration order doubles as display order.
SLOT_ORDER: tuple[TimeSlot, ...] = tuple(TimeSlot)


def toggle_slot(selected: Iterable[TimeSlot], slot: TimeSlot) -> frozenset[TimeSlot]:
    """Return the selection that results from clicking ``slot``.

    ``allday`` is exclusive: turning it on clears everything else, and turning
    on any other slot clears ``allday`` first.
    """
    current = frozenset(selected)
    if slot is TimeSlot.ALLDAY:
        if TimeSlot.ALLDAY in current:
            return frozenset()
        return frozenset({TimeSlot.ALLDAY})
    current = current - {TimeSlot.ALLDAY}
    if slot in current:
        return current - {slot}
    return current | {slot}


def select_slots(picks: Iterable[TimeSlot]) -> frozenset[TimeSlot]:
    """Replay ``picks`` as clicks on an empty selection.

    Repeats are ignored, so ``[allday, lunch]`` ends as ``{lunch}`` and
    ``[lunch, allday]`` as ``{allday}``.
    """
    selected: frozenset[TimeSlot] = frozenset()
    for slot in dict.fromkeys(picks):
        selected = toggle_slot(selected, slot)
    return selected


def ordered(slots: Iterable[TimeSlot]) -> list[TimeSlot]:
    chosen = set(slots)
    return [s for s in SLOT_ORDER if s in chosen]
