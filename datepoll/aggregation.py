"""Availability aggregation: per-date counts, best dates and text summaries.

Responses are the dicts produced by ``datepoll.db`` (``name``, ``plus_one``,
``availability``), in creation order. Dates are ISO ``YYYY-MM-DD`` strings, so
lexicographic order is calendar order. Everything here is pure.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, timedelta
from typing import Any

from datepoll.models.timeslots import TimeSlot, ordered


def _is_available(response: Mapping[str, Any], day: str) -> bool:
    slots = (response.get("availability") or {}).get(day)
    return bool(slots)


def _sorted_dates(host_dates: Iterable[str]) -> list[str]:
    return sorted(set(host_dates))


def compute_date_counts(
    host_dates: Iterable[str], responses: Sequence[Mapping[str, Any]]
) -> dict[str, int]:
    """Number of responses with at least one slot selected, per host date."""
    return {
        day: sum(1 for r in responses if _is_available(r, day))
        for day in _sorted_dates(host_dates)
    }


def compute_guest_counts(
    host_dates: Iterable[str], responses: Sequence[Mapping[str, Any]]
) -> dict[str, int]:
    """Like compute_date_counts, but a response bringing a plus-one counts twice."""
    return {
        day: sum(1 + bool(r.get("plus_one")) for r in responses if _is_available(r, day))
        for day in _sorted_dates(host_dates)
    }


def total_guests(responses: Sequence[Mapping[str, Any]]) -> int:
    return sum(1 + bool(r.get("plus_one")) for r in responses)


def best_dates(date_counts: Mapping[str, int]) -> list[str]:
    """Dates sharing the maximum count, ascending. Empty when nobody is available."""
    max_count = max(date_counts.values(), default=0)
    if max_count == 0:
        return []
    return sorted(day for day, count in date_counts.items() if count == max_count)


def format_date(day: str) -> str:
    """``2024-06-01`` -> ``Sat, Jun 1``."""
    d = date.fromisoformat(day)
    return f"{d:%a}, {d:%b} {d.day}"


def _slot_text(slots: Iterable[str]) -> str:
    return ", ".join(f"{s.emoji} {s.label}" for s in ordered(TimeSlot(x) for x in slots))


def _respondent(response: Mapping[str, Any]) -> str:
    if response.get("plus_one"):
        return f"{response['name']} (+1 {response['plus_one']})"
    return response["name"]


def format_summary(event: Mapping[str, Any], responses: Sequence[Mapping[str, Any]]) -> str:
    """Plain-text availability summary suitable for pasting into a group chat.

    Dates nobody can make are left out. Within a date, respondents keep
    response creation order.
    """
    lines = [f"📅 {event['title']} - Availability Summary"]
    days = _sorted_dates(event["host_dates"])

    for day in days:
        available = [r for r in responses if _is_available(r, day)]
        if not available:
            continue
        lines.append("")
        lines.append(f"{format_date(day)}:")
        for r in available:
            lines.append(f"  • {_respondent(r)}: {_slot_text(r['availability'][day])}")

    counts = compute_date_counts(days, responses)
    winners = best_dates(counts)
    if winners:
        plural = "s" if len(winners) > 1 else ""
        best = counts[winners[0]]
        lines.append("")
        lines.append(
            f"✨ Best date{plural}: {', '.join(format_date(d) for d in winners)} "
            f"({best}/{len(responses)} available)"
        )

    return "\n".join(lines)


def format_share_message(event: Mapping[str, Any], share_url: str, reply_by: date) -> str:
    """Friendly invitation text to send along with the event link."""
    where = f" at {event['location']}" if event.get("location") else ""
    return (
        f"hey! we're planning {event['title']}{where}. when are you free? "
        f"fill this out real quick:\n{share_url}\n\n"
        f"please reply by {reply_by:%A}, {reply_by:%b} {reply_by.day} 🙏"
    )


def reply_by_date(today: date, days: int) -> date:
    return today + timedelta(days=days)


def build_results(event: Mapping[str, Any], responses: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    counts = compute_date_counts(event["host_dates"], responses)
    winners = best_dates(counts)
    return {
        "event": event,
        "date_counts": counts,
        "guest_counts": compute_guest_counts(event["host_dates"], responses),
        "best_dates": winners,
        "best_count": counts[winners[0]] if winners else 0,
        "total_responses": len(responses),
        "total_guests": total_guests(responses),
    }
