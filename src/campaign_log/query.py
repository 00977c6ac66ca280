"""Read-only query operations over the cached activity log.

Pure functions: filter -> sort -> paginate, in that order. Nothing here
touches the backing resource.

Text predicates (actor-name substring, free-text search) are
case-insensitive.
"""

from typing import Literal, Sequence

from pydantic import BaseModel, Field

from .models import ActorType, BaseActivityEvent, EventType


class ActivityLogQuery(BaseModel):
    """Filters and pagination for a log query. Every filter is optional."""

    campaign_id: str | None = None
    event_types: list[EventType] | None = None
    actor_types: list[ActorType] | None = None
    actor_names: list[str] | None = None  # substring match, any of
    start_date: int | None = None  # ms, inclusive
    end_date: int | None = None  # ms, inclusive
    game_start_date: str | None = None  # compared as strings
    game_end_date: str | None = None
    search_text: str | None = None
    sort_order: Literal["asc", "desc"] = "desc"
    offset: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=1)  # None = all remaining


class ActivityLogResult(BaseModel):
    """One page of matching events plus pagination metadata."""

    events: list[BaseActivityEvent]
    total: int  # matches before pagination
    has_more: bool
    offset: int
    limit: int

    def to_summary(self) -> dict:
        return {
            "events": [e.to_summary() for e in self.events],
            "total": self.total,
            "has_more": self.has_more,
            "offset": self.offset,
            "limit": self.limit,
        }


def matches_search(event: BaseActivityEvent, text: str) -> bool:
    """Case-insensitive match on the description, or a custom note's content."""
    needle = text.lower()
    if needle in event.description.lower():
        return True
    if event.type == "custom_note":
        return needle in event.metadata.content.lower()
    return False


def _matches_actor_name(event: BaseActivityEvent, names: list[str]) -> bool:
    if not event.actor_name:
        return False
    actor = event.actor_name.lower()
    return any(name.lower() in actor for name in names)


def filter_events(
    events: Sequence[BaseActivityEvent], query: ActivityLogQuery
) -> list[BaseActivityEvent]:
    """Apply every provided predicate of ``query`` (AND)."""
    filtered = list(events)

    if query.campaign_id:
        filtered = [e for e in filtered if e.campaign_id == query.campaign_id]

    if query.event_types:
        types = set(query.event_types)
        filtered = [e for e in filtered if e.type in types]

    if query.actor_types:
        actor_types = set(query.actor_types)
        filtered = [e for e in filtered if e.actor_type in actor_types]

    if query.actor_names:
        filtered = [e for e in filtered if _matches_actor_name(e, query.actor_names)]

    if query.start_date is not None:
        filtered = [e for e in filtered if e.timestamp >= query.start_date]
    if query.end_date is not None:
        filtered = [e for e in filtered if e.timestamp <= query.end_date]

    # Events without a game date never match a game date range
    if query.game_start_date:
        filtered = [e for e in filtered if e.game_date and e.game_date >= query.game_start_date]
    if query.game_end_date:
        filtered = [e for e in filtered if e.game_date and e.game_date <= query.game_end_date]

    if query.search_text:
        filtered = [e for e in filtered if matches_search(e, query.search_text)]

    return filtered


def sort_events(
    events: list[BaseActivityEvent], order: Literal["asc", "desc"] = "desc"
) -> list[BaseActivityEvent]:
    """Stable sort by timestamp. Ties keep their input order in both directions."""
    if order == "desc":
        return sorted(events, key=lambda e: -e.timestamp)
    return sorted(events, key=lambda e: e.timestamp)


def paginate(
    events: list[BaseActivityEvent], offset: int, limit: int | None
) -> ActivityLogResult:
    total = len(events)
    if limit is None:
        limit = max(total - offset, 0)
    return ActivityLogResult(
        events=events[offset:offset + limit],
        total=total,
        has_more=offset + limit < total,
        offset=offset,
        limit=limit,
    )


def run_query(
    events: Sequence[BaseActivityEvent], query: ActivityLogQuery | None = None
) -> ActivityLogResult:
    """Filter, sort and paginate ``events`` according to ``query``."""
    if query is None:
        query = ActivityLogQuery()
    filtered = filter_events(events, query)
    ordered = sort_events(filtered, query.sort_order)
    return paginate(ordered, query.offset, query.limit)


def search_events(
    events: Sequence[BaseActivityEvent],
    text: str,
    query: ActivityLogQuery | None = None,
) -> ActivityLogResult:
    """Same as :func:`run_query` with ``search_text`` set to ``text``."""
    base = query or ActivityLogQuery()
    return run_query(events, base.model_copy(update={"search_text": text}))
