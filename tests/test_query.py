"""Tests for the query engine: filters, ordering, pagination and search."""

import pytest
from pydantic import ValidationError

from campaign_log.query import (
    ActivityLogQuery,
    filter_events,
    matches_search,
    paginate,
    run_query,
    search_events,
    sort_events,
)

from conftest import BASE_TS, make_event, make_note


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def events():
    """A small mixed log across two campaigns."""
    return [
        make_event("shop_transaction", "s1", 1000, actor_type="player", actor_name="Alice",
                   description="purchased 6 items at The Gilded Anvil", game_date="1492-03-01"),
        make_event("project_started", "p1", 2000, description='Started project "Forge Blade"',
                   game_date="1492-03-05"),
        make_event("time_advanced", "t1", 3000, actor_type="system", actor_name=None,
                   description="Advanced time by 3 days"),
        make_note("n1", 4000, title="Lich encounter", content="The LICH fled north.",
                  actor_type="player", actor_name="Bob", game_date="1492-03-10"),
        make_note("n2", 5000, title="Other campaign", campaign_id="campaign_other"),
    ]


@pytest.fixture
def hundred():
    return [make_note(f"n{i:03d}", BASE_TS + i) for i in range(100)]


def _ids(result):
    return [e.id for e in result.events]


# ─────────────────────────────────────────────────────────────────────────────
# Filters
# ─────────────────────────────────────────────────────────────────────────────


def test_no_filters_returns_everything(events):
    result = run_query(events)
    assert result.total == 5
    assert _ids(result) == ["n2", "n1", "t1", "p1", "s1"]


def test_campaign_filter(events):
    result = run_query(events, ActivityLogQuery(campaign_id="campaign_other"))
    assert _ids(result) == ["n2"]


def test_event_type_filter(events):
    query = ActivityLogQuery(event_types=["custom_note", "time_advanced"])
    assert _ids(run_query(events, query)) == ["n2", "n1", "t1"]


def test_actor_type_filter(events):
    assert _ids(run_query(events, ActivityLogQuery(actor_types=["player"]))) == ["n1", "s1"]


def test_actor_name_is_case_insensitive_substring(events):
    assert _ids(run_query(events, ActivityLogQuery(actor_names=["ali"]))) == ["s1"]
    assert _ids(run_query(events, ActivityLogQuery(actor_names=["BOB", "alice"]))) == ["n1", "s1"]


def test_actor_name_filter_skips_unnamed(events):
    result = run_query(events, ActivityLogQuery(actor_names=[""]))
    assert "t1" not in _ids(result)


def test_date_range_is_inclusive(events):
    query = ActivityLogQuery(start_date=2000, end_date=4000)
    assert _ids(run_query(events, query)) == ["n1", "t1", "p1"]


def test_game_date_range_excludes_undated(events):
    query = ActivityLogQuery(game_start_date="1492-03-02", game_end_date="1492-03-31")
    assert _ids(run_query(events, query)) == ["n1", "p1"]


def test_filters_compose_as_intersection(events):
    by_type = ActivityLogQuery(event_types=["custom_note", "shop_transaction"])
    by_actor = ActivityLogQuery(actor_types=["player"])
    both = ActivityLogQuery(event_types=["custom_note", "shop_transaction"], actor_types=["player"])

    expected = set(_ids(run_query(events, by_type))) & set(_ids(run_query(events, by_actor)))

    assert set(_ids(run_query(events, both))) == expected


def test_filter_events_does_not_mutate_input(events):
    original = list(events)
    filter_events(events, ActivityLogQuery(event_types=["custom_note"]))
    assert events == original


# ─────────────────────────────────────────────────────────────────────────────
# Search
# ─────────────────────────────────────────────────────────────────────────────


def test_search_matches_description_case_insensitively(events):
    assert matches_search(events[0], "GILDED")
    assert not matches_search(events[0], "lich")


def test_search_matches_note_content(events):
    assert matches_search(events[3], "lich fled")


def test_search_only_checks_content_of_notes(events):
    assert not matches_search(events[1], "Forge Blade Craft")


def test_search_equals_query_with_search_text(events):
    query = ActivityLogQuery(actor_types=["player"], limit=10)

    searched = search_events(events, "lich", query)
    queried = run_query(events, query.model_copy(update={"search_text": "lich"}))

    assert searched == queried
    assert _ids(searched) == ["n1"]


# ─────────────────────────────────────────────────────────────────────────────
# Ordering and pagination
# ─────────────────────────────────────────────────────────────────────────────


def test_ascending_order(events):
    assert _ids(run_query(events, ActivityLogQuery(sort_order="asc"))) == ["s1", "p1", "t1", "n1", "n2"]


def test_sort_is_stable_for_equal_timestamps():
    tied = [make_note("a", 10), make_note("b", 10), make_note("c", 5)]
    assert [e.id for e in sort_events(tied, "desc")] == ["a", "b", "c"]
    assert [e.id for e in sort_events(tied, "asc")] == ["c", "a", "b"]


@pytest.mark.parametrize(
    "offset,count,has_more",
    [(0, 50, True), (50, 50, False), (100, 0, False)],
)
def test_pagination(hundred, offset, count, has_more):
    result = run_query(hundred, ActivityLogQuery(offset=offset, limit=50))

    assert len(result.events) == count
    assert result.total == 100
    assert result.has_more is has_more
    assert result.offset == offset
    assert result.limit == 50


def test_pages_are_contiguous(hundred):
    first = run_query(hundred, ActivityLogQuery(offset=0, limit=50))
    second = run_query(hundred, ActivityLogQuery(offset=50, limit=50))

    assert _ids(first) + _ids(second) == _ids(run_query(hundred))


def test_no_limit_returns_remaining(hundred):
    result = paginate(hundred, 30, None)
    assert len(result.events) == 70
    assert result.limit == 70
    assert result.has_more is False


def test_offset_past_end(hundred):
    result = paginate(hundred, 150, None)
    assert result.events == []
    assert result.limit == 0
    assert result.has_more is False


def test_invalid_pagination_rejected():
    with pytest.raises(ValidationError):
        ActivityLogQuery(offset=-1)
    with pytest.raises(ValidationError):
        ActivityLogQuery(limit=0)


def test_result_summary(events):
    summary = run_query(events, ActivityLogQuery(limit=2)).to_summary()

    assert summary["total"] == 5
    assert summary["has_more"] is True
    assert [e["id"] for e in summary["events"]] == ["n2", "n1"]
