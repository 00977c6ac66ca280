"""Tests for ActivityLogService helpers."""

from campaign_log.service import ActivityLogService

from conftest import BASE_TS, CAMPAIGN, SAMPLE_METADATA


def test_log_shop_transaction_by_player(service, store):
    """Test a purchase made by a named player."""
    meta = SAMPLE_METADATA["shop_transaction"]
    event = service.log_shop_transaction(
        "purchase", "The Gilded Anvil", meta["items"], "15 gp, 5 cp",
        player_name="Alice", actor_name="Alice", game_date="Day 4",
    )

    assert event.type == "shop_transaction"
    assert event.description == "purchased 6 items at The Gilded Anvil for 15 gp, 5 cp (Alice)"
    assert event.actor_type == "player"
    assert event.actor_name == "Alice"
    assert event.campaign_id == CAMPAIGN
    assert event.timestamp == BASE_TS
    assert event.game_date == "Day 4"
    assert len(event.id) == 26
    assert store.get(event.id) == event


def test_log_shop_transaction_defaults_to_gm(service):
    """Test a single-item sale with no actor given."""
    item = {"item_name": "Gem", "quantity": 1, "unit_cost": "50 gp", "total_cost": "50 gp"}
    event = service.log_shop_transaction("sale", "Pawn", [item], "50 gp")

    assert event.description == "sold 1 item at Pawn for 50 gp"
    assert event.actor_type == "gm"
    assert event.actor_name == "Game Master"


def test_log_shop_created(service):
    event = service.log_shop_created(
        "Moonlit Apothecary", "alchemist", "Modest", location="Saltmarsh",
        npc_shopkeep={"name": "Mira", "species": "Elf", "disposition": "friendly"},
    )

    assert event.description == 'Created modest alchemist "Moonlit Apothecary" in Saltmarsh'
    assert event.metadata.npc_shopkeep.name == "Mira"
    assert event.actor_type == "gm"


def test_log_shop_restocked(service):
    event = service.log_shop_restocked("The Gilded Anvil", 12, "partial")

    assert event.type == "shop_inventory_restocked"
    assert event.description == "Restocked The Gilded Anvil (partial, 12 items added)"
    assert event.actor_type == "system"


def test_project_lifecycle(service, store):
    """Test the four project helpers and their descriptions."""
    started = service.log_project_started(
        "Forge Blade", "proj_1", "Craft Weapon", ["Alice", "Bob"], "7 days", cost="50 gp"
    )
    progress = service.log_project_progress("Forge Blade", "proj_1", 3, 2, 1)
    completed = service.log_project_completed(
        "Forge Blade", "proj_1", 8, {"type": "item", "item_name": "Moonblade"}
    )
    failed = service.log_project_failed("Brew Potion", "proj_2", 4, "Ran out of herbs")

    assert started.description == 'Started project "Forge Blade" (Alice, Bob)'
    assert started.actor_type == "gm"
    assert progress.description == 'Project "Forge Blade" progress: 3 days worked (2 successful, 1 failed)'
    assert progress.actor_type == "system"
    assert progress.actor_name is None
    assert completed.description == 'Completed project "Forge Blade" in 8 days'
    assert completed.metadata.outcome.item_name == "Moonblade"
    assert failed.description == 'Project "Brew Potion" failed after 4 days: Ran out of herbs'

    assert [e.id for e in store.events] == [failed.id, completed.id, progress.id, started.id]


def test_stronghold_orders(service):
    given = service.log_stronghold_order_given(
        "Ravenhold", "sh_1", "Recruit", "ord_1", "facility", 7, 42, "100 gp",
        facility_name="Barracks",
    )
    completed = service.log_stronghold_order_completed(
        "Ravenhold", "sh_1", "Recruit", "ord_1", "stronghold", 7,
        [{"type": "defender", "description": "Two new guards"}],
    )

    assert given.description == 'Assigned order "Recruit" to Ravenhold at Barracks (7 days, 100 gp)'
    assert given.actor_type == "gm"
    assert completed.description == 'Completed order "Recruit" at Ravenhold (7 days)'
    assert completed.actor_type == "system"
    assert completed.metadata.results[0].type == "defender"


def test_log_time_advanced_uses_new_date(service):
    """Test that the game date defaults to the date time advanced to."""
    event = service.log_time_advanced(1, "1 Hammer", "2 Hammer", ["projects"])

    assert event.description == "Advanced time by 1 day (1 Hammer → 2 Hammer)"
    assert event.game_date == "2 Hammer"
    assert event.actor_name == "Game Master"

    many = service.log_time_advanced(3, "2 Hammer", "5 Hammer", [], game_date="Custom")
    assert many.description.startswith("Advanced time by 3 days")
    assert many.game_date == "Custom"


def test_log_party_funds_adjusted(service):
    added = service.log_party_funds_adjusted("add", "250 gp", "100 gp", "350 gp", "Dragon hoard")
    removed = service.log_party_funds_adjusted("subtract", "5 gp", "350 gp", "345 gp", "Tolls")
    reset = service.log_party_funds_adjusted("set", "0 gp", "345 gp", "0 gp", "Robbed")

    assert added.description == "Added 250 gp: Dragon hoard"
    assert removed.description == "Subtracted 5 gp: Tolls"
    assert reset.description == "Set 0 gp: Robbed"


def test_party_item_actor_depends_on_source(service):
    manual = service.log_party_item_added("Rope", 2, "manual")
    looted = service.log_party_item_added("Gold Idol", 1, "loot")
    consumed = service.log_party_item_removed("Healing Potion", 1, "consumed")
    dropped = service.log_party_item_removed("Rope", 1, "manual")

    assert manual.description == "Added 2x Rope to party inventory (manual)"
    assert manual.actor_type == "gm"
    assert looted.actor_type == "system"
    assert consumed.description == "Removed 1x Healing Potion from party inventory (consumed)"
    assert consumed.actor_type == "system"
    assert dropped.actor_type == "gm"


def test_log_custom_note(service):
    event = service.log_custom_note("Session 12", "We met the lich.", tags=["lore"], actor_name="Dana")

    assert event.description == "Session 12"
    assert event.metadata.content == "We met the lich."
    assert event.actor_name == "Dana"


def test_update_event_notes_uses_service_clock(service, clock):
    event = service.log_custom_note("Note", "")
    expected = clock.now

    updated = service.update_event_notes(event.id, "Follow up next session")

    assert updated.notes == "Follow up next session"
    assert updated.notes_last_updated == expected


def test_queries_are_scoped_to_campaign(store, clock):
    """Test that a service only sees its own campaign."""
    ours = ActivityLogService(store, "ours", clock=clock)
    theirs = ActivityLogService(store, "theirs", clock=clock)
    ours.log_custom_note("Dragon sighted", "red scales")
    theirs.log_custom_note("Dragon sighted elsewhere", "")

    assert ours.get_activity_log().total == 1
    assert ours.get_activity_log(campaign_id="theirs").total == 1
    assert ours.search_activity_log("dragon").total == 1
    assert ours.search_activity_log("SCALES").events[0].campaign_id == "ours"


def test_get_activity_log_by_date_range(service):
    first = service.log_custom_note("one", "")
    second = service.log_custom_note("two", "")
    service.log_custom_note("three", "")

    result = service.get_activity_log_by_date_range(first.timestamp, second.timestamp)

    assert [e.description for e in result.events] == ["two", "one"]
    assert result.limit == 100


def test_default_page_sizes(service):
    for i in range(60):
        service.log_custom_note(f"note {i}", "")

    result = service.search_activity_log("note")

    assert len(result.events) == 50
    assert result.has_more is True


def test_campaign_id_can_be_callable(store):
    """Test that switching campaigns needs no new service."""
    active = {"id": "first"}
    service = ActivityLogService(store, lambda: active["id"])

    service.log_custom_note("a", "")
    active["id"] = "second"
    event = service.log_custom_note("b", "")

    assert event.campaign_id == "second"
    assert service.get_activity_log().total == 1


def test_id_factory_is_injectable():
    ids = iter(["fixed_1", "fixed_2"])

    class Recorder:
        def __init__(self):
            self.appended = []

        def append(self, event):
            self.appended.append(event)
            return event

    recorder = Recorder()
    service = ActivityLogService(recorder, "c", clock=lambda: 7, id_factory=lambda: next(ids))

    assert service.log_custom_note("x", "").id == "fixed_1"
    assert recorder.appended[0].timestamp == 7
