"""Shared test fixtures and helpers for campaign_log tests."""

import tempfile
from pathlib import Path

import pytest

from campaign_log.models import EVENT_MODELS, BaseActivityEvent
from campaign_log.resources import MemoryResource
from campaign_log.service import ActivityLogService
from campaign_log.store import ActivityLogStore

BASE_TS = 1_700_000_000_000
CAMPAIGN = "campaign_test"


# One valid metadata payload per event type
SAMPLE_METADATA: dict[str, dict] = {
    "shop_transaction": {
        "transaction_type": "purchase",
        "shop_name": "The Gilded Anvil",
        "shop_id": "shop_1",
        "items": [
            {"item_name": "Longsword", "quantity": 1, "unit_cost": "15 gp", "total_cost": "15 gp"},
            {"item_name": "Torch", "quantity": 5, "unit_cost": "1 cp", "total_cost": "5 cp"},
        ],
        "total_cost": "15 gp, 5 cp",
        "player_name": "Alice",
    },
    "shop_created": {
        "shop_name": "Moonlit Apothecary",
        "shop_type": "alchemist",
        "wealth_level": "Modest",
        "location": "Saltmarsh",
        "npc_shopkeep": {"name": "Mira", "species": "Elf", "disposition": "friendly"},
    },
    "shop_inventory_restocked": {
        "shop_name": "The Gilded Anvil",
        "items_added": 12,
        "restock_type": "partial",
    },
    "project_started": {
        "project_name": "Forge Blade",
        "project_id": "proj_1",
        "template_name": "Craft Weapon",
        "assigned_players": ["Alice", "Bob"],
        "estimated_duration": "7 days",
        "cost": "50 gp",
    },
    "project_progress": {
        "project_name": "Forge Blade",
        "project_id": "proj_1",
        "days_worked": 3,
        "successful_days": 2,
        "failed_days": 1,
        "remaining_days": 5,
        "progress_percentage": 37.5,
    },
    "project_completed": {
        "project_name": "Forge Blade",
        "project_id": "proj_1",
        "total_days_spent": 8,
        "outcome": {"type": "item", "item_name": "Moonblade"},
    },
    "project_failed": {
        "project_name": "Brew Potion",
        "project_id": "proj_2",
        "days_spent": 4,
        "failure_reason": "Ran out of herbs",
    },
    "stronghold_order_given": {
        "stronghold_name": "Ravenhold",
        "stronghold_id": "sh_1",
        "order_name": "Recruit",
        "order_id": "ord_1",
        "order_type": "facility",
        "facility_name": "Barracks",
        "time_required": 7,
        "completion_day": 42,
        "cost": "100 gp",
    },
    "stronghold_order_completed": {
        "stronghold_name": "Ravenhold",
        "stronghold_id": "sh_1",
        "order_name": "Recruit",
        "order_id": "ord_1",
        "order_type": "facility",
        "days_spent": 7,
        "results": [{"type": "defender", "description": "Two new guards"}],
    },
    "time_advanced": {
        "days_advanced": 3,
        "from_date": "1 Hammer 1492",
        "to_date": "4 Hammer 1492",
        "affected_systems": ["projects", "strongholds"],
    },
    "party_funds_adjusted": {
        "adjustment_type": "add",
        "amount": "250 gp",
        "previous_balance": "100 gp",
        "new_balance": "350 gp",
        "reason": "Dragon hoard",
    },
    "party_item_added": {
        "item_name": "Rope",
        "quantity": 2,
        "source": "loot",
        "associated_event_id": "evt_1",
    },
    "party_item_removed": {
        "item_name": "Healing Potion",
        "quantity": 1,
        "reason": "consumed",
    },
    "custom_note": {
        "title": "Session 12",
        "content": "The party met the lich.\nIt did not go well.",
        "tags": ["lore", "villain"],
        "category": "session",
    },
}


class FakeClock:
    """Deterministic millisecond clock that advances on every call."""

    def __init__(self, start: int = BASE_TS, step: int = 1000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


# --- Fixtures ---


@pytest.fixture
def temp_log_dir():
    """Provide a temporary directory for log files.

    Yields a Path to a temporary directory that's cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def resource():
    """An in-memory backing resource that does not exist yet."""
    return MemoryResource()


@pytest.fixture
def store(resource, clock):
    """Provide a fresh ActivityLogStore over an in-memory resource."""
    return ActivityLogStore(resource, clock=clock)


@pytest.fixture
def file_store(temp_log_dir, clock):
    """Provide an ActivityLogStore backed by a real file."""
    return ActivityLogStore.from_path(temp_log_dir / "Activity Log.md", clock=clock)


@pytest.fixture
def service(store, clock):
    return ActivityLogService(store, CAMPAIGN, clock=clock)


@pytest.fixture
def populated_store(store):
    """Provide a store holding one event of every type, one second apart.

    The custom note is the newest event.
    """
    for i, event_type in enumerate(SAMPLE_METADATA):
        store.append(make_event(event_type, f"evt_{i:02d}", BASE_TS + i * 1000))
    return store


# --- Helper Functions (not fixtures) ---


def make_event(
    event_type: str, id: str, timestamp: int, campaign_id: str = CAMPAIGN, **overrides
) -> BaseActivityEvent:
    """Helper to create a typed test event.

    Args:
        event_type: One of the event type strings
        id: Event ID
        timestamp: Milliseconds since epoch
        campaign_id: Owning campaign
        **overrides: Envelope fields (or ``metadata``) to replace

    Returns:
        An instance of the event model for ``event_type``.
    """
    fields = {
        "id": id,
        "campaign_id": campaign_id,
        "timestamp": timestamp,
        "actor_type": "gm",
        "actor_name": "Game Master",
        "description": f"{event_type} happened",
        "metadata": SAMPLE_METADATA[event_type],
    }
    fields.update(overrides)
    return EVENT_MODELS[event_type](**fields)


def make_note(id: str, timestamp: int, title: str = "Note", content: str = "", **overrides):
    """Helper to create a custom note event."""
    overrides.setdefault("description", title)
    return make_event(
        "custom_note",
        id,
        timestamp,
        metadata={"title": title, "content": content},
        **overrides,
    )
