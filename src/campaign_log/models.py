"""Core data models for the activity log.

Uses Pydantic v2 for validation, ULID for sortable unique IDs. Every event
shares one envelope; the ``type`` field selects exactly one metadata shape.
Wire names are camelCase, Python attributes are snake_case.
"""

from typing import Annotated, Literal, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel
from ulid import ULID


def generate_id() -> str:
    """Generate a ULID (sortable, unique identifier)."""
    return str(ULID())


EventType = Literal[
    "shop_transaction",
    "shop_created",
    "shop_inventory_restocked",
    "project_started",
    "project_progress",
    "project_completed",
    "project_failed",
    "stronghold_order_given",
    "stronghold_order_completed",
    "time_advanced",
    "party_funds_adjusted",
    "party_item_added",
    "party_item_removed",
    "custom_note",
]

ActorType = Literal["player", "gm", "system"]

EVENT_TYPES: tuple[str, ...] = get_args(EventType)
ACTOR_TYPES: tuple[str, ...] = get_args(ActorType)

FALLBACK_EVENT_TYPE = "custom_note"
FALLBACK_ACTOR_TYPE = "system"


class WireModel(BaseModel):
    """Base for everything serialized into the log (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Dump with wire names, omitting absent optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ─────────────────────────────────────────────────────────────────────────────
# Metadata payloads
# ─────────────────────────────────────────────────────────────────────────────


class TransactionItem(WireModel):
    item_name: str
    item_id: str | None = None
    quantity: int
    unit_cost: str  # currency format: "5 gp, 3 sp"
    total_cost: str


class ShopTransactionMetadata(WireModel):
    transaction_type: Literal["purchase", "sale"]
    shop_name: str
    shop_id: str | None = None
    items: list[TransactionItem] = Field(default_factory=list)
    total_cost: str
    player_name: str | None = None


class Shopkeeper(WireModel):
    name: str
    species: str
    disposition: str


class ShopCreatedMetadata(WireModel):
    shop_name: str
    shop_id: str | None = None
    shop_type: str
    wealth_level: str
    location: str | None = None
    npc_shopkeep: Shopkeeper | None = None


class ShopRestockedMetadata(WireModel):
    shop_name: str
    shop_id: str | None = None
    items_added: int
    restock_type: Literal["full", "partial"]


class ProjectStartedMetadata(WireModel):
    project_name: str
    project_id: str
    template_name: str
    assigned_players: list[str] = Field(default_factory=list)
    estimated_duration: str  # "7 days" or "Variable"
    cost: str | None = None


class ProjectProgressMetadata(WireModel):
    project_name: str
    project_id: str
    days_worked: int
    successful_days: int
    failed_days: int
    remaining_days: int | None = None
    progress_percentage: float | None = None  # 0-100


class ProjectOutcome(WireModel):
    type: Literal["item", "currency", "information", "custom"]
    item_name: str | None = None
    currency_amount: str | None = None
    notes: str | None = None


class ProjectCompletedMetadata(WireModel):
    project_name: str
    project_id: str
    total_days_spent: int
    outcome: ProjectOutcome


class ProjectFailedMetadata(WireModel):
    project_name: str
    project_id: str
    days_spent: int
    failure_reason: str


class StrongholdOrderGivenMetadata(WireModel):
    stronghold_name: str
    stronghold_id: str
    order_name: str
    order_id: str
    order_type: Literal["facility", "stronghold"]
    facility_name: str | None = None
    time_required: int  # days
    completion_day: int
    cost: str


class OrderResult(WireModel):
    type: Literal["item", "gold", "defender", "buff", "event", "morale"]
    description: str


class StrongholdOrderCompletedMetadata(WireModel):
    stronghold_name: str
    stronghold_id: str
    order_name: str
    order_id: str
    order_type: Literal["facility", "stronghold"]
    facility_name: str | None = None
    days_spent: int
    results: list[OrderResult] = Field(default_factory=list)


class TimeAdvancedMetadata(WireModel):
    days_advanced: int
    from_date: str
    to_date: str
    affected_systems: list[str] = Field(default_factory=list)


class PartyFundsAdjustedMetadata(WireModel):
    adjustment_type: Literal["add", "subtract", "set"]
    amount: str
    previous_balance: str
    new_balance: str
    reason: str


class PartyItemAddedMetadata(WireModel):
    item_name: str
    item_id: str | None = None
    quantity: int
    source: Literal["shop_purchase", "project_outcome", "manual", "loot"]
    associated_event_id: str | None = None


class PartyItemRemovedMetadata(WireModel):
    item_name: str
    item_id: str | None = None
    quantity: int
    reason: Literal["sold", "consumed", "lost", "manual"]
    associated_event_id: str | None = None


class CustomNoteMetadata(WireModel):
    title: str
    content: str
    tags: list[str] | None = None
    category: str | None = None


# ─────────────────────────────────────────────────────────────────────────────
# Events
# ─────────────────────────────────────────────────────────────────────────────


class BaseActivityEvent(WireModel):
    """Envelope shared by every event type.

    Only ``notes`` and ``notes_last_updated`` change after creation.
    """

    id: str = Field(default_factory=generate_id)
    campaign_id: str
    timestamp: int = Field(ge=0)  # ms since epoch, primary ordering key
    game_date: str | None = None  # in-fiction label, compared as a string
    type: EventType
    actor_type: ActorType = FALLBACK_ACTOR_TYPE
    actor_name: str | None = None
    description: str = ""
    metadata: WireModel
    notes: str | None = None
    notes_last_updated: int | None = Field(default=None, ge=0)

    @field_validator("game_date", "actor_name", "notes", mode="before")
    @classmethod
    def _empty_is_absent(cls, value):
        if value == "":
            return None
        return value

    @property
    def actor_display(self) -> str:
        return self.actor_name or self.actor_type

    def to_summary(self) -> dict:
        """Return a compact summary of this event."""
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "game_date": self.game_date,
            "actor": self.actor_display,
            "description": self.description,
            "has_notes": self.notes is not None,
        }


class ShopTransactionEvent(BaseActivityEvent):
    type: Literal["shop_transaction"] = "shop_transaction"
    metadata: ShopTransactionMetadata


class ShopCreatedEvent(BaseActivityEvent):
    type: Literal["shop_created"] = "shop_created"
    metadata: ShopCreatedMetadata


class ShopRestockedEvent(BaseActivityEvent):
    type: Literal["shop_inventory_restocked"] = "shop_inventory_restocked"
    metadata: ShopRestockedMetadata


class ProjectStartedEvent(BaseActivityEvent):
    type: Literal["project_started"] = "project_started"
    metadata: ProjectStartedMetadata


class ProjectProgressEvent(BaseActivityEvent):
    type: Literal["project_progress"] = "project_progress"
    metadata: ProjectProgressMetadata


class ProjectCompletedEvent(BaseActivityEvent):
    type: Literal["project_completed"] = "project_completed"
    metadata: ProjectCompletedMetadata


class ProjectFailedEvent(BaseActivityEvent):
    type: Literal["project_failed"] = "project_failed"
    metadata: ProjectFailedMetadata


class StrongholdOrderGivenEvent(BaseActivityEvent):
    type: Literal["stronghold_order_given"] = "stronghold_order_given"
    metadata: StrongholdOrderGivenMetadata


class StrongholdOrderCompletedEvent(BaseActivityEvent):
    type: Literal["stronghold_order_completed"] = "stronghold_order_completed"
    metadata: StrongholdOrderCompletedMetadata


class TimeAdvancedEvent(BaseActivityEvent):
    type: Literal["time_advanced"] = "time_advanced"
    metadata: TimeAdvancedMetadata


class PartyFundsAdjustedEvent(BaseActivityEvent):
    type: Literal["party_funds_adjusted"] = "party_funds_adjusted"
    metadata: PartyFundsAdjustedMetadata


class PartyItemAddedEvent(BaseActivityEvent):
    type: Literal["party_item_added"] = "party_item_added"
    metadata: PartyItemAddedMetadata


class PartyItemRemovedEvent(BaseActivityEvent):
    type: Literal["party_item_removed"] = "party_item_removed"
    metadata: PartyItemRemovedMetadata


class CustomNoteEvent(BaseActivityEvent):
    type: Literal["custom_note"] = "custom_note"
    metadata: CustomNoteMetadata


ActivityEvent = Annotated[
    Union[
        ShopTransactionEvent,
        ShopCreatedEvent,
        ShopRestockedEvent,
        ProjectStartedEvent,
        ProjectProgressEvent,
        ProjectCompletedEvent,
        ProjectFailedEvent,
        StrongholdOrderGivenEvent,
        StrongholdOrderCompletedEvent,
        TimeAdvancedEvent,
        PartyFundsAdjustedEvent,
        PartyItemAddedEvent,
        PartyItemRemovedEvent,
        CustomNoteEvent,
    ],
    Field(discriminator="type"),
]

EVENT_ADAPTER: TypeAdapter = TypeAdapter(ActivityEvent)

EVENT_MODELS: dict[str, type[BaseActivityEvent]] = {
    model.model_fields["type"].default: model
    for model in get_args(get_args(ActivityEvent)[0])
}


def metadata_model_for(event_type: str) -> type[WireModel]:
    """Return the metadata model declared by an event type."""
    return EVENT_MODELS[event_type].model_fields["metadata"].annotation


def check_exhaustive(registry: dict, name: str) -> None:
    """Raise TypeError unless ``registry`` has an entry for every event type."""
    missing = set(EVENT_TYPES) - set(registry)
    extra = set(registry) - set(EVENT_TYPES)
    if missing or extra:
        raise TypeError(
            f"{name} does not match event types: missing={sorted(missing)} extra={sorted(extra)}"
        )


check_exhaustive(EVENT_MODELS, "EVENT_MODELS")
