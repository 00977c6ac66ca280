"""High-level helpers for logging common game events.

Entity managers call these instead of assembling envelopes by hand. Each
helper stamps a ULID, the current campaign and the injected clock, picks the
actor defaults, writes the one-line description and appends the event.
"""

import logging
from typing import Callable

from .constants import DEFAULT_DATE_RANGE_LIMIT, DEFAULT_GM_NAME, DEFAULT_PAGE_SIZE
from .models import (
    BaseActivityEvent,
    CustomNoteEvent,
    CustomNoteMetadata,
    PartyFundsAdjustedEvent,
    PartyFundsAdjustedMetadata,
    PartyItemAddedEvent,
    PartyItemAddedMetadata,
    PartyItemRemovedEvent,
    PartyItemRemovedMetadata,
    ProjectCompletedEvent,
    ProjectCompletedMetadata,
    ProjectFailedEvent,
    ProjectFailedMetadata,
    ProjectProgressEvent,
    ProjectProgressMetadata,
    ProjectStartedEvent,
    ProjectStartedMetadata,
    ShopCreatedEvent,
    ShopCreatedMetadata,
    ShopRestockedEvent,
    ShopRestockedMetadata,
    ShopTransactionEvent,
    ShopTransactionMetadata,
    StrongholdOrderCompletedEvent,
    StrongholdOrderCompletedMetadata,
    StrongholdOrderGivenEvent,
    StrongholdOrderGivenMetadata,
    TimeAdvancedEvent,
    TimeAdvancedMetadata,
    generate_id,
)
from .query import ActivityLogQuery, ActivityLogResult
from .store import ActivityLogStore

logger = logging.getLogger(__name__)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


class ActivityLogService:
    """Logs game events for one campaign into an ActivityLogStore.

    ``campaign_id`` may be a string or a callable returning the active
    campaign, so switching campaigns needs no new service.
    """

    def __init__(
        self,
        store: ActivityLogStore,
        campaign_id: str | Callable[[], str],
        clock: Callable[[], int] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.store = store
        self._campaign_id = campaign_id
        self.clock = clock or store.clock
        self.id_factory = id_factory or generate_id

    @property
    def campaign_id(self) -> str:
        if callable(self._campaign_id):
            return self._campaign_id()
        return self._campaign_id

    def _log(
        self,
        event_cls: type[BaseActivityEvent],
        metadata,
        description: str,
        actor_type: str,
        actor_name: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        event = event_cls(
            id=self.id_factory(),
            campaign_id=self.campaign_id,
            timestamp=self.clock(),
            game_date=game_date,
            actor_type=actor_type,
            actor_name=actor_name,
            description=description,
            metadata=metadata,
        )
        logger.debug(f"Logging {event.type} for {event.campaign_id}: {description}")
        return self.store.append(event)

    # --- Shops ---

    def log_shop_transaction(
        self,
        transaction_type: str,
        shop_name: str,
        items: list,
        total_cost: str,
        shop_id: str | None = None,
        player_name: str | None = None,
        actor_name: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = ShopTransactionMetadata(
            transaction_type=transaction_type,
            shop_name=shop_name,
            shop_id=shop_id,
            items=items,
            total_cost=total_cost,
            player_name=player_name,
        )
        action = "purchased" if meta.transaction_type == "purchase" else "sold"
        item_count = sum(item.quantity for item in meta.items)
        player_text = f" ({player_name})" if player_name else ""
        description = (
            f"{action} {_plural(item_count, 'item')} at {shop_name} for {total_cost}{player_text}"
        )
        return self._log(
            ShopTransactionEvent,
            meta,
            description,
            actor_type="player" if actor_name else "gm",
            actor_name=actor_name or DEFAULT_GM_NAME,
            game_date=game_date,
        )

    def log_shop_created(
        self,
        shop_name: str,
        shop_type: str,
        wealth_level: str,
        shop_id: str | None = None,
        location: str | None = None,
        npc_shopkeep: dict | None = None,
        actor_name: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = ShopCreatedMetadata(
            shop_name=shop_name,
            shop_id=shop_id,
            shop_type=shop_type,
            wealth_level=wealth_level,
            location=location,
            npc_shopkeep=npc_shopkeep,
        )
        location_text = f" in {location}" if location else ""
        description = f'Created {wealth_level.lower()} {shop_type} "{shop_name}"{location_text}'
        return self._log(
            ShopCreatedEvent, meta, description, "gm", actor_name or DEFAULT_GM_NAME, game_date
        )

    def log_shop_restocked(
        self,
        shop_name: str,
        items_added: int,
        restock_type: str,
        shop_id: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = ShopRestockedMetadata(
            shop_name=shop_name,
            shop_id=shop_id,
            items_added=items_added,
            restock_type=restock_type,
        )
        description = f"Restocked {shop_name} ({restock_type}, {_plural(items_added, 'item')} added)"
        return self._log(ShopRestockedEvent, meta, description, "system", game_date=game_date)

    # --- Projects ---

    def log_project_started(
        self,
        project_name: str,
        project_id: str,
        template_name: str,
        assigned_players: list[str],
        estimated_duration: str,
        cost: str | None = None,
        actor_name: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = ProjectStartedMetadata(
            project_name=project_name,
            project_id=project_id,
            template_name=template_name,
            assigned_players=assigned_players,
            estimated_duration=estimated_duration,
            cost=cost,
        )
        description = f'Started project "{project_name}" ({", ".join(assigned_players)})'
        return self._log(
            ProjectStartedEvent, meta, description, "gm", actor_name or DEFAULT_GM_NAME, game_date
        )

    def log_project_progress(
        self,
        project_name: str,
        project_id: str,
        days_worked: int,
        successful_days: int,
        failed_days: int,
        remaining_days: int | None = None,
        progress_percentage: float | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = ProjectProgressMetadata(
            project_name=project_name,
            project_id=project_id,
            days_worked=days_worked,
            successful_days=successful_days,
            failed_days=failed_days,
            remaining_days=remaining_days,
            progress_percentage=progress_percentage,
        )
        description = (
            f'Project "{project_name}" progress: {days_worked} days worked '
            f"({successful_days} successful, {failed_days} failed)"
        )
        return self._log(ProjectProgressEvent, meta, description, "system", game_date=game_date)

    def log_project_completed(
        self,
        project_name: str,
        project_id: str,
        total_days_spent: int,
        outcome: dict,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = ProjectCompletedMetadata(
            project_name=project_name,
            project_id=project_id,
            total_days_spent=total_days_spent,
            outcome=outcome,
        )
        description = f'Completed project "{project_name}" in {total_days_spent} days'
        return self._log(ProjectCompletedEvent, meta, description, "system", game_date=game_date)

    def log_project_failed(
        self,
        project_name: str,
        project_id: str,
        days_spent: int,
        failure_reason: str,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = ProjectFailedMetadata(
            project_name=project_name,
            project_id=project_id,
            days_spent=days_spent,
            failure_reason=failure_reason,
        )
        description = f'Project "{project_name}" failed after {days_spent} days: {failure_reason}'
        return self._log(ProjectFailedEvent, meta, description, "system", game_date=game_date)

    # --- Strongholds ---

    def log_stronghold_order_given(
        self,
        stronghold_name: str,
        stronghold_id: str,
        order_name: str,
        order_id: str,
        order_type: str,
        time_required: int,
        completion_day: int,
        cost: str,
        facility_name: str | None = None,
        actor_name: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = StrongholdOrderGivenMetadata(
            stronghold_name=stronghold_name,
            stronghold_id=stronghold_id,
            order_name=order_name,
            order_id=order_id,
            order_type=order_type,
            facility_name=facility_name,
            time_required=time_required,
            completion_day=completion_day,
            cost=cost,
        )
        facility_text = f" at {facility_name}" if facility_name else ""
        description = (
            f'Assigned order "{order_name}" to {stronghold_name}{facility_text} '
            f"({time_required} days, {cost})"
        )
        return self._log(
            StrongholdOrderGivenEvent,
            meta,
            description,
            "gm",
            actor_name or DEFAULT_GM_NAME,
            game_date,
        )

    def log_stronghold_order_completed(
        self,
        stronghold_name: str,
        stronghold_id: str,
        order_name: str,
        order_id: str,
        order_type: str,
        days_spent: int,
        results: list,
        facility_name: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = StrongholdOrderCompletedMetadata(
            stronghold_name=stronghold_name,
            stronghold_id=stronghold_id,
            order_name=order_name,
            order_id=order_id,
            order_type=order_type,
            facility_name=facility_name,
            days_spent=days_spent,
            results=results,
        )
        facility_text = f" at {facility_name}" if facility_name else ""
        description = (
            f'Completed order "{order_name}" at {stronghold_name}{facility_text} '
            f"({days_spent} days)"
        )
        return self._log(
            StrongholdOrderCompletedEvent, meta, description, "system", game_date=game_date
        )

    # --- Time and party ---

    def log_time_advanced(
        self,
        days_advanced: int,
        from_date: str,
        to_date: str,
        affected_systems: list[str],
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = TimeAdvancedMetadata(
            days_advanced=days_advanced,
            from_date=from_date,
            to_date=to_date,
            affected_systems=affected_systems,
        )
        description = f"Advanced time by {_plural(days_advanced, 'day')} ({from_date} → {to_date})"
        # The new date is the natural in-fiction label for this event
        return self._log(
            TimeAdvancedEvent, meta, description, "gm", DEFAULT_GM_NAME, game_date or to_date
        )

    def log_party_funds_adjusted(
        self,
        adjustment_type: str,
        amount: str,
        previous_balance: str,
        new_balance: str,
        reason: str,
        actor_name: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = PartyFundsAdjustedMetadata(
            adjustment_type=adjustment_type,
            amount=amount,
            previous_balance=previous_balance,
            new_balance=new_balance,
            reason=reason,
        )
        verb = {"add": "Added", "subtract": "Subtracted"}.get(adjustment_type, "Set")
        description = f"{verb} {amount}: {reason}"
        return self._log(
            PartyFundsAdjustedEvent,
            meta,
            description,
            "gm",
            actor_name or DEFAULT_GM_NAME,
            game_date,
        )

    def log_party_item_added(
        self,
        item_name: str,
        quantity: int,
        source: str,
        item_id: str | None = None,
        associated_event_id: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = PartyItemAddedMetadata(
            item_name=item_name,
            item_id=item_id,
            quantity=quantity,
            source=source,
            associated_event_id=associated_event_id,
        )
        description = f"Added {quantity}x {item_name} to party inventory ({source})"
        actor_type = "gm" if source == "manual" else "system"
        return self._log(PartyItemAddedEvent, meta, description, actor_type, game_date=game_date)

    def log_party_item_removed(
        self,
        item_name: str,
        quantity: int,
        reason: str,
        item_id: str | None = None,
        associated_event_id: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = PartyItemRemovedMetadata(
            item_name=item_name,
            item_id=item_id,
            quantity=quantity,
            reason=reason,
            associated_event_id=associated_event_id,
        )
        description = f"Removed {quantity}x {item_name} from party inventory ({reason})"
        actor_type = "gm" if reason == "manual" else "system"
        return self._log(PartyItemRemovedEvent, meta, description, actor_type, game_date=game_date)

    def log_custom_note(
        self,
        title: str,
        content: str,
        tags: list[str] | None = None,
        category: str | None = None,
        actor_name: str | None = None,
        game_date: str | None = None,
    ) -> BaseActivityEvent:
        meta = CustomNoteMetadata(title=title, content=content, tags=tags, category=category)
        return self._log(
            CustomNoteEvent, meta, title, "gm", actor_name or DEFAULT_GM_NAME, game_date
        )

    # --- Notes and queries ---

    def update_event_notes(self, event_id: str, notes: str) -> BaseActivityEvent:
        """Replace the GM notes on an event, stamped with the service clock."""
        return self.store.update_notes(event_id, notes, self.clock())

    def get_activity_log(self, query: ActivityLogQuery | None = None, **filters) -> ActivityLogResult:
        """Query the current campaign's log. An explicit campaign_id wins."""
        if query is None or query.campaign_id is None:
            filters.setdefault("campaign_id", self.campaign_id)
        return self.store.query(query, **filters)

    def search_activity_log(
        self, search_text: str, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> ActivityLogResult:
        return self.store.search(
            search_text, campaign_id=self.campaign_id, limit=limit, offset=offset
        )

    def get_activity_log_by_date_range(
        self,
        start_date: int,
        end_date: int,
        limit: int = DEFAULT_DATE_RANGE_LIMIT,
        offset: int = 0,
    ) -> ActivityLogResult:
        return self.store.query_by_date_range(
            start_date, end_date, campaign_id=self.campaign_id, limit=limit, offset=offset
        )
