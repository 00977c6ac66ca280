"""Entry codec: one event <-> one Markdown entry block.

A block has three parts:

    ## <Label>[ (<gameDate>)] @ <human timestamp>
    <!-- id: … type: … campaignId: … timestamp: … … metadata: <b64> -->

    **Actor:** …
    **Description:** …
    <per-type rendering>

The metadata comment is the only thing decoded. Everything else is prose for
people and may be hand-edited freely. The timestamp in the heading is
presentation only; decoding trusts the integer in the comment.
"""

import base64
import binascii
import json
import logging
import re
from typing import Callable
from urllib.parse import quote, unquote

from pydantic import ValidationError

from .constants import METADATA_END, METADATA_START, SPACE_PLACEHOLDER
from .errors import EntryDecodeError
from .models import (
    ACTOR_TYPES,
    EVENT_ADAPTER,
    EVENT_TYPES,
    FALLBACK_ACTOR_TYPE,
    FALLBACK_EVENT_TYPE,
    BaseActivityEvent,
    CustomNoteMetadata,
    check_exhaustive,
)
from .timeutil import format_timestamp

logger = logging.getLogger(__name__)

EVENT_LABELS: dict[str, str] = {
    "shop_transaction": "Shop Transaction",
    "shop_created": "Shop Created",
    "shop_inventory_restocked": "Shop Restocked",
    "project_started": "Project Started",
    "project_progress": "Project Progress",
    "project_completed": "Project Completed",
    "project_failed": "Project Failed",
    "stronghold_order_given": "Stronghold Order Given",
    "stronghold_order_completed": "Stronghold Order Completed",
    "time_advanced": "Time Advanced",
    "party_funds_adjusted": "Party Funds Adjusted",
    "party_item_added": "Party Item Added",
    "party_item_removed": "Party Item Removed",
    "custom_note": "Custom Note",
}

# The comment must start a line so a heading can never shadow it
METADATA_PATTERN = re.compile(r"^<!--(.*?)-->", re.DOTALL | re.MULTILINE)
TOKEN_PATTERN = re.compile(r"(\w+):\s+(\S+)")

# Keys whose values are free text written with the space placeholder
TEXT_KEYS = ("gameDate", "actorName", "description")
REQUIRED_KEYS = ("id", "type", "campaignId", "timestamp")


def format_event_label(event_type: str) -> str:
    """Human label for an event type; unknown types are title-cased."""
    label = EVENT_LABELS.get(event_type)
    if label is not None:
        return label
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), event_type.replace("_", " "))


# ─────────────────────────────────────────────────────────────────────────────
# Token and payload encoding
# ─────────────────────────────────────────────────────────────────────────────


def encode_token(value: str, placeholder: bool = True) -> str:
    """Encode a value as a single whitespace-free token.

    With ``placeholder`` spaces become ``_``; ``%``, ``_``, ``>`` and any
    other whitespace are percent-escaped so decoding is exact.
    """
    out = []
    for ch in value:
        if ch == " " and placeholder:
            out.append(SPACE_PLACEHOLDER)
        elif ch in "%>" or ch.isspace() or (placeholder and ch == SPACE_PLACEHOLDER):
            out.append(quote(ch, safe=""))
        else:
            out.append(ch)
    return "".join(out)


def decode_token(token: str, placeholder: bool = True) -> str:
    """Inverse of :func:`encode_token`.

    Entries written with spaces-as-underscores only also decode, since
    placeholders are turned back into spaces before unescaping.
    """
    if placeholder:
        token = token.replace(SPACE_PLACEHOLDER, " ")
    return unquote(token)


def encode_payload(text: str) -> str:
    """Base64 a UTF-8 string so it fits in one token."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_payload(token: str) -> str:
    """Inverse of :func:`encode_payload`. Raises ValueError on bad input."""
    return base64.b64decode(token, validate=True).decode("utf-8")


# ─────────────────────────────────────────────────────────────────────────────
# Encoding
# ─────────────────────────────────────────────────────────────────────────────


def _inline(text: str) -> str:
    """Collapse a value onto one line for the prose part of a block."""
    return " ".join(text.splitlines())


def _prose(text: str) -> str:
    """Escape lines that would read as the entry delimiter.

    Line endings are normalised first, since the splitter reads CRLF as LF.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return re.sub(r"(?m)^---$", r"\\---", text)


def _wikilink(name: str) -> str:
    return f"[[{_inline(name)}]]"


def _ref(value: str | None) -> str:
    return f" (`{_inline(value)}`)" if value else ""


def render_heading(event: BaseActivityEvent) -> str:
    date_part = f" ({_inline(event.game_date)})" if event.game_date else ""
    return f"## {format_event_label(event.type)}{date_part} @ {format_timestamp(event.timestamp)}"


def render_metadata_comment(event: BaseActivityEvent) -> str:
    """Build the single machine-readable line of a block."""
    tokens = [
        f"id: {encode_token(event.id, placeholder=False)}",
        f"type: {event.type}",
        f"campaignId: {encode_token(event.campaign_id, placeholder=False)}",
        f"timestamp: {event.timestamp}",
    ]
    if event.game_date:
        tokens.append(f"gameDate: {encode_token(event.game_date)}")
    tokens.append(f"actorType: {event.actor_type}")
    if event.actor_name:
        tokens.append(f"actorName: {encode_token(event.actor_name)}")
    if event.description:
        tokens.append(f"description: {encode_token(event.description)}")

    payload = json.dumps(event.metadata.to_wire(), separators=(",", ":"), ensure_ascii=False)
    tokens.append(f"metadata: {encode_payload(payload)}")

    if event.notes:
        tokens.append(f"notes: {encode_payload(event.notes)}")
    if event.notes_last_updated is not None:
        tokens.append(f"notesLastUpdated: {event.notes_last_updated}")

    return METADATA_START + " ".join(tokens) + METADATA_END


def render_body(event: BaseActivityEvent) -> str:
    """Actor, description, notes and the per-type fields."""
    text = f"**Actor:** {_inline(event.actor_display)}\n"
    text += f"**Description:** {_inline(event.description)}\n\n"

    if event.notes:
        notes_date = (
            f"({format_timestamp(event.notes_last_updated)})"
            if event.notes_last_updated is not None
            else ""
        )
        text += f"> **Notes** {notes_date}\n"
        text += "> " + event.notes.replace("\n", "\n> ") + "\n\n"

    return text + RENDERERS[event.type](event.metadata)


def encode_entry(event: BaseActivityEvent) -> str:
    """Serialize one event to an entry block (without the delimiter)."""
    return (
        render_heading(event) + "\n"
        + render_metadata_comment(event) + "\n\n"
        + render_body(event)
    )


# --- Per-type renderers ---


def _render_shop_transaction(meta) -> str:
    text = f"**Transaction Type:** {meta.transaction_type}\n"
    text += f"**Shop:** {_wikilink(meta.shop_name)}{_ref(meta.shop_id)}\n"
    text += f"**Total Cost:** {_inline(meta.total_cost)}\n"
    if meta.player_name:
        text += f"**Player:** {_inline(meta.player_name)}\n"
    text += "\n**Items:**\n"
    for item in meta.items:
        text += (
            f"- {item.quantity}x {_inline(item.item_name)} "
            f"({_inline(item.unit_cost)} each, Total: {_inline(item.total_cost)})\n"
        )
    return text


def _render_shop_created(meta) -> str:
    text = f"**Shop:** {_wikilink(meta.shop_name)}{_ref(meta.shop_id)}\n"
    text += f"**Shop Type:** {_inline(meta.shop_type)}\n"
    text += f"**Wealth Level:** {_inline(meta.wealth_level)}\n"
    if meta.location:
        text += f"**Location:** {_wikilink(meta.location)}\n"
    if meta.npc_shopkeep:
        keeper = meta.npc_shopkeep
        text += (
            f"**Shopkeeper:** {_inline(keeper.name)} "
            f"({_inline(keeper.species)}, {_inline(keeper.disposition)})\n"
        )
    return text


def _render_shop_restocked(meta) -> str:
    text = f"**Shop:** {_wikilink(meta.shop_name)}{_ref(meta.shop_id)}\n"
    text += f"**Items Added:** {meta.items_added}\n"
    text += f"**Restock Type:** {meta.restock_type}\n"
    return text


def _project_line(meta) -> str:
    return f"**Project Name:** {_inline(meta.project_name)}{_ref(meta.project_id)}\n"


def _render_project_started(meta) -> str:
    text = _project_line(meta)
    text += f"**Template:** {_inline(meta.template_name)}\n"
    text += f"**Assigned Players:** {_inline(', '.join(meta.assigned_players))}\n"
    text += f"**Estimated Duration:** {_inline(meta.estimated_duration)}\n"
    if meta.cost:
        text += f"**Cost:** {_inline(meta.cost)}\n"
    return text


def _render_project_progress(meta) -> str:
    text = _project_line(meta)
    text += (
        f"**Days Worked:** {meta.days_worked} "
        f"(Successful: {meta.successful_days}, Failed: {meta.failed_days})\n"
    )
    if meta.remaining_days is not None:
        text += f"**Remaining Days:** {meta.remaining_days}\n"
    if meta.progress_percentage is not None:
        text += f"**Progress:** {meta.progress_percentage:.0f}%\n"
    return text


def _render_project_completed(meta) -> str:
    outcome = meta.outcome
    text = _project_line(meta)
    text += f"**Total Days Spent:** {meta.total_days_spent}\n"
    text += f"**Outcome Type:** {outcome.type}\n"
    if outcome.item_name:
        text += f"**Item Outcome:** {_inline(outcome.item_name)}\n"
    if outcome.currency_amount:
        text += f"**Funds Outcome:** {_inline(outcome.currency_amount)}\n"
    if outcome.notes:
        text += f"**Notes:** {_inline(outcome.notes)}\n"
    return text


def _render_project_failed(meta) -> str:
    text = _project_line(meta)
    text += f"**Days Spent:** {meta.days_spent}\n"
    text += f"**Reason:** {_inline(meta.failure_reason)}\n"
    return text


def _order_lines(meta) -> str:
    text = f"**Stronghold:** {_wikilink(meta.stronghold_name)}{_ref(meta.stronghold_id)}\n"
    text += f"**Order:** {_inline(meta.order_name)}{_ref(meta.order_id)}\n"
    text += f"**Type:** {meta.order_type}\n"
    if meta.facility_name:
        text += f"**Facility:** {_inline(meta.facility_name)}\n"
    return text


def _render_stronghold_order_given(meta) -> str:
    text = _order_lines(meta)
    text += f"**Time Required:** {meta.time_required} days\n"
    text += f"**Completion Day:** {meta.completion_day}\n"
    text += f"**Funds Cost:** {_inline(meta.cost)}\n"
    return text


def _render_stronghold_order_completed(meta) -> str:
    text = _order_lines(meta)
    text += f"**Days Spent:** {meta.days_spent}\n"
    text += "\n**Results:**\n"
    for result in meta.results:
        text += f"- {result.type}: {_inline(result.description)}\n"
    return text


def _render_time_advanced(meta) -> str:
    text = f"**Days Advanced:** {meta.days_advanced}\n"
    text += f"**From Date:** {_inline(meta.from_date)}\n"
    text += f"**To Date:** {_inline(meta.to_date)}\n"
    text += f"**Affected Systems:** {_inline(', '.join(meta.affected_systems))}\n"
    return text


def _render_party_funds_adjusted(meta) -> str:
    text = f"**Adjustment Type:** {meta.adjustment_type}\n"
    text += f"**Amount:** {_inline(meta.amount)}\n"
    text += f"**Previous Balance:** {_inline(meta.previous_balance)}\n"
    text += f"**New Balance:** {_inline(meta.new_balance)}\n"
    text += f"**Reason:** {_inline(meta.reason)}\n"
    return text


def _item_lines(meta) -> str:
    text = f"**Item:** {_inline(meta.item_name)}{_ref(meta.item_id)}\n"
    text += f"**Quantity:** {meta.quantity}\n"
    return text


def _associated(meta) -> str:
    if meta.associated_event_id:
        return f"**Associated Event:** `{_inline(meta.associated_event_id)}`\n"
    return ""


def _render_party_item_added(meta) -> str:
    return _item_lines(meta) + f"**Source:** {meta.source}\n" + _associated(meta)


def _render_party_item_removed(meta) -> str:
    return _item_lines(meta) + f"**Reason:** {meta.reason}\n" + _associated(meta)


def _render_custom_note(meta) -> str:
    text = f"**Title:** {_inline(meta.title)}\n"
    text += f"**Content:**\n{_prose(meta.content)}\n"
    if meta.tags:
        text += f"**Tags:** {_inline(', '.join(meta.tags))}\n"
    if meta.category:
        text += f"**Category:** {_inline(meta.category)}\n"
    return text


RENDERERS: dict[str, Callable[..., str]] = {
    "shop_transaction": _render_shop_transaction,
    "shop_created": _render_shop_created,
    "shop_inventory_restocked": _render_shop_restocked,
    "project_started": _render_project_started,
    "project_progress": _render_project_progress,
    "project_completed": _render_project_completed,
    "project_failed": _render_project_failed,
    "stronghold_order_given": _render_stronghold_order_given,
    "stronghold_order_completed": _render_stronghold_order_completed,
    "time_advanced": _render_time_advanced,
    "party_funds_adjusted": _render_party_funds_adjusted,
    "party_item_added": _render_party_item_added,
    "party_item_removed": _render_party_item_removed,
    "custom_note": _render_custom_note,
}

check_exhaustive(EVENT_LABELS, "EVENT_LABELS")
check_exhaustive(RENDERERS, "RENDERERS")


# ─────────────────────────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────────────────────────


def parse_metadata_tokens(block: str) -> dict[str, str]:
    """Extract raw ``key: value`` tokens from a block's metadata comment.

    Raises:
        EntryDecodeError: If the block has no metadata comment.
    """
    match = METADATA_PATTERN.search(block)
    if not match:
        raise EntryDecodeError("Missing metadata HTML comment")
    return dict(TOKEN_PATTERN.findall(match.group(1)))


def _parse_int(value: str) -> int | None:
    return int(value) if re.fullmatch(r"\d+", value) else None


def _decode_metadata(raw: str) -> object:
    try:
        return json.loads(decode_payload(raw))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise EntryDecodeError(f"Failed to decode/parse metadata JSON: {e}") from e


def _fallback_note_metadata(raw_type: str, payload: object) -> dict:
    """Coerce the payload of an unrecognized event type into a custom note."""
    if isinstance(payload, dict):
        try:
            return CustomNoteMetadata.model_validate(payload).to_wire()
        except ValidationError as e:
            logger.debug(f"Payload of {raw_type!r} is not a custom note, wrapping it: {e}")
    return {
        "title": format_event_label(raw_type),
        "content": json.dumps(payload, ensure_ascii=False),
        "category": raw_type,
    }


def decode_entry(block: str) -> BaseActivityEvent:
    """Deserialize one entry block into a typed event.

    Raises:
        EntryDecodeError: If the metadata comment is missing, a required
            field is absent, the timestamp is not an integer, or the
            metadata payload does not match its event type.
    """
    tokens = parse_metadata_tokens(block)

    missing = [key for key in REQUIRED_KEYS if key not in tokens]
    if missing:
        raise EntryDecodeError(
            f"Missing required metadata ({', '.join(missing)})", {"missing": missing}
        )

    timestamp = _parse_int(tokens["timestamp"])
    if timestamp is None:
        raise EntryDecodeError(f"Invalid timestamp: {tokens['timestamp']!r}")

    if "metadata" not in tokens:
        raise EntryDecodeError("Missing metadata payload")
    payload = _decode_metadata(tokens["metadata"])

    event_id = decode_token(tokens["id"], placeholder=False)

    actor_type = tokens.get("actorType")
    if actor_type not in ACTOR_TYPES:
        logger.warning(
            f"Invalid actorType {actor_type!r} in entry {event_id}, "
            f"defaulting to {FALLBACK_ACTOR_TYPE!r}"
        )
        actor_type = FALLBACK_ACTOR_TYPE

    event_type = tokens["type"]
    if event_type not in EVENT_TYPES:
        logger.warning(
            f"Invalid event type {event_type!r} in entry {event_id}, "
            f"defaulting to {FALLBACK_EVENT_TYPE!r}"
        )
        payload = _fallback_note_metadata(event_type, payload)
        event_type = FALLBACK_EVENT_TYPE

    notes = None
    if "notes" in tokens:
        try:
            notes = decode_payload(tokens["notes"])
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Failed to decode notes of entry {event_id}, skipping: {e}")

    notes_last_updated = None
    if "notesLastUpdated" in tokens:
        notes_last_updated = _parse_int(tokens["notesLastUpdated"])
        if notes_last_updated is None:
            logger.warning(f"Invalid notesLastUpdated in entry {event_id}, skipping")

    data = {
        "id": event_id,
        "campaignId": decode_token(tokens["campaignId"], placeholder=False),
        "timestamp": timestamp,
        "type": event_type,
        "actorType": actor_type,
        "metadata": payload,
        "notes": notes,
        "notesLastUpdated": notes_last_updated,
    }
    for key in TEXT_KEYS:
        if key in tokens:
            data[key] = decode_token(tokens[key])

    try:
        return EVENT_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise EntryDecodeError(
            f"Invalid {event_type} entry: {e.error_count()} validation error(s): "
            + "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ),
            {"event_id": event_id},
        ) from e
