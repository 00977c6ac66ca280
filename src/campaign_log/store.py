"""Log store: owns the in-memory cache of decoded events.

The document is the source of truth. The cache is derived by decoding every
block and is always sorted newest first. Writes come in two shapes:

- ``append`` prepends one pre-rendered block to the current document text.
- ``update_notes`` re-renders the whole document from the cache.

Both compare the resource's modification marker with the one seen at the
last read or write and refuse to write if it moved. The check is best-effort
and never retries.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from .codec import decode_entry, encode_entry
from .constants import CORRUPTED_PREVIEW_LENGTH, LOG_HEADER
from .document import assemble_document, prepend_block, split_document
from .errors import ConcurrentModificationError, EntryDecodeError, EventNotFoundError
from .models import BaseActivityEvent
from .query import ActivityLogQuery, ActivityLogResult, run_query, search_events, sort_events
from .resources import BackingResource, FileResource
from .timeutil import now_ms

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    UNLOADED = "unloaded"  # never rebuilt
    STALE = "stale"  # resource may differ from the cache
    FRESH = "fresh"  # cache matches the last read or write


@dataclass
class CorruptedEntry:
    """A block that failed to decode during the last rebuild."""

    line_number: int
    raw_content: str  # truncated preview of the block
    error: str

    def to_dict(self) -> dict:
        return {
            "line_number": self.line_number,
            "raw_content": self.raw_content,
            "error": self.error,
        }


class ActivityLogStore:
    """Cache and write path for one activity log document.

    Every public method runs under one re-entrant lock, so rebuilds triggered
    from a watcher thread never interleave with a write.
    """

    def __init__(
        self,
        resource: BackingResource,
        clock: Callable[[], int] | None = None,
        preview_length: int = CORRUPTED_PREVIEW_LENGTH,
    ):
        self.resource = resource
        self.clock = clock or now_ms
        self.preview_length = preview_length
        self._cache: list[BaseActivityEvent] = []
        self._corrupted: list[CorruptedEntry] = []
        self._corrupted_blocks: list[str] = []  # full text, kept on regeneration
        self._state = CacheState.UNLOADED
        self._marker = None
        self._lock = threading.RLock()

    @classmethod
    def from_path(cls, path: Path, **kwargs) -> "ActivityLogStore":
        """Create a store backed by a Markdown file at ``path``."""
        return cls(FileResource(Path(path)), **kwargs)

    # --- State ---

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def last_known_marker(self):
        """Modification marker recorded at the last read or write."""
        return self._marker

    @property
    def events(self) -> list[BaseActivityEvent]:
        """All cached events, newest first."""
        with self._lock:
            self.ensure_loaded()
            return list(self._cache)

    @property
    def corrupted_entries(self) -> list[CorruptedEntry]:
        """Blocks that failed to decode during the last rebuild."""
        with self._lock:
            self.ensure_loaded()
            return list(self._corrupted)

    def invalidate(self) -> None:
        """Mark the cache stale; the next operation rebuilds it."""
        with self._lock:
            if self._state is CacheState.FRESH:
                self._state = CacheState.STALE
                logger.debug("Activity log cache marked stale")

    def ensure_loaded(self) -> None:
        with self._lock:
            if self._state is not CacheState.FRESH:
                self.rebuild()

    # --- Rebuild ---

    def _ensure_resource(self) -> None:
        if not self.resource.exists():
            logger.info("Activity log not found, creating it")
            self.resource.create(LOG_HEADER)

    def rebuild(self) -> None:
        """Re-derive the cache from the resource's current text.

        Blocks that fail to decode are recorded in ``corrupted_entries`` and
        left out of the cache; they never abort the rebuild.
        """
        with self._lock:
            self._ensure_resource()
            marker = self.resource.modification_marker()
            text = self.resource.read_all()

            events: list[BaseActivityEvent] = []
            corrupted: list[CorruptedEntry] = []
            corrupted_blocks: list[str] = []
            for block in split_document(text):
                try:
                    events.append(decode_entry(block.text))
                except EntryDecodeError as e:
                    corrupted.append(
                        CorruptedEntry(
                            line_number=block.line_number,
                            raw_content=block.text[: self.preview_length],
                            error=str(e),
                        )
                    )
                    corrupted_blocks.append(block.text)
                    logger.warning(f"Corrupted entry at line {block.line_number}: {e}")

            self._cache = sort_events(events, "desc")
            self._corrupted = corrupted
            self._corrupted_blocks = corrupted_blocks
            self._marker = marker
            self._state = CacheState.FRESH

            logger.info(f"Cache rebuilt: {len(events)} events, {len(corrupted)} corrupted")

    # --- Writes ---

    def _write(self, text: str) -> None:
        current = self.resource.modification_marker()
        if current != self._marker:
            self._state = CacheState.STALE
            raise ConcurrentModificationError(
                "Activity log was modified during edit; reload and try again"
            )
        self.resource.write_all(text)
        self._marker = self.resource.modification_marker()

    def _insert_sorted(self, event: BaseActivityEvent) -> None:
        # Before the first event that is not newer, matching a rebuild's order
        for index, cached in enumerate(self._cache):
            if cached.timestamp <= event.timestamp:
                self._cache.insert(index, event)
                return
        self._cache.append(event)

    def append(self, event: BaseActivityEvent) -> BaseActivityEvent:
        """Write ``event`` at the top of the document and cache it.

        Raises:
            ConcurrentModificationError: If the resource changed since the
                cache was loaded.
        """
        with self._lock:
            self.ensure_loaded()
            self._ensure_resource()
            text = self.resource.read_all()
            self._write(prepend_block(text, encode_entry(event)))
            self._insert_sorted(event)
            logger.debug(f"Appended {event.type} event {event.id}")
            return event

    def update_notes(
        self, event_id: str, notes: str, timestamp: int | None = None
    ) -> BaseActivityEvent:
        """Set (or, with empty ``notes``, clear) the notes of one event.

        The whole document is regenerated from the cache; blocks that failed
        to decode are carried over at the end so nothing is lost.

        Raises:
            EventNotFoundError: If no cached event has ``event_id``.
            ConcurrentModificationError: If the resource changed since the
                cache was loaded.
        """
        with self._lock:
            self.ensure_loaded()
            index = self._index_of(event_id)
            if timestamp is None:
                timestamp = self.clock()

            updated = self._cache[index].model_copy(
                update={
                    "notes": notes or None,
                    "notes_last_updated": timestamp if notes else None,
                }
            )
            entries = list(self._cache)
            entries[index] = updated

            blocks = [encode_entry(e) for e in entries] + self._corrupted_blocks
            self._ensure_resource()
            self._write(assemble_document(blocks))
            self._cache = entries
            logger.debug(f"Updated notes on event {event_id}")
            return updated

    # --- Reads ---

    def _index_of(self, event_id: str) -> int:
        for index, event in enumerate(self._cache):
            if event.id == event_id:
                return index
        raise EventNotFoundError(event_id)

    def get(self, event_id: str) -> BaseActivityEvent | None:
        with self._lock:
            self.ensure_loaded()
            return next((e for e in self._cache if e.id == event_id), None)

    @staticmethod
    def _build_query(query: ActivityLogQuery | None, filters: dict) -> ActivityLogQuery:
        if query is None:
            return ActivityLogQuery(**filters)
        if filters:
            return ActivityLogQuery.model_validate({**query.model_dump(), **filters})
        return query

    def query(self, query: ActivityLogQuery | None = None, **filters) -> ActivityLogResult:
        """Filter, sort and paginate the cached events.

        Filters may be given as an ``ActivityLogQuery``, as keyword
        arguments, or both (keywords win).
        """
        query = self._build_query(query, filters)
        with self._lock:
            self.ensure_loaded()
            return run_query(self._cache, query)

    def search(
        self, text: str, query: ActivityLogQuery | None = None, **filters
    ) -> ActivityLogResult:
        """Free-text search; identical to ``query(search_text=text)``."""
        query = self._build_query(query, filters)
        with self._lock:
            self.ensure_loaded()
            return search_events(self._cache, text, query)

    def query_by_date_range(
        self, start_date: int, end_date: int, query: ActivityLogQuery | None = None, **filters
    ) -> ActivityLogResult:
        """Events with ``start_date <= timestamp <= end_date``."""
        return self.query(query, start_date=start_date, end_date=end_date, **filters)
