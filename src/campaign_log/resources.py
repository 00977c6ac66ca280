"""Backing resources: the single text document an activity log lives in.

The store only needs whole-document reads and writes, a modification marker
for optimistic conflict detection, and a way to hear about external edits.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Hashable, Protocol

from watchfiles import Change, watch

logger = logging.getLogger(__name__)


class Subscription(Protocol):
    def close(self) -> None: ...


class BackingResource(Protocol):
    """What the log store needs from its storage collaborator."""

    def exists(self) -> bool: ...

    def read_all(self) -> str: ...

    def write_all(self, text: str) -> None: ...

    def create(self, initial_text: str) -> None: ...

    def modification_marker(self) -> Hashable | None: ...

    def on_external_change(self, callback: Callable[[], None]) -> Subscription: ...


class FileResource:
    """A UTF-8 text file on disk.

    Writes go to a temporary sibling that replaces the file, so readers never
    see a partial document.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read_all(self) -> str:
        with open(self.path, "r", encoding="utf-8") as f:
            return f.read()

    def write_all(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        with open(tmp_path, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def create(self, initial_text: str) -> None:
        """Create the file with ``initial_text`` unless it already exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.path, "x", encoding="utf-8", newline="\n") as f:
                f.write(initial_text)
        except FileExistsError:
            logger.debug(f"{self.path} was created concurrently, keeping it")

    def modification_marker(self) -> tuple[int, int] | None:
        """(mtime_ns, size) of the file, or None when it does not exist."""
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    def on_external_change(self, callback: Callable[[], None]) -> WatchSubscription:
        """Call ``callback`` from a background thread whenever the file changes."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        subscription = WatchSubscription(self.path, callback)
        subscription.start()
        return subscription


class WatchSubscription:
    """Watches a file's directory with watchfiles, filtered to that file.

    The directory is watched rather than the file because replacing the file
    gives it a new inode.
    """

    def __init__(self, path: Path, callback: Callable[[], None]):
        self.path = path
        self.callback = callback
        self._target = os.path.abspath(path)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def _is_target(self, change: Change, path: str) -> bool:
        return os.path.abspath(path) == self._target

    def _run(self) -> None:
        for changes in watch(
            self.path.parent,
            watch_filter=self._is_target,
            stop_event=self._stop_event,
            recursive=False,
        ):
            logger.debug(f"Change detected on {self.path}: {changes}")
            try:
                self.callback()
            except Exception:
                logger.exception(f"Change callback for {self.path} failed")

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run, name=f"watch:{self.path.name}", daemon=True
        )
        self._thread.start()

    def close(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None


class MemoryResource:
    """In-memory document, for tests and for embedding without a file.

    ``external_write`` stands in for a person editing the file by hand.
    """

    def __init__(self, text: str | None = None):
        self._text = text
        self._version = 0
        self._callbacks: list[Callable[[], None]] = []
        self.write_count = 0

    def exists(self) -> bool:
        return self._text is not None

    def read_all(self) -> str:
        if self._text is None:
            raise FileNotFoundError("memory resource has not been created")
        return self._text

    def write_all(self, text: str) -> None:
        self._text = text
        self._version += 1
        self.write_count += 1

    def create(self, initial_text: str) -> None:
        if self._text is None:
            self._text = initial_text
            self._version += 1

    def modification_marker(self) -> int | None:
        return self._version if self._text is not None else None

    def external_write(self, text: str, notify: bool = True) -> None:
        """Replace the document as an outside editor would."""
        self._text = text
        self._version += 1
        if notify:
            for callback in list(self._callbacks):
                callback()

    def on_external_change(self, callback: Callable[[], None]) -> _CallbackSubscription:
        self._callbacks.append(callback)
        return _CallbackSubscription(self._callbacks, callback)


class _CallbackSubscription:
    def __init__(self, callbacks: list, callback: Callable[[], None]):
        self._callbacks = callbacks
        self._callback = callback

    def close(self) -> None:
        if self._callback in self._callbacks:
            self._callbacks.remove(self._callback)
