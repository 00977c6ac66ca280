"""Change notifier: external edits to the log file make the cache stale.

No diffing: any signal from the resource invalidates the whole cache, and the
next read rebuilds it. Signals caused by the store's own writes are
recognised by their modification marker and ignored.
"""

import logging

from .resources import BackingResource, Subscription
from .store import ActivityLogStore

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Subscribes a store to its resource's external-change signals."""

    def __init__(self, store: ActivityLogStore, resource: BackingResource | None = None):
        self.store = store
        self.resource = resource or store.resource
        self._subscription: Subscription | None = None

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def handle_change(self) -> None:
        marker = self.resource.modification_marker()
        if marker is not None and marker == self.store.last_known_marker:
            logger.debug("Change signal matches the store's own write, ignoring")
            return
        logger.info("External modification detected, invalidating activity log cache")
        self.store.invalidate()

    def start(self) -> None:
        if self._subscription is None:
            self._subscription = self.resource.on_external_change(self.handle_change)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def __enter__(self) -> "ChangeNotifier":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
