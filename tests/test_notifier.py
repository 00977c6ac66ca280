"""Tests for the change notifier."""

import logging
import threading

from campaign_log.codec import encode_entry
from campaign_log.document import assemble_document
from campaign_log.notifier import ChangeNotifier
from campaign_log.resources import FileResource
from campaign_log.store import CacheState

from conftest import BASE_TS, make_note


def test_external_change_marks_store_stale(store, resource):
    store.append(make_note("n1", BASE_TS))

    with ChangeNotifier(store):
        resource.external_write(assemble_document([encode_entry(make_note("ext", 1))]))
        assert store.state is CacheState.STALE

    assert [e.id for e in store.events] == ["ext"]


def test_notifier_never_rebuilds_itself(store, resource):
    store.append(make_note("n1", BASE_TS))
    writes = resource.write_count

    with ChangeNotifier(store):
        resource.external_write(resource.read_all())

    assert store.state is CacheState.STALE
    assert resource.write_count == writes


def test_own_write_signal_is_ignored(store):
    store.append(make_note("n1", BASE_TS))
    notifier = ChangeNotifier(store)

    notifier.handle_change()

    assert store.state is CacheState.FRESH


def test_signal_before_load_is_harmless(store, resource):
    notifier = ChangeNotifier(store)
    resource.external_write("# Activity Log\n\n", notify=False)

    notifier.handle_change()

    assert store.state is CacheState.UNLOADED
    assert store.events == []


def test_stop_unsubscribes(store, resource):
    store.append(make_note("n1", BASE_TS))
    notifier = ChangeNotifier(store)
    notifier.start()
    assert notifier.active
    notifier.stop()
    assert not notifier.active

    resource.external_write(resource.read_all())

    assert store.state is CacheState.FRESH


def test_start_is_idempotent(store, resource):
    notifier = ChangeNotifier(store)
    notifier.start()
    notifier.start()
    notifier.stop()

    store.append(make_note("n1", BASE_TS))
    resource.external_write(resource.read_all())

    assert store.state is CacheState.FRESH


def test_logs_external_modification(store, resource, caplog):
    store.append(make_note("n1", BASE_TS))

    with caplog.at_level(logging.INFO), ChangeNotifier(store):
        resource.external_write(resource.read_all() + "\n")

    assert "External modification detected" in caplog.text


def test_file_watch_invalidates_store(file_store, temp_log_dir):
    """A real edit on disk reaches the store through watchfiles."""
    file_store.append(make_note("n1", BASE_TS))
    path = temp_log_dir / "Activity Log.md"
    changed = threading.Event()

    notifier = ChangeNotifier(file_store)
    original = notifier.handle_change

    def handle_and_flag():
        original()
        if file_store.state is CacheState.STALE:
            changed.set()

    notifier.handle_change = handle_and_flag
    with notifier:
        # The watcher thread may not be listening yet, so keep touching the file
        for _ in range(20):
            path.write_text(
                assemble_document([encode_entry(make_note("ext", 1))]), encoding="utf-8"
            )
            if changed.wait(timeout=0.5):
                break
        assert changed.is_set()

    assert [e.id for e in file_store.events] == ["ext"]


def test_file_resource_subscription_closes(temp_log_dir):
    resource = FileResource(temp_log_dir / "log.md")
    subscription = resource.on_external_change(lambda: None)
    subscription.close()
    assert subscription._thread is None
