import os
import threading
import time

import pytest
from watchdog.events import (
    DirDeletedEvent,
    FileClosedNoWriteEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileOpenedEvent,
)

from svgtail.core.constants import ChangeKind
from svgtail.core.notifier import (
    ChangeEvent,
    ChangeNotifier,
    ChangeRecord,
    WatchError,
    _DebouncedHandler,
    resolve_watched_path,
)

TARGET = "/work/drawing.svg"


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_open_for_read_is_not_reload_worthy():
    event = ChangeEvent(records=(ChangeRecord(ChangeKind.ACCESS, TARGET),))
    assert not event.is_reload_worthy(TARGET)


def test_modify_is_reload_worthy():
    event = ChangeEvent(records=(ChangeRecord(ChangeKind.MODIFY, TARGET),))
    assert event.is_reload_worthy(TARGET)


@pytest.mark.parametrize(
    "kind", [ChangeKind.CREATE, ChangeKind.REMOVE, ChangeKind.RENAME, ChangeKind.OTHER]
)
def test_other_kinds_are_reload_worthy(kind):
    event = ChangeEvent(records=(ChangeRecord(kind, TARGET),))
    assert event.is_reload_worthy(TARGET)


def test_changes_to_other_files_are_ignored():
    event = ChangeEvent(records=(ChangeRecord(ChangeKind.MODIFY, "/work/other.svg"),))
    assert not event.is_reload_worthy(TARGET)


def test_rename_onto_target_is_reload_worthy():
    record = ChangeRecord(ChangeKind.RENAME, "/work/.drawing.svg.swp", TARGET)
    assert ChangeEvent(records=(record,)).is_reload_worthy(TARGET)


def test_watch_error_is_assumed_to_be_a_change():
    assert ChangeEvent(error=WatchError("gone")).is_reload_worthy(TARGET)


def test_mixed_batch_with_one_modify_is_reload_worthy():
    event = ChangeEvent(
        records=(
            ChangeRecord(ChangeKind.ACCESS, TARGET),
            ChangeRecord(ChangeKind.MODIFY, TARGET),
        )
    )
    assert event.is_reload_worthy(TARGET)


def test_resolve_watched_path_is_absolute_and_keeps_name(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    resolved = resolve_watched_path("drawing.svg")
    assert os.path.isabs(resolved)
    assert os.path.basename(resolved) == "drawing.svg"
    assert os.path.dirname(resolved) == os.path.realpath(str(tmp_path))


def test_handler_collapses_burst_into_one_event():
    delivered = []
    handler = _DebouncedHandler(delivered.append, 0.05)
    handler.dispatch(FileOpenedEvent(TARGET))
    handler.dispatch(FileModifiedEvent(TARGET))
    handler.dispatch(FileModifiedEvent(TARGET))

    assert _wait_for(lambda: delivered)
    time.sleep(0.1)
    assert len(delivered) == 1
    kinds = [r.kind for r in delivered[0].records]
    assert kinds == [ChangeKind.ACCESS, ChangeKind.MODIFY, ChangeKind.MODIFY]


def test_handler_maps_event_types():
    delivered = []
    handler = _DebouncedHandler(delivered.append, 0.01)
    handler.dispatch(FileClosedNoWriteEvent(TARGET))
    handler.dispatch(FileMovedEvent("/work/tmp123", TARGET))

    assert _wait_for(lambda: delivered)
    closed, moved = delivered[0].records
    assert closed.kind is ChangeKind.ACCESS
    assert moved.kind is ChangeKind.RENAME
    assert moved.dest_path == TARGET


def test_handler_reports_removal_of_watched_directory_as_error():
    delivered = []
    handler = _DebouncedHandler(delivered.append, 10.0)
    handler.watched_directory = "/work"
    handler.dispatch(DirDeletedEvent("/work"))

    assert len(delivered) == 1
    assert isinstance(delivered[0].error, WatchError)


def test_handler_cancel_drops_pending_batch():
    delivered = []
    handler = _DebouncedHandler(delivered.append, 0.05)
    handler.dispatch(FileModifiedEvent(TARGET))
    handler.cancel()
    time.sleep(0.15)
    assert delivered == []


def test_notifier_reports_modification(tmp_path):
    target = tmp_path / "drawing.svg"
    target.write_text("<svg/>")

    with ChangeNotifier(str(target), debounce=0.05) as notifier:
        notifier.start()
        target.write_text("<svg></svg>")

        event = notifier.wait(timeout=5.0)
        assert event is not None
        assert event.is_reload_worthy(notifier.path)


def test_notifier_ignores_sibling_files(tmp_path):
    target = tmp_path / "drawing.svg"
    target.write_text("<svg/>")

    with ChangeNotifier(str(target), debounce=0.05) as notifier:
        notifier.start()
        (tmp_path / "notes.txt").write_text("hello")

        event = notifier.wait(timeout=5.0)
        assert event is not None
        assert not event.is_reload_worthy(notifier.path)


def test_drain_is_non_blocking(tmp_path):
    with ChangeNotifier(str(tmp_path / "drawing.svg")) as notifier:
        notifier.start()
        assert notifier.drain() == []
        assert notifier.wait(timeout=0.01) is None


def test_start_fails_for_unwatchable_directory(tmp_path):
    notifier = ChangeNotifier(str(tmp_path / "missing" / "drawing.svg"))
    with notifier, pytest.raises(WatchError):
        notifier.start()


def test_wait_until_exists_returns_immediately_for_existing_file(svg_file, capsys):
    with ChangeNotifier(str(svg_file)) as notifier:
        notifier.wait_until_exists()
    assert capsys.readouterr().err == ""


def test_wait_until_exists_follows_nested_creation(tmp_path):
    target = tmp_path / "a" / "b" / "drawing.svg"
    errors = []

    def create():
        time.sleep(0.2)
        (tmp_path / "a").mkdir()
        time.sleep(0.2)
        (tmp_path / "a" / "b").mkdir()
        time.sleep(0.2)
        target.write_text("<svg/>")

    with ChangeNotifier(str(target), debounce=0.05) as notifier:

        def wait():
            try:
                notifier.wait_until_exists()
                notifier.start()
            except WatchError as e:
                errors.append(e)

        waiter = threading.Thread(target=wait, daemon=True)
        waiter.start()
        create()
        waiter.join(timeout=10.0)

        assert not waiter.is_alive()
        assert errors == []
        assert target.exists()


def test_wait_until_exists_fails_when_watched_directory_is_removed(tmp_path, capsys):
    watched = tmp_path / "watched"
    watched.mkdir()
    target = watched / "drawing.svg"
    errors = []

    with ChangeNotifier(str(target), debounce=0.05) as notifier:

        def wait():
            try:
                notifier.wait_until_exists()
            except WatchError as e:
                errors.append(e)

        waiter = threading.Thread(target=wait, daemon=True)
        waiter.start()
        assert _wait_for(lambda: notifier._watch is not None)

        watched.rmdir()
        waiter.join(timeout=10.0)

        assert not waiter.is_alive()
        assert len(errors) == 1
        assert not target.exists()

    err = capsys.readouterr().err
    assert f"{notifier.path} does not exist, waiting for it to be created..." in err
