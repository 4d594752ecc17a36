"""
Change Notifier.

Watches the directory containing the previewed file and delivers debounced
change events to the main loop through a queue. The watchdog observer and
the debounce timer run on their own threads; the queue is the only thing
they share with the loop.
"""

import os
import queue
import sys
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CLOSED_NO_WRITE,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    EVENT_TYPE_OPENED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .constants import DEBOUNCE_SECONDS, ChangeKind

_KIND_BY_EVENT_TYPE = {
    EVENT_TYPE_MODIFIED: ChangeKind.MODIFY,
    EVENT_TYPE_CLOSED: ChangeKind.MODIFY,
    EVENT_TYPE_OPENED: ChangeKind.ACCESS,
    EVENT_TYPE_CLOSED_NO_WRITE: ChangeKind.ACCESS,
    EVENT_TYPE_CREATED: ChangeKind.CREATE,
    EVENT_TYPE_DELETED: ChangeKind.REMOVE,
    EVENT_TYPE_MOVED: ChangeKind.RENAME,
}


class WatchError(Exception):
    """Raised or delivered when the filesystem watch cannot be kept up."""


@dataclass(frozen=True)
class ChangeRecord:
    """
    One raw filesystem change.

    Attributes:
        kind: What happened.
        path: The affected path.
        dest_path: For renames, where the file was moved to. Empty otherwise.
    """

    kind: ChangeKind
    path: str
    dest_path: str = ""

    def touches(self, path: str) -> bool:
        """Checks whether this record concerns the given path."""
        return path == self.path or path == self.dest_path


@dataclass(frozen=True)
class ChangeEvent:
    """
    A debounced batch of changes, or a watch failure.

    Attributes:
        records: The changes collected during one debounce window.
        error: Set when the watch mechanism itself failed.
    """

    records: Tuple[ChangeRecord, ...] = ()
    error: Optional[WatchError] = None

    def is_reload_worthy(self, path: str) -> bool:
        """
        Decides whether this event should trigger a reload of path.

        Plain opens and read-only closes never do, otherwise other tools
        reading the file (including our own reload) would cause reload
        storms. A watch error is assumed to hide a real change.
        """
        if self.error is not None:
            return True
        return any(
            r.kind is not ChangeKind.ACCESS and r.touches(path) for r in self.records
        )


def resolve_watched_path(path: str) -> str:
    """
    Canonicalizes the document path.

    The directory part is resolved through symlinks so that it matches the
    paths reported by the observer; the file name is kept as given.
    """
    absolute = os.path.abspath(path)
    directory = os.path.realpath(os.path.dirname(absolute))
    return os.path.join(directory, os.path.basename(absolute))


def _nearest_existing_directory(directory: str) -> str:
    """Walks up from directory until an existing directory is found."""
    while not os.path.isdir(directory):
        parent = os.path.dirname(directory)
        if parent == directory:
            break
        directory = parent
    return directory


class _DebouncedHandler(FileSystemEventHandler):
    """
    Collects raw watchdog events and flushes them as one ChangeEvent once no
    new event has arrived for the debounce delay.
    """

    def __init__(self, deliver: Callable[[ChangeEvent], None], delay: float) -> None:
        super().__init__()
        self._deliver = deliver
        self._delay = delay
        self._lock = threading.Lock()
        self._batch: List[ChangeRecord] = []
        self._timer: Optional[threading.Timer] = None
        self.watched_directory: Optional[str] = None

    def on_any_event(self, event: FileSystemEvent) -> None:
        src_path = os.fsdecode(event.src_path)
        if (
            event.is_directory
            and event.event_type in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED)
            and src_path == self.watched_directory
        ):
            self._deliver(
                ChangeEvent(error=WatchError(f"watched directory {src_path} went away"))
            )
            return

        record = ChangeRecord(
            kind=_KIND_BY_EVENT_TYPE.get(event.event_type, ChangeKind.OTHER),
            path=src_path,
            dest_path=os.fsdecode(event.dest_path),
        )
        with self._lock:
            self._batch.append(record)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._delay, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def _flush(self) -> None:
        with self._lock:
            batch, self._batch = self._batch, []
            self._timer = None
        if batch:
            self._deliver(ChangeEvent(records=tuple(batch)))

    def cancel(self) -> None:
        """Drops any pending batch and stops the debounce timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._batch = []


class ChangeNotifier:
    """
    Debounced change notifications for a single file.

    The parent directory is watched rather than the file itself, because
    editors often save by deleting and recreating the file, which would end
    a watch placed on the file.
    """

    def __init__(self, path: str, debounce: float = DEBOUNCE_SECONDS) -> None:
        """
        Initializes the notifier without watching anything yet.

        Args:
            path: The document to track. Need not exist.
            debounce: Quiet period in seconds before a batch is delivered.
        """
        self.path = resolve_watched_path(path)
        self.directory = os.path.dirname(self.path)
        self._events: "queue.Queue[ChangeEvent]" = queue.Queue()
        self._handler = _DebouncedHandler(self._events.put, debounce)
        self._observer = Observer()
        self._watch = None

    def __enter__(self) -> "ChangeNotifier":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _schedule(self, directory: str) -> None:
        """Moves the (single, non-recursive) watch to directory."""
        if not self._observer.is_alive():
            self._observer.start()
        if self._watch is not None:
            self._observer.unschedule(self._watch)
            self._watch = None
        self._handler.watched_directory = directory
        self._watch = self._observer.schedule(self._handler, directory, recursive=False)

    def wait_until_exists(self) -> None:
        """
        Blocks until the tracked file exists.

        Watches the nearest existing ancestor directory and follows newly
        created directories down towards the file.

        Raises:
            WatchError: If a directory cannot be watched or the watch fails
                while the file is still missing.
        """
        if os.path.exists(self.path):
            return
        sys.stderr.write(
            f"{self.path} does not exist, waiting for it to be created...\n"
        )

        while not os.path.exists(self.path):
            anchor = _nearest_existing_directory(self.directory)
            if anchor != self._handler.watched_directory or self._watch is None:
                try:
                    self._schedule(anchor)
                except OSError as e:
                    self._watch = None
                    if not os.path.isdir(anchor):
                        # Removed between lookup and watch; look again.
                        continue
                    raise WatchError(f"cannot watch {anchor}: {e}") from e
                # The file may have appeared before the watch was in place.
                continue

            event = self._events.get()
            if event.error is not None and not os.path.exists(self.path):
                raise event.error

    def start(self) -> None:
        """
        Starts watching the file's directory for changes.

        Events left over from waiting for creation are discarded.

        Raises:
            WatchError: If the directory cannot be watched.
        """
        try:
            self._schedule(self.directory)
        except OSError as e:
            raise WatchError(f"cannot watch {self.directory}: {e}") from e
        self._handler.cancel()
        self.drain()

    def stop(self) -> None:
        """Stops the observer thread and drops pending events."""
        self._handler.cancel()
        if self._observer.is_alive():
            self._observer.stop()
            self._observer.join()

    def drain(self) -> List[ChangeEvent]:
        """Returns every event queued so far without blocking."""
        events = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                return events

    def wait(self, timeout: float) -> Optional[ChangeEvent]:
        """
        Blocks for the next event.

        Args:
            timeout: Maximum time to block, in seconds.

        Returns:
            The event, or None if the timeout expired.
        """
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None
