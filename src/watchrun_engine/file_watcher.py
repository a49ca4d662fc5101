"""Change source implementation using watchdog."""

import logging
import os

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from watchrun_engine.exceptions import RegistrationError
from watchrun_engine.models import Operation, WatchEvent
from watchrun_engine.registry import FileRegistry
from watchrun_engine.watchers import SubmitFn

logger = logging.getLogger(__name__)


def _as_str(path: str | bytes) -> str:
    return os.fsdecode(path)


def to_watch_events(event: FileSystemEvent) -> list[WatchEvent]:
    """Translate a watchdog event into watch events.

    Args:
        event: Event delivered by the observer

    Returns:
        One event per affected path; a move yields a removal of the source
        and a creation of the destination
    """
    src = _as_str(event.src_path)
    if event.event_type == EVENT_TYPE_CREATED:
        return [WatchEvent(src, Operation.CREATED)]
    if event.event_type == EVENT_TYPE_DELETED:
        return [WatchEvent(src, Operation.REMOVED)]
    if event.event_type == EVENT_TYPE_MODIFIED:
        # A directory "modification" is only its entry list or mtime changing
        if event.is_directory:
            return [WatchEvent(src, Operation.METADATA_ONLY)]
        return [WatchEvent(src, Operation.WRITTEN)]
    if event.event_type == EVENT_TYPE_MOVED:
        return [
            WatchEvent(src, Operation.REMOVED),
            WatchEvent(_as_str(event.dest_path), Operation.CREATED),
        ]
    # opened, closed, closed_no_write and anything newer
    return [WatchEvent(src, Operation.METADATA_ONLY)]


class _FilteringHandler(FileSystemEventHandler):
    """Runs the change filter in the observer thread and forwards survivors."""

    def __init__(self, registry: FileRegistry, submit: SubmitFn):
        """Initialize handler.

        Args:
            registry: Registry used to classify events
            submit: Callback receiving the path of each relevant change
        """
        self.registry = registry
        self.submit = submit

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Classify an event and forward it if relevant."""
        try:
            for watch_event in to_watch_events(event):
                if self.registry.is_relevant_event(watch_event):
                    logger.debug(f"change: {watch_event.operation.value} {watch_event.path}")
                    self.submit(watch_event.path)
        except Exception as e:
            logger.error(f"watch error: {e}")


class WatchdogSource:
    """Watches every registered directory with one non-recursive watch each."""

    def __init__(self, registry: FileRegistry, submit: SubmitFn):
        """Initialize the source.

        Args:
            registry: Watch targets and filters
            submit: Callback receiving relevant paths (called from the observer thread)
        """
        self.registry = registry
        self.handler = _FilteringHandler(registry, submit)
        self.observer = Observer()
        self._scheduled: list[str] = []

    def start(self) -> None:
        """Schedule all watches and start the observer thread.

        Raises:
            RegistrationError: If a watch cannot be registered
        """
        try:
            for directory in self.registry.notify_dirs:
                self.observer.schedule(self.handler, directory, recursive=False)
                self._scheduled.append(directory)
            self.observer.start()
        except OSError as e:
            raise RegistrationError(f"can not init file watcher: {e}") from e

        logger.info(f"Watching {len(self._scheduled)} director(ies)")

    def stop(self) -> None:
        """Stop the observer thread."""
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=2.0)
            logger.info("Stopped file watcher")
