"""File registry: decides whether a change notification is relevant."""

import logging
import os
import stat
from dataclasses import dataclass

from watchrun_engine.exceptions import RegistrationError
from watchrun_engine.models import Operation, WatchEvent
from watchrun_engine.patterns import Pattern

logger = logging.getLogger(__name__)


def _normalize(path: str) -> str:
    return os.path.abspath(path)


def is_hidden(path: str) -> bool:
    """Check whether any segment of ``path`` is a dotfile or dot-directory.

    Single ``.`` segments and ``..`` parent references are not hidden.
    """
    for part in path.replace(os.sep, "/").split("/"):
        if len(part) > 1 and part[0] == "." and part != "..":
            return True
    return False


@dataclass(frozen=True)
class FileRegistry:
    """Watch targets and filters, built once at startup and never mutated.

    Membership is a set lookup on the event's parent directory (or the path
    itself for explicitly watched files), so most events are classified
    without touching the patterns.
    """

    watched_dirs: frozenset[str] = frozenset()
    """Absolute paths of watched directories (non-recursive each)."""

    watched_files: frozenset[str] = frozenset()
    """Absolute paths of explicitly watched files."""

    include: Pattern | None = None
    exclude: Pattern | None = None

    notify_dirs: tuple[str, ...] = ()
    """Directories to hand to the notifier, spelled as the user gave them."""

    def is_relevant(self, path: str) -> bool:
        """Check whether a change to ``path`` should reach the debounce gate.

        Args:
            path: Path as reported by the notifier

        Returns:
            True for an explicitly watched file, or for a direct child of a
            watched directory that passes the include/exclude patterns
        """
        absolute = _normalize(path)
        if absolute in self.watched_files:
            return True
        if os.path.dirname(absolute) not in self.watched_dirs:
            return False
        if self.include is not None and not self.include.match(path):
            return False
        if self.exclude is not None and self.exclude.match(path):
            return False
        return True

    def is_relevant_event(self, event: WatchEvent) -> bool:
        """Like ``is_relevant`` but also drops metadata-only changes."""
        if event.operation is Operation.METADATA_ONLY:
            return False
        return self.is_relevant(event.path)


def _walk_directories(root: str) -> list[str]:
    def on_error(err: OSError) -> None:
        raise RegistrationError(f"can not read {err.filename}: {err.strerror}") from err

    found: list[str] = []
    for dirpath, dirnames, _ in os.walk(root, onerror=on_error):
        if is_hidden(dirpath):
            dirnames[:] = []
            continue
        dirnames[:] = [d for d in dirnames if not is_hidden(d)]
        logger.debug(f"watch directory: {dirpath}")
        found.append(dirpath)
    return found


def build_registry(
    paths: list[str] | tuple[str, ...],
    include: Pattern | None = None,
    exclude: Pattern | None = None,
) -> FileRegistry:
    """Enumerate watch targets from the positional command-line paths.

    Directories are walked recursively and every non-hidden directory is
    registered. Files are registered as given, hidden or not.

    Args:
        paths: Files and directories to watch
        include: Optional include pattern
        exclude: Optional exclude pattern

    Returns:
        Immutable registry

    Raises:
        RegistrationError: If a path does not exist or cannot be read
    """
    dirs: set[str] = set()
    files: set[str] = set()
    notify_dirs: dict[str, str] = {}
    for path in paths:
        try:
            mode = os.stat(path).st_mode
        except OSError as e:
            raise RegistrationError(f"can not stat {path}: {e.strerror or e}") from e

        if stat.S_ISDIR(mode):
            for directory in _walk_directories(path):
                dirs.add(_normalize(directory))
                notify_dirs.setdefault(_normalize(directory), directory)
        else:
            logger.debug(f"watch file: {path}")
            files.add(_normalize(path))
            parent = os.path.dirname(path) or "."
            notify_dirs.setdefault(_normalize(parent), parent)

    return FileRegistry(
        watched_dirs=frozenset(dirs),
        watched_files=frozenset(files),
        include=include,
        exclude=exclude,
        notify_dirs=tuple(notify_dirs.values()),
    )
