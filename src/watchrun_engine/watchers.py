"""Abstract change-source protocol for file watching implementations."""

from collections.abc import Callable
from typing import Protocol

from watchrun_engine.registry import FileRegistry

SubmitFn = Callable[[str], None]
"""Receives the path of each relevant change; may be called from any thread."""


class ChangeSource(Protocol):
    """Protocol for notification sources feeding the debounce gate."""

    def start(self) -> None:
        """Start watching."""
        ...

    def stop(self) -> None:
        """Stop watching."""
        ...


class ChangeSourceFactory(Protocol):
    """Builds a change source for a registry and a submit callback."""

    def __call__(self, registry: FileRegistry, submit: SubmitFn) -> ChangeSource: ...
