"""Shared data models for the watchrun engine."""

import asyncio
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

STARTUP_PATH = ""
"""Trigger path used for the run launched at startup, before any change."""

CHECK_TOKEN = "{check}"
KILL_TOKEN = "{kill}"
WAIT_TOKEN = "{wait}"

PLACEHOLDER_RE = re.compile(r"\{(file|dir|name|ext)\}")


class Operation(Enum):
    """Kind of filesystem change reported by the notification source."""

    CREATED = "created"
    WRITTEN = "written"
    REMOVED = "removed"
    METADATA_ONLY = "metadata_only"


@dataclass(frozen=True)
class WatchEvent:
    """A raw change notification, consumed immediately by the change filter."""

    path: str
    """Path as reported by the notifier (not normalized)."""

    operation: Operation
    """What happened to the path."""


@dataclass(frozen=True)
class Exec:
    """Run a command template as an external process."""

    template: str

    @property
    def has_placeholders(self) -> bool:
        """Whether the template references any part of the triggering path."""
        return PLACEHOLDER_RE.search(self.template) is not None


@dataclass(frozen=True)
class Check:
    """Stop the pipeline if the most recent command failed."""


@dataclass(frozen=True)
class Kill:
    """Cancel whatever the previous run is currently executing."""


@dataclass(frozen=True)
class Wait:
    """Pause the pipeline for a fixed number of seconds."""

    seconds: float


CommandStep = Exec | Check | Kill | Wait


def parse_step(command: str, wait_seconds: float) -> CommandStep:
    """Turn one ``--cmd`` value into a pipeline step.

    Control tokens are recognised by exact match only; any other string,
    including one that merely contains a token, is a command template.

    Args:
        command: Raw command string from the command line
        wait_seconds: Duration given to ``{wait}`` steps

    Returns:
        The parsed step
    """
    if command == CHECK_TOKEN:
        return Check()
    if command == KILL_TOKEN:
        return Kill()
    if command == WAIT_TOKEN:
        return Wait(seconds=wait_seconds)
    return Exec(template=command)


@dataclass(frozen=True)
class PipelineSpec:
    """Ordered, immutable list of steps shared by every triggered run."""

    steps: tuple[CommandStep, ...] = ()

    @classmethod
    def from_commands(cls, commands: list[str], wait_seconds: float) -> "PipelineSpec":
        """Parse raw command strings in the order they were given."""
        return cls(steps=tuple(parse_step(c, wait_seconds) for c in commands))

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)


class CancelToken:
    """Cancellation signal for one run.

    Callbacks registered with ``add_callback`` run synchronously inside
    ``cancel()``, so whoever cancels knows the in-flight process has been
    signalled by the time the call returns.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    def cancel(self) -> None:
        """Fire the token once; later calls do nothing."""
        if self._event.is_set():
            return
        self._event.set()
        for callback in list(self._callbacks):
            callback()

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Wait until the token fires."""
        await self._event.wait()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancel, or right away if already cancelled."""
        if self._event.is_set():
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)


@dataclass(eq=False)
class RunHandle:
    """Cancellable handle for one triggered pipeline invocation.

    Cancelling a live run signals whichever ``Exec`` step is in flight and
    stops the pipeline. Cancelling a finished run is a no-op.

    A run aborted by ``{check}`` is redirected to the previous run's handle:
    from then on ``cancel()`` forwards to that handle, so a later ``{kill}``
    still reaches the prior run's process, which may still be active.
    """

    generation: int
    """Sequence number of the run, starting at 1."""

    trigger_path: str = STARTUP_PATH
    """Path that triggered the run, or ``STARTUP_PATH``."""

    _token: CancelToken = field(default_factory=CancelToken, repr=False)
    _redirected: bool = field(default=False, repr=False)
    _previous: "RunHandle | None" = field(default=None, repr=False)
    finished: bool = False

    def cancel(self) -> None:
        """Abort the run (or forward to the previous run once redirected)."""
        if self._redirected:
            if self._previous is not None:
                self._previous.cancel()
            return
        if self.finished:
            return
        self._token.cancel()

    @property
    def cancelled(self) -> bool:
        """Whether this run's own cancellation token has fired."""
        return self._token.is_set()

    @property
    def cancel_token(self) -> CancelToken:
        """Token fired when the run is cancelled; handed to the supervisor."""
        return self._token

    def redirect_to(self, previous: "RunHandle | None") -> None:
        """Make this handle stand in for ``previous`` from now on."""
        self._redirected = True
        self._previous = previous

    @property
    def redirected(self) -> bool:
        """Whether a ``{check}`` abort handed this handle over to the previous run."""
        return self._redirected
