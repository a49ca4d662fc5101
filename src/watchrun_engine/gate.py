"""Debounce gate: turns a stream of relevant changes into pipeline runs.

The gate is a single-writer actor on the event loop. Its busy flag and the
retained handle of the latest run are only touched from loop callbacks, so
no lock is needed. Changes arriving from the watchdog observer thread are
handed over with ``submit_threadsafe``.
"""

import asyncio
import logging

from watchrun_engine.config import EngineConfig
from watchrun_engine.executor import PipelineExecutor
from watchrun_engine.models import STARTUP_PATH, RunHandle

logger = logging.getLogger(__name__)


class DebounceGate:
    """Starts at most one run per debounce window and tracks the latest run.

    Changes arriving while the window is open are dropped, not queued. The
    window is measured from the trigger, not from the end of the run.
    """

    def __init__(self, config: EngineConfig, executor: PipelineExecutor):
        """Initialize gate.

        Args:
            config: Engine configuration (``delay`` sets the window length)
            executor: Executor used for every run
        """
        self.config = config
        self.executor = executor
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=config.queue_size)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._busy = False
        self._window: asyncio.TimerHandle | None = None
        self._latest: RunHandle | None = None
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def busy(self) -> bool:
        """Whether the debounce window is open."""
        return self._busy

    @property
    def latest(self) -> RunHandle | None:
        """Handle of the most recently started run."""
        return self._latest

    @property
    def active_runs(self) -> int:
        """Number of runs whose tasks have not finished yet."""
        return len(self._tasks)

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the loop that ``submit_threadsafe`` schedules onto."""
        self._loop = loop

    def submit_threadsafe(self, path: str) -> None:
        """Queue a relevant change from any thread.

        Args:
            path: Path of the changed file
        """
        if self._loop is None or self._loop.is_closed():
            logger.warning(f"Change to {path} ignored - gate not bound to a loop")
            return
        self._loop.call_soon_threadsafe(self._enqueue, path)

    def _enqueue(self, path: str) -> None:
        try:
            self.queue.put_nowait(path)
        except asyncio.QueueFull:
            logger.debug(f"queue full, dropping change: {path}")

    async def serve(self) -> None:
        """Consume queued changes in arrival order, forever."""
        while True:
            path = await self.queue.get()
            try:
                self.offer(path)
            finally:
                self.queue.task_done()

    def offer(self, path: str) -> bool:
        """Decide whether a relevant change triggers a run.

        Args:
            path: Path of the changed file

        Returns:
            True if a run was started, False if the change was dropped
        """
        if self._busy:
            logger.debug(f"debounce window open, dropping change: {path}")
            return False

        self._busy = True
        loop = asyncio.get_running_loop()
        self._window = loop.call_later(self.config.delay, self._close_window)
        self.trigger(path)
        return True

    def _close_window(self) -> None:
        self._busy = False
        self._window = None

    def trigger(self, path: str = STARTUP_PATH) -> RunHandle:
        """Start a run now, regardless of the debounce window.

        The new run receives the previously retained handle (target of
        ``{kill}``) and becomes the retained handle itself.

        Args:
            path: Triggering path, or ``STARTUP_PATH`` for the startup run

        Returns:
            Handle of the new run
        """
        self._generation += 1
        handle = RunHandle(generation=self._generation, trigger_path=path)
        previous, self._latest = self._latest, handle

        logger.debug(f"run {handle.generation} triggered by {path or '<startup>'}")
        task = asyncio.get_running_loop().create_task(self._guarded_run(handle, previous))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle

    async def _guarded_run(self, handle: RunHandle, previous: RunHandle | None) -> None:
        """Run boundary: faults are logged and never reach the trigger loop."""
        try:
            await self.executor.run(handle, previous)
        except asyncio.CancelledError:
            handle.finished = True
            raise
        except Exception as e:
            handle.finished = True
            logger.exception(f"run {handle.generation} failed unexpectedly: {e}")
        else:
            logger.debug(f"run {handle.generation} finished")

    async def wait_idle(self) -> None:
        """Wait until every started run has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel the latest run and wait for outstanding runs to end."""
        if self._window is not None:
            self._window.cancel()
            self._window = None
        if self._latest is not None:
            self._latest.cancel()
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
        await self.executor.supervisor.drain()
