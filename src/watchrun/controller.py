"""Controller wiring the change source, debounce gate and executor together."""

import asyncio
import logging
import signal

from watchrun_engine.config import EngineConfig
from watchrun_engine.executor import PipelineExecutor
from watchrun_engine.file_watcher import WatchdogSource
from watchrun_engine.gate import DebounceGate
from watchrun_engine.registry import FileRegistry, build_registry
from watchrun_engine.supervisor import ProcessSupervisor
from watchrun_engine.watchers import ChangeSource, ChangeSourceFactory

logger = logging.getLogger(__name__)

STOP_SIGNALS = ("SIGTERM", "SIGINT", "SIGQUIT")


def install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> list[int]:
    """Set ``stop_event`` when a termination signal arrives.

    Signals the platform or loop cannot handle are skipped.

    Returns:
        The signal numbers that were installed
    """
    installed = []
    for name in STOP_SIGNALS:
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError, ValueError):
            continue
        installed.append(sig)
    return installed


class WatchController:
    """Owns one engine instance: registry, change source, gate and executor.

    Several controllers can run side by side in one process since all state
    hangs off the instance and its ``EngineConfig``.
    """

    def __init__(
        self,
        config: EngineConfig,
        source_factory: ChangeSourceFactory = WatchdogSource,
        supervisor: ProcessSupervisor | None = None,
    ):
        """Initialize controller.

        Compiles the patterns and enumerates the watch targets, so startup
        errors surface here before anything is watched.

        Args:
            config: Engine configuration
            source_factory: Builds the change source (WatchdogSource by default)
            supervisor: Process supervisor for the executor

        Raises:
            PatternError: If a pattern is malformed
            RegistrationError: If a watch target cannot be read
        """
        self.config = config
        include, exclude = config.compile_patterns()
        self.registry: FileRegistry = build_registry(config.paths, include, exclude)
        self.executor = PipelineExecutor(
            config.pipeline, supervisor or ProcessSupervisor(kill_grace=config.kill_grace)
        )
        self.gate = DebounceGate(config, self.executor)
        self._source_factory = source_factory
        self._source: ChangeSource | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._serve_task: asyncio.Task | None = None

    @property
    def attached(self) -> bool:
        return self._loop is not None

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start the trigger loop and the change source on a running loop.

        Idempotent. Launches the startup run first when ``run_on_start`` is set.

        Raises:
            RuntimeError: If the loop is not running
            RegistrationError: If the change source cannot start
        """
        if self._loop is not None:
            return

        if not loop.is_running():
            raise RuntimeError("Event loop must be running before attach().")

        self._loop = loop
        self.gate.bind(loop)
        try:
            self._source = self._source_factory(self.registry, self.gate.submit_threadsafe)
            self._source.start()
        except Exception:
            self._source = None
            self._loop = None
            raise

        self._serve_task = loop.create_task(self.gate.serve())
        # Changes from the observer thread are queued behind this call, so
        # the startup run is always the first one
        if self.config.run_on_start:
            self.gate.trigger()

    def detach(self) -> None:
        """Stop the change source and the trigger loop."""
        if self._source is not None:
            try:
                self._source.stop()
            except Exception as e:
                logger.error(f"Error stopping file watcher: {e}")
            self._source = None
        if self._serve_task is not None:
            self._serve_task.cancel()
            self._serve_task = None
        self._loop = None

    async def run(self, stop_event: asyncio.Event) -> None:
        """Watch until ``stop_event`` is set, then shut everything down."""
        self.attach(asyncio.get_running_loop())
        try:
            await stop_event.wait()
        finally:
            self.detach()
            await self.gate.shutdown()
            logger.debug("goodbye")
