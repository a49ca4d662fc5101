"""Process supervisor: runs one external command to completion or cancellation."""

import asyncio
import logging
import os
import signal
import sys

from watchrun_engine.exceptions import CommandCancelled, CommandError
from watchrun_engine.models import CancelToken

logger = logging.getLogger(__name__)

_POSIX = sys.platform != "win32"


class ProcessSupervisor:
    """Spawns commands with inherited stdio and terminates them on request.

    On POSIX each child gets its own session, so termination reaches the
    whole process group the command may have started.
    """

    def __init__(self, kill_grace: float = 2.0):
        """Initialize supervisor.

        Args:
            kill_grace: Seconds a terminated process gets before SIGKILL
        """
        self.kill_grace = kill_grace
        self._reapers: set[asyncio.Task] = set()

    async def execute(self, argv: list[str], cancel_token: CancelToken) -> None:
        """Run ``argv`` until it exits or ``cancel_token`` fires.

        The termination signal is sent from inside ``cancel_token.cancel()``,
        so it has gone out before the canceller takes its next step.

        Args:
            argv: Executable and arguments
            cancel_token: Fired by the owning run to request termination

        Raises:
            CommandError: If the process cannot start or exits non-zero
            CommandCancelled: If the run was cancelled while the process ran
        """
        if cancel_token.is_set():
            raise CommandCancelled(argv)

        try:
            proc = await asyncio.create_subprocess_exec(*argv, start_new_session=_POSIX)
        except OSError as e:
            raise CommandError(argv, f"failed to start: {e.strerror or e}") from e

        logger.debug(f"started pid {proc.pid}: {' '.join(argv)}")
        exit_wait = asyncio.ensure_future(proc.wait())
        signalled = False

        def terminate() -> None:
            nonlocal signalled
            if not signalled:
                signalled = True
                self._terminate(proc, exit_wait)

        cancel_token.add_callback(terminate)
        cancel_wait = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({exit_wait, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            terminate()
            raise
        finally:
            cancel_wait.cancel()
            cancel_token.remove_callback(terminate)

        # a signalled child may already have exited by the time we wake up
        if cancel_token.is_set():
            terminate()
            raise CommandCancelled(argv)

        returncode = exit_wait.result()
        if returncode != 0:
            raise CommandError(argv, f"exit status {returncode}")

    def _terminate(self, proc: asyncio.subprocess.Process, exit_wait: asyncio.Future) -> None:
        """Signal the process and hand the wait off to a background reaper."""
        if proc.returncode is None:
            logger.debug(f"terminating pid {proc.pid}")
            self._send(proc, signal.SIGTERM)
        reaper = asyncio.ensure_future(self._reap(proc, exit_wait))
        self._reapers.add(reaper)
        reaper.add_done_callback(self._reapers.discard)

    async def _reap(self, proc: asyncio.subprocess.Process, exit_wait: asyncio.Future) -> None:
        try:
            await asyncio.wait_for(asyncio.shield(exit_wait), timeout=self.kill_grace)
        except asyncio.TimeoutError:
            logger.debug(f"pid {proc.pid} ignored SIGTERM, killing")
            self._send(proc, signal.SIGKILL if _POSIX else signal.SIGTERM)
            await exit_wait

    @staticmethod
    def _send(proc: asyncio.subprocess.Process, sig: int) -> None:
        try:
            if _POSIX:
                os.killpg(proc.pid, sig)
            elif sig == signal.SIGTERM:
                proc.terminate()
            else:
                proc.kill()
        except ProcessLookupError:
            pass

    async def drain(self) -> None:
        """Wait for all terminated processes to be reaped."""
        if self._reapers:
            await asyncio.gather(*self._reapers, return_exceptions=True)
