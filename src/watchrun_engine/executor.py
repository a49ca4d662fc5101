"""Pipeline executor: walks the command steps of one triggered run."""

import asyncio
import logging
import os

from watchrun_engine.exceptions import CommandCancelled, CommandError
from watchrun_engine.models import (
    PLACEHOLDER_RE,
    STARTUP_PATH,
    Check,
    Exec,
    Kill,
    PipelineSpec,
    RunHandle,
    Wait,
)
from watchrun_engine.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


def path_parts(path: str) -> dict[str, str]:
    """Split a path into the values substituted for each placeholder.

    ``{ext}`` is everything from the last dot of the base name (so
    ``.bashrc`` is all extension), ``{name}`` is the rest of the base name.
    """
    base = os.path.basename(path)
    dot = base.rfind(".")
    ext = base[dot:] if dot >= 0 else ""
    return {
        "file": path,
        "dir": os.path.dirname(path) or ".",
        "name": base[: len(base) - len(ext)],
        "ext": ext,
    }


def substitute_placeholders(template: str, path: str) -> str:
    """Replace ``{file}``, ``{dir}``, ``{name}`` and ``{ext}`` in one pass.

    Braces that come from the substituted path itself are never expanded.

    >>> substitute_placeholders("echo {name}{ext}", "/a/b/report.txt")
    'echo report.txt'
    """
    parts = path_parts(path)
    return PLACEHOLDER_RE.sub(lambda m: parts[m.group(1)], template)


def split_command(command: str) -> list[str]:
    """Split a substituted command on whitespace into argv.

    Raises:
        CommandError: If the command is empty
    """
    argv = command.split()
    if not argv:
        raise CommandError([], "empty command")
    return argv


class PipelineExecutor:
    """Interprets a ``PipelineSpec`` for one run at a time.

    The executor holds no per-run state, so one instance serves every run
    and overlapping runs never interfere.
    """

    def __init__(self, pipeline: PipelineSpec, supervisor: ProcessSupervisor | None = None):
        """Initialize executor.

        Args:
            pipeline: Steps shared by every run
            supervisor: Process supervisor (defaults to a new ProcessSupervisor)
        """
        self.pipeline = pipeline
        self.supervisor = supervisor or ProcessSupervisor()

    async def run(self, handle: RunHandle, previous: RunHandle | None) -> RunHandle | None:
        """Execute the pipeline for one trigger.

        Only the most recent command counts for ``{check}``: a success clears
        an earlier failure, while a step skipped on startup leaves it as is.
        Once the run is cancelled no further step of any kind is taken.

        Args:
            handle: Handle of this run; carries the trigger path and cancel token
            previous: Handle of the preceding run, target of ``{kill}``

        Returns:
            The run's output handle: ``handle`` itself, or ``previous`` when a
            ``{check}`` step aborted the run after an error
        """
        last_error: CommandError | None = None
        try:
            for step in self.pipeline:
                if handle.cancelled:
                    logger.debug(f"run {handle.generation}: cancelled")
                    return handle

                if isinstance(step, Check):
                    if last_error is not None:
                        logger.debug(f"run {handle.generation}: check failed, skipping remaining steps")
                        handle.redirect_to(previous)
                        return previous
                    continue

                if isinstance(step, Kill):
                    if previous is not None:
                        logger.debug(f"run {handle.generation}: cancelling run {previous.generation}")
                        previous.cancel()
                    continue

                if isinstance(step, Wait):
                    logger.debug(f"run {handle.generation}: waiting {step.seconds}s")
                    await asyncio.sleep(step.seconds)
                    continue

                try:
                    if await self._exec(step, handle):
                        last_error = None
                except CommandCancelled:
                    logger.debug(f"run {handle.generation}: cancelled")
                    return handle
                except CommandError as e:
                    logger.error(f"run command error: {e}")
                    last_error = e
            return handle
        finally:
            handle.finished = True

    async def _exec(self, step: Exec, handle: RunHandle) -> bool:
        """Run one command; return False if it was skipped on startup."""
        if handle.trigger_path == STARTUP_PATH and step.has_placeholders:
            logger.debug(f"skip on startup: {step.template}")
            return False

        command = substitute_placeholders(step.template, handle.trigger_path)
        logger.debug(f"command: {command}")
        await self.supervisor.execute(split_command(command), handle.cancel_token)
        return True
