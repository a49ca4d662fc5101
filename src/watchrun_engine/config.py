"""Engine configuration, built once at startup and passed explicitly."""

import logging
from dataclasses import dataclass, field

from watchrun_engine.exceptions import ConfigError
from watchrun_engine.models import PipelineSpec
from watchrun_engine.patterns import Pattern, compile_pattern

logger = logging.getLogger(__name__)

DEFAULT_PATHS = ("./",)
DEFAULT_QUEUE_SIZE = 64


@dataclass(frozen=True)
class EngineConfig:
    """Immutable settings shared by the debounce gate and the executor."""

    pipeline: PipelineSpec = field(default_factory=PipelineSpec)
    """Parsed command steps, in the order given."""

    include: str = "*"
    """Include glob; empty means everything."""

    exclude: str = ""
    """Exclude glob; empty means nothing is excluded."""

    verbose: bool = False

    delay: float = 1.0
    """Debounce window length in seconds."""

    run_on_start: bool = True
    """Run the pipeline once at startup with no triggering file."""

    wait: float = 1.0
    """Duration of ``{wait}`` steps in seconds."""

    paths: tuple[str, ...] = DEFAULT_PATHS
    """Files and directories to watch."""

    queue_size: int = DEFAULT_QUEUE_SIZE
    """Capacity of the queue between the change filter and the gate."""

    kill_grace: float = 2.0
    """Seconds a cancelled command gets before it is killed outright."""

    def compile_patterns(self) -> tuple[Pattern | None, Pattern | None]:
        """Compile the include and exclude globs.

        Raises:
            PatternError: If either pattern is malformed
        """
        return compile_pattern(self.include), compile_pattern(self.exclude)


def build_engine_config(
    commands: list[str] | None = None,
    *,
    pattern: str = "*",
    exclude: str = "",
    verbose: bool = False,
    delay: float = 1.0,
    run_on_start: bool = True,
    wait: float = 1.0,
    paths: list[str] | None = None,
    **extra,
) -> EngineConfig:
    """Build an ``EngineConfig`` from raw command-line values.

    Args:
        commands: ``--cmd`` values in order
        pattern: Include glob
        exclude: Exclude glob
        verbose: Verbose diagnostics
        delay: Debounce window in seconds
        run_on_start: Run once at startup
        wait: ``{wait}`` duration in seconds
        paths: Watch targets (defaults to the current directory)
        **extra: Other ``EngineConfig`` fields (``queue_size``, ``kill_grace``)

    Returns:
        Validated configuration

    Raises:
        ConfigError: If a numeric setting is out of range
    """
    if delay < 0:
        raise ConfigError(f"delay must not be negative, got {delay}")
    if wait < 0:
        raise ConfigError(f"wait must not be negative, got {wait}")
    if extra.get("queue_size", DEFAULT_QUEUE_SIZE) < 1:
        raise ConfigError("queue_size must be at least 1")

    commands = list(commands or [])
    if not commands:
        logger.warning("No commands configured; changes will be detected but nothing runs")

    return EngineConfig(
        pipeline=PipelineSpec.from_commands(commands, wait),
        include=pattern,
        exclude=exclude,
        verbose=verbose,
        delay=delay,
        run_on_start=run_on_start,
        wait=wait,
        paths=tuple(paths) if paths else DEFAULT_PATHS,
        **extra,
    )
