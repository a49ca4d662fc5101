"""watchrun-engine: change-triggered pipeline execution."""

__version__ = "0.1.0"

# Config
from watchrun_engine.config import EngineConfig, build_engine_config

# Exceptions
from watchrun_engine.exceptions import (
    CommandCancelled,
    CommandError,
    ConfigError,
    PatternError,
    RegistrationError,
    WatchrunError,
)

# Engine
from watchrun_engine.executor import PipelineExecutor, substitute_placeholders
from watchrun_engine.gate import DebounceGate

# Models
from watchrun_engine.models import (
    STARTUP_PATH,
    CancelToken,
    Check,
    CommandStep,
    Exec,
    Kill,
    Operation,
    PipelineSpec,
    RunHandle,
    Wait,
    WatchEvent,
)
from watchrun_engine.patterns import Pattern, compile_pattern
from watchrun_engine.registry import FileRegistry, build_registry
from watchrun_engine.supervisor import ProcessSupervisor

__all__ = [
    "__version__",
    # Models
    "Operation",
    "WatchEvent",
    "CommandStep",
    "Exec",
    "Check",
    "Kill",
    "Wait",
    "PipelineSpec",
    "RunHandle",
    "CancelToken",
    "STARTUP_PATH",
    # Filtering
    "Pattern",
    "compile_pattern",
    "FileRegistry",
    "build_registry",
    # Engine
    "ProcessSupervisor",
    "PipelineExecutor",
    "substitute_placeholders",
    "DebounceGate",
    # Config
    "EngineConfig",
    "build_engine_config",
    # Errors
    "WatchrunError",
    "ConfigError",
    "PatternError",
    "RegistrationError",
    "CommandError",
    "CommandCancelled",
]
