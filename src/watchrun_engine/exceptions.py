"""Exception types raised by the watchrun engine."""


class WatchrunError(Exception):
    """Base class for all watchrun errors."""


class ConfigError(WatchrunError):
    """Invalid engine configuration (startup error)."""


class PatternError(WatchrunError):
    """A glob pattern could not be compiled (startup error)."""


class RegistrationError(WatchrunError):
    """A watch target could not be registered (startup error)."""


class CommandError(WatchrunError):
    """A pipeline command failed to start or exited with a non-zero status."""

    def __init__(self, argv: list[str], message: str):
        self.argv = list(argv)
        super().__init__(f"{' '.join(self.argv)}: {message}" if self.argv else message)


class CommandCancelled(CommandError):
    """A pipeline command was terminated because its run was cancelled."""

    def __init__(self, argv: list[str]):
        super().__init__(argv, "cancelled")
