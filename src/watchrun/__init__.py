"""watchrun: run a command pipeline whenever watched files change."""

__version__ = "0.1.0"

# Public API
from watchrun.controller import WatchController

__all__ = [
    "__version__",
    # Primary components
    "WatchController",
]
