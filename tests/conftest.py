"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from watchrun_engine.exceptions import CommandCancelled, CommandError  # noqa: E402
from watchrun_engine.models import CancelToken  # noqa: E402


class FakeSupervisor:
    """Records every argv instead of spawning processes.

    Commands whose executable is ``fail`` raise CommandError; ``block``
    waits until the run is cancelled, like a long-running process would.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.cancelled: list[list[str]] = []
        self.started = asyncio.Event()

    async def execute(self, argv: list[str], cancel_token: CancelToken) -> None:
        self.calls.append(list(argv))
        self.started.set()
        if argv[0] == "fail":
            raise CommandError(argv, "exit status 1")
        if argv[0] == "block":
            await cancel_token.wait()
            self.cancelled.append(list(argv))
            raise CommandCancelled(argv)

    async def drain(self) -> None:
        pass


@pytest.fixture
def fake_supervisor():
    """A supervisor that records commands instead of running them."""
    return FakeSupervisor()


@pytest.fixture
def watch_tree(tmp_path):
    """Create a small project tree with a hidden directory."""
    (tmp_path / "src" / "pkg").mkdir(parents=True)
    (tmp_path / ".git" / "objects").mkdir(parents=True)
    (tmp_path / "src" / "main.py").write_text("print('hi')\n")
    (tmp_path / "src" / "pkg" / "mod.py").write_text("")
    (tmp_path / "README.md").write_text("# demo\n")
    return tmp_path
