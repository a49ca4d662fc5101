#!/usr/bin/env python3
"""
Example: Two watch engines in one process
Shows how to embed WatchController without the CLI.

This example demonstrates:
- Building EngineConfig values in code instead of from flags
- Running independent engines side by side on one event loop
- Using {check} and {kill} in a rebuild-and-restart pipeline
- Stopping everything from a single stop event

Try it:
    python examples/embedding_headless.py docs/ src/
    (edit a file under either directory, Ctrl+C to stop)
"""

import asyncio
import logging
import sys

from watchrun import WatchController
from watchrun.controller import install_signal_handlers
from watchrun_engine import WatchrunError, build_engine_config


def docs_engine(path: str) -> WatchController:
    """Rebuild one markdown file at a time; no startup run."""
    config = build_engine_config(
        ["echo rendering {file}", "cp {file} /tmp/{name}{ext}.bak"],
        pattern="*.{md,rst}",
        run_on_start=False,
        delay=1,
        paths=[path],
    )
    return WatchController(config)


def app_engine(path: str) -> WatchController:
    """Compile, stop on failure, then replace the previous server."""
    config = build_engine_config(
        [
            "python -m compileall -q {dir}",
            "{check}",
            "{kill}",
            "{wait}",
            "python -m http.server 8000",
        ],
        pattern="*.py",
        exclude="*_test.py",
        wait=1,
        paths=[path],
    )
    return WatchController(config)


async def main(docs_dir: str, src_dir: str) -> None:
    stop = asyncio.Event()
    install_signal_handlers(asyncio.get_running_loop(), stop)

    engines = [docs_engine(docs_dir), app_engine(src_dir)]
    print(f"▶ Watching {docs_dir} (docs) and {src_dir} (app). Ctrl+C to stop.")
    await asyncio.gather(*(engine.run(stop) for engine in engines))
    print("✓ Stopped")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    docs = sys.argv[1] if len(sys.argv) > 1 else "./docs"
    src = sys.argv[2] if len(sys.argv) > 2 else "./src"
    try:
        asyncio.run(main(docs, src))
    except WatchrunError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)
