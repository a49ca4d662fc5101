"""Tests for WatchController."""

import asyncio

import pytest

from watchrun.controller import WatchController, install_signal_handlers
from watchrun_engine.config import build_engine_config
from watchrun_engine.exceptions import PatternError, RegistrationError


class FakeSource:
    """Change source the test drives by hand."""

    instances: list["FakeSource"] = []

    def __init__(self, registry, submit):
        self.registry = registry
        self.submit = submit
        self.running = False
        FakeSource.instances.append(self)

    def start(self):
        self.running = True

    def stop(self):
        self.running = False


class FailingSource(FakeSource):
    def start(self):
        raise RegistrationError("can not init file watcher: too many watches")


@pytest.fixture(autouse=True)
def reset_sources():
    FakeSource.instances.clear()


def make_controller(watch_tree, supervisor, commands, source_factory=FakeSource, **kwargs):
    config = build_engine_config(commands, paths=[str(watch_tree)], wait=0, **kwargs)
    return WatchController(config, source_factory=source_factory, supervisor=supervisor)


async def wait_for_calls(supervisor, count, timeout=2.0):
    async def poll():
        while len(supervisor.calls) < count:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


def test_startup_errors_surface_at_construction(watch_tree, fake_supervisor):
    with pytest.raises(PatternError):
        make_controller(watch_tree, fake_supervisor, ["make"], pattern="[oops")

    config = build_engine_config(["make"], paths=[str(watch_tree / "missing")])
    with pytest.raises(RegistrationError):
        WatchController(config, source_factory=FakeSource)


def test_registry_is_built_from_config(watch_tree, fake_supervisor):
    controller = make_controller(watch_tree, fake_supervisor, ["make"], pattern="*.py")
    assert str(watch_tree / "src") in controller.registry.watched_dirs
    assert controller.registry.include.source == "*.py"


@pytest.mark.asyncio
async def test_attach_runs_startup_pipeline(watch_tree, fake_supervisor):
    controller = make_controller(watch_tree, fake_supervisor, ["make", "echo {file}"])
    controller.attach(asyncio.get_running_loop())

    await controller.gate.wait_idle()
    assert fake_supervisor.calls == [["make"]]
    assert FakeSource.instances[0].running

    controller.detach()
    await controller.gate.shutdown()


@pytest.mark.asyncio
async def test_attach_without_startup_run(watch_tree, fake_supervisor):
    controller = make_controller(watch_tree, fake_supervisor, ["make"], run_on_start=False)
    controller.attach(asyncio.get_running_loop())

    await controller.gate.wait_idle()
    assert fake_supervisor.calls == []

    controller.detach()


@pytest.mark.asyncio
async def test_attach_is_idempotent(watch_tree, fake_supervisor):
    controller = make_controller(watch_tree, fake_supervisor, ["make"], run_on_start=False)
    loop = asyncio.get_running_loop()

    controller.attach(loop)
    controller.attach(loop)

    assert controller.attached
    assert len(FakeSource.instances) == 1
    controller.detach()
    assert not controller.attached
    assert not FakeSource.instances[0].running


@pytest.mark.asyncio
async def test_attach_requires_running_loop(watch_tree, fake_supervisor):
    controller = make_controller(watch_tree, fake_supervisor, ["make"])
    loop = asyncio.new_event_loop()
    try:
        with pytest.raises(RuntimeError, match="Event loop must be running"):
            controller.attach(loop)
    finally:
        loop.close()


@pytest.mark.asyncio
async def test_source_start_failure_propagates(watch_tree, fake_supervisor):
    controller = make_controller(watch_tree, fake_supervisor, ["make"], source_factory=FailingSource)

    with pytest.raises(RegistrationError, match="too many watches"):
        controller.attach(asyncio.get_running_loop())

    assert not controller.attached
    assert fake_supervisor.calls == []


@pytest.mark.asyncio
async def test_changes_flow_from_source_to_pipeline(watch_tree, fake_supervisor):
    controller = make_controller(
        watch_tree, fake_supervisor, ["echo {name}{ext}"], run_on_start=False, delay=10
    )
    controller.attach(asyncio.get_running_loop())
    source = FakeSource.instances[0]

    source.submit(str(watch_tree / "src" / "main.py"))
    source.submit(str(watch_tree / "src" / "pkg" / "mod.py"))
    await wait_for_calls(fake_supervisor, 1)
    await controller.gate.wait_idle()

    assert fake_supervisor.calls == [["echo", "main.py"]]
    controller.detach()
    await controller.gate.shutdown()


@pytest.mark.asyncio
async def test_run_until_stopped(watch_tree, fake_supervisor, caplog):
    controller = make_controller(watch_tree, fake_supervisor, ["block"])
    stop = asyncio.Event()

    with caplog.at_level("DEBUG", logger="watchrun"):
        task = asyncio.create_task(controller.run(stop))
        await wait_for_calls(fake_supervisor, 1)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

    assert controller.gate.latest.cancelled
    assert not FakeSource.instances[0].running
    assert controller.gate.active_runs == 0
    assert "goodbye" in caplog.text


@pytest.mark.asyncio
async def test_install_signal_handlers():
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    installed = install_signal_handlers(loop, stop)
    try:
        assert installed
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
