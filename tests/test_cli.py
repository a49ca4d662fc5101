"""Tests for watchrun.cli module."""

from unittest.mock import MagicMock, patch

import pytest

from watchrun.cli import config_from_args, main, parse_args
from watchrun_engine.models import Check, Exec, Kill, Wait


class TestParseArgs:
    """Tests for parse_args function."""

    def test_defaults(self):
        args = parse_args([])
        assert args.commands == []
        assert args.pattern == "*"
        assert args.exclude == ""
        assert args.verbose is False
        assert args.delay == 1
        assert args.init is True
        assert args.wait == 1
        assert args.paths == []

    def test_repeated_commands_keep_order(self):
        args = parse_args(["-c", "go build", "--cmd", "{check}", "-c", "./app"])
        assert args.commands == ["go build", "{check}", "./app"]

    def test_short_and_long_pattern_flags(self):
        assert parse_args(["-p", "*.go"]).pattern == "*.go"
        assert parse_args(["--pattern", "*.go"]).pattern == "*.go"
        assert parse_args(["-e", "*_test.go"]).exclude == "*_test.go"
        assert parse_args(["--except", "*_test.go"]).exclude == "*_test.go"

    @pytest.mark.parametrize(
        "argv, expected",
        [
            (["--init"], True),
            (["--init=false"], False),
            (["--init", "0"], False),
            (["--init=true"], True),
            (["--no-init"], False),
        ],
    )
    def test_init_flag(self, argv, expected):
        assert parse_args(argv).init is expected

    def test_invalid_init_value(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--init=maybe"])
        assert exc_info.value.code == 2

    def test_numbers_and_paths(self):
        args = parse_args(["-v", "--delay", "3", "--wait", "5", "src", "Makefile"])
        assert args.verbose is True
        assert args.delay == 3
        assert args.wait == 5
        assert args.paths == ["src", "Makefile"]

    def test_version_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])
        assert exc_info.value.code == 0


def test_config_from_args():
    args = parse_args(["-c", "make", "-c", "{check}", "-c", "{kill}", "-c", "{wait}", "--wait", "4", "src"])
    config = config_from_args(args)

    assert config.pipeline.steps == (Exec("make"), Check(), Kill(), Wait(4))
    assert config.paths == ("src",)
    assert config.run_on_start is True


def test_config_from_args_defaults_to_current_dir():
    assert config_from_args(parse_args(["-c", "make"])).paths == ("./",)


class TestMain:
    """Tests for main function."""

    def test_bad_pattern_exits_1(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", "make", "-p", "[abc", str(tmp_path)])
        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().err

    def test_missing_path_exits_1(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", "make", str(tmp_path / "missing")])
        assert exc_info.value.code == 1
        assert "can not stat" in capsys.readouterr().err

    def test_negative_delay_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", "make", "--delay", "-1", str(tmp_path)])
        assert exc_info.value.code == 1

    def test_normal_termination_exits_0(self, tmp_path):
        with (
            patch("watchrun.cli.WatchController") as controller_cls,
            patch("watchrun.cli.asyncio.run", side_effect=lambda coro: coro.close()) as run,
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["-c", "make", str(tmp_path)])

        assert exc_info.value.code == 0
        run.assert_called_once()
        config = controller_cls.call_args.args[0]
        assert config.paths == (str(tmp_path),)

    def test_keyboard_interrupt_exits_0(self, tmp_path):
        def interrupt(coro):
            coro.close()
            raise KeyboardInterrupt

        with (
            patch("watchrun.cli.WatchController", MagicMock()),
            patch("watchrun.cli.asyncio.run", side_effect=interrupt),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["-c", "make", str(tmp_path)])
        assert exc_info.value.code == 0

    def test_startup_failure_inside_loop_exits_1(self, tmp_path, capsys):
        from watchrun_engine.exceptions import RegistrationError

        def fail(coro):
            coro.close()
            raise RegistrationError("can not init file watcher: limit reached")

        with (
            patch("watchrun.cli.WatchController", MagicMock()),
            patch("watchrun.cli.asyncio.run", side_effect=fail),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["-c", "make", str(tmp_path)])
        assert exc_info.value.code == 1
        assert "limit reached" in capsys.readouterr().err
