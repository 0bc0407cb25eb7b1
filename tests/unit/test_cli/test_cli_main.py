"""
Unit tests for the countermon command-line interface.

The psutil provider is replaced by the in-memory counter subsystem so the
subcommands run against deterministic instances.
"""

import signal
from unittest.mock import patch

import pytest

from countermon.cli.main import build_parser, create_components, main_cli
from countermon.models.config import MonitorConfig
from countermon.system.commands import CommandResult

PROVIDER = "countermon.cli.main.PsutilCounterProvider"
RUN_COMMAND = "countermon.system.processes.run_command"
CPU = "% Processor Time"


@pytest.fixture
def provider(fake_provider):
    fake_provider.categories["Process"] = ["Idle", "w3wp", "w3wp#1"]
    fake_provider.categories["Processor"] = ["_Total", "0"]
    fake_provider.raw_values[("Process", "ID Process", "w3wp")] = 1204
    fake_provider.raw_values[("Process", "ID Process", "w3wp#1")] = 4821
    fake_provider.set_values("Process", CPU, "w3wp#1", [0.0, 42.0])
    fake_provider.set_values("Processor", CPU, "_Total", [0.0, 25.0])
    with patch(PROVIDER, return_value=fake_provider):
        yield fake_provider


@pytest.fixture
def restore_signals():
    handlers = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in handlers.items():
        signal.signal(sig, handler)


def output_lines(capsys):
    return capsys.readouterr().out.splitlines()


@pytest.mark.unit
class TestParser:
    """Argument parsing."""

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_sample_arguments(self):
        args = build_parser().parse_args(
            ["sample", "Process", CPU, "--app-pool", "ShopPool", "--count", "3", "--interval", "0.5"]
        )
        assert args.specifier is None
        assert args.app_pool == "ShopPool"
        assert args.count == 3
        assert args.interval == 0.5


@pytest.mark.unit
class TestResolveAndList:
    """The resolve and list-instances subcommands."""

    def test_resolve_prints_instance(self, provider, capsys):
        assert main_cli(["resolve", "Process", "missing|W3WP#1"]) == 0
        assert "w3wp#1" in output_lines(capsys)

    def test_resolve_unresolvable(self, provider, capsys):
        provider.categories["Process"] = []
        assert main_cli(["resolve", "Process", "w3wp"]) == 1

    def test_list_instances(self, provider, capsys):
        assert main_cli(["list-instances", "Processor"]) == 0
        lines = output_lines(capsys)
        assert "_Total" in lines
        assert "0" in lines

    def test_list_unknown_category(self, provider):
        assert main_cli(["list-instances", "No Such Category"]) == 1


@pytest.mark.unit
class TestSample:
    """The sample subcommand."""

    def test_sample_specifier(self, provider, capsys):
        assert main_cli(["sample", "Processor", CPU, "_Total", "--count", "2", "--interval", "0.01"]) == 0
        lines = output_lines(capsys)
        assert lines.count(f"Processor/{CPU} [_Total] 25") == 2

    def test_sample_app_pool(self, provider, capsys):
        listing = CommandResult(0, 'WP "4821" (applicationPool:ShopPool)\n', "")
        with patch(RUN_COMMAND, return_value=listing):
            assert main_cli(["sample", "Process", CPU, "--app-pool", "ShopPool", "--interval", "0.01"]) == 0
        assert f"Process/{CPU} [ShopPool] 42" in output_lines(capsys)
        assert provider.live_handles() == []

    def test_sample_unavailable_pool(self, provider):
        with patch(RUN_COMMAND, return_value=CommandResult(0, "", "")):
            assert main_cli(["sample", "Process", CPU, "--app-pool", "ShopPool", "--interval", "0.01"]) == 1

    def test_sample_requires_specifier_or_pool(self, provider):
        assert main_cli(["sample", "Process", CPU]) == 2

    def test_sample_unresolvable_specifier(self, provider):
        provider.categories["Processor"] = []
        assert main_cli(["sample", "Processor", CPU, "_Total", "--interval", "0.01"]) == 1

    def test_sample_invalid_count(self, provider):
        with pytest.raises(SystemExit) as exc_info:
            main_cli(["sample", "Processor", CPU, "_Total", "--count", "0"])
        assert exc_info.value.code == 2


@pytest.mark.unit
class TestRun:
    """The run subcommand."""

    def test_run_iterations(self, provider, config_file, restore_signals):
        listing = CommandResult(0, 'WP "4821" (applicationPool:ShopPool)\n', "")
        with patch(RUN_COMMAND, return_value=listing) as run:
            assert main_cli(["--config", str(config_file), "run", "--iterations", "1"]) == 0
        run.assert_called_once_with("appcmd list WP", timeout=10.0)
        assert provider.live_handles() == []

    def test_run_missing_config(self, temp_dir, restore_signals):
        with pytest.raises(SystemExit) as exc_info:
            main_cli(["--config", str(temp_dir / "missing.toml"), "run"])
        assert exc_info.value.code == 1


@pytest.mark.unit
def test_create_components_uses_monitor_settings(fake_provider):
    config = MonitorConfig(listing_command="list-workers", listing_timeout=3.0, pid_suffixed_categories=["X"])
    provider, directory, resolver = create_components(config, provider=fake_provider)
    assert provider is fake_provider
    assert directory.listing_command == "list-workers"
    assert directory.default_timeout == 3.0
    assert resolver.is_pid_suffixed("x")
    assert not resolver.is_pid_suffixed(".NET Data Provider for SqlServer")
