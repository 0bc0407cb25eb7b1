"""
Unit tests for the process directory.

Tests worker-process listing parsing, listing failures, and the mapping of
process ids to Process-category instance names.
"""

from unittest.mock import Mock, patch

import psutil
import pytest

from countermon.models.targets import ProcessRecord
from countermon.system.commands import CommandResult
from countermon.system.processes import ProcessDirectory, parse_worker_processes, strip_executable_suffix
from countermon.validation import ProcessListingError

RUN_COMMAND = "countermon.system.processes.run_command"


@pytest.mark.unit
class TestParseWorkerProcesses:
    """Parsing appcmd-style output."""

    def test_finds_pool_among_noise(self, appcmd_output):
        assert parse_worker_processes(appcmd_output, "ShopPool") == [ProcessRecord("ShopPool", 4821)]

    def test_case_insensitive(self, appcmd_output):
        assert parse_worker_processes(appcmd_output.upper(), "shoppool") == [ProcessRecord("shoppool", 4821)]

    def test_no_substring_aliasing(self, appcmd_output):
        assert parse_worker_processes(appcmd_output, "Shop") == []
        assert parse_worker_processes(appcmd_output, "ShopPoolV2") == [ProcessRecord("ShopPoolV2", 5100)]

    def test_pool_name_with_regex_characters(self):
        output = 'WP "77" (applicationPool:api.v1 (beta))\n'
        assert parse_worker_processes(output, "api.v1 (beta)") == [ProcessRecord("api.v1 (beta)", 77)]
        assert parse_worker_processes(output, "apixv1 (beta)") == []

    def test_missing_pool(self, appcmd_output):
        assert parse_worker_processes(appcmd_output, "Nope") == []
        assert parse_worker_processes("", "ShopPool") == []

    def test_multiple_workers_keep_output_order(self):
        output = 'WP "30" (applicationPool:Web)\nWP "10" (applicationPool:Web)\n'
        assert [r.pid for r in parse_worker_processes(output, "Web")] == [30, 10]


@pytest.mark.unit
class TestListWorkerProcesses:
    """Running the listing utility."""

    @pytest.fixture
    def directory(self, fake_provider):
        return ProcessDirectory(fake_provider, listing_command="appcmd list WP", default_timeout=12.0)

    def test_success(self, directory, appcmd_output):
        with patch(RUN_COMMAND, return_value=CommandResult(0, appcmd_output, "")) as run:
            assert directory.list_worker_processes("DefaultAppPool") == [ProcessRecord("DefaultAppPool", 1204)]
        run.assert_called_once_with("appcmd list WP", timeout=12.0)

    def test_timeout_override(self, directory):
        with patch(RUN_COMMAND, return_value=CommandResult(0, "", "")) as run:
            assert directory.list_worker_processes("DefaultAppPool", timeout=2.5) == []
        run.assert_called_once_with("appcmd list WP", timeout=2.5)

    def test_timeout_raises_listing_error(self, directory):
        with patch(RUN_COMMAND, return_value=CommandResult(-1, "", "", timed_out=True)):
            with pytest.raises(ProcessListingError, match="timed out"):
                directory.list_worker_processes("DefaultAppPool")

    def test_failure_raises_listing_error(self, directory):
        with patch(RUN_COMMAND, return_value=CommandResult(5, "", "ERROR ( message:Access denied )")):
            with pytest.raises(ProcessListingError, match="Access denied"):
                directory.list_worker_processes("DefaultAppPool")


@pytest.mark.unit
class TestProcessLookups:
    """Mapping pids to process-category instances and OS processes by name."""

    def test_find_process_id_by_name(self, fake_provider):
        fake_provider.categories["Process"] = ["Idle", "w3wp", "W3WP#1", "w3wpx", "sqlservr"]
        fake_provider.raw_values[("Process", "ID Process", "w3wp")] = 100
        fake_provider.raw_values[("Process", "ID Process", "W3WP#1")] = 4821
        fake_provider.raw_values[("Process", "ID Process", "w3wpx")] = 7

        directory = ProcessDirectory(fake_provider, listing_command="appcmd list WP")
        assert directory.find_process_id_by_name("w3wp") == [("w3wp", 100), ("W3WP#1", 4821), ("w3wpx", 7)]
        assert fake_provider.live_handles() == []

    def test_find_process_id_skips_vanished_instances(self, fake_provider):
        fake_provider.categories["Process"] = ["w3wp", "w3wp#1"]
        fake_provider.refused.add("w3wp")
        fake_provider.raw_values[("Process", "ID Process", "w3wp#1")] = 9

        directory = ProcessDirectory(fake_provider, listing_command="appcmd list WP")
        assert directory.find_process_id_by_name("w3wp") == [("w3wp#1", 9)]

    def test_find_process_id_without_process_category(self, fake_provider):
        directory = ProcessDirectory(fake_provider, listing_command="appcmd list WP")
        assert directory.find_process_id_by_name("w3wp") == []

    def test_get_processes_by_name(self, fake_provider):
        def proc(pid, name):
            mock = Mock()
            mock.info = {"pid": pid, "name": name}
            return mock

        processes = [proc(30, "w3wp.exe"), proc(2, "System"), proc(12, "W3WP"), proc(5, "w3wpx.exe")]
        directory = ProcessDirectory(fake_provider, listing_command="appcmd list WP")

        with patch("countermon.system.processes.psutil.process_iter", return_value=processes):
            records = directory.get_processes_by_name("w3wp")

        assert records == [ProcessRecord("W3WP", 12), ProcessRecord("w3wp.exe", 30)]


@pytest.mark.integration
def test_get_processes_by_name_finds_current_process(fake_provider):
    me = psutil.Process()
    directory = ProcessDirectory(fake_provider, listing_command="appcmd list WP")
    pids = [record.pid for record in directory.get_processes_by_name(me.name())]
    assert me.pid in pids


@pytest.mark.unit
def test_strip_executable_suffix():
    assert strip_executable_suffix("w3wp.exe") == "w3wp"
    assert strip_executable_suffix("W3WP.EXE") == "W3WP"
    assert strip_executable_suffix("python3") == "python3"
