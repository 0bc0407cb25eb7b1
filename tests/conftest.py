"""
Pytest configuration and shared fixtures for the countermon test suite.

This module provides an in-memory counter subsystem, configuration file
helpers and other fixtures shared by all test modules.
"""

import shutil
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from countermon.counters.base import AbstractCounterHandle, AbstractCounterProvider  # noqa: E402
from countermon.validation import CounterError, CounterInvalidError  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


# ============================================================================
# In-memory counter subsystem
# ============================================================================


class FakeCounterHandle(AbstractCounterHandle):
    """Handle whose reads come from the owning FakeCounterProvider."""

    def __init__(self, provider: "FakeCounterProvider", category: str, counter: str, instance: str):
        super().__init__(category, counter, instance)
        self._provider = provider
        self._closed = False
        self.reads = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _check(self) -> None:
        if self._closed:
            raise CounterInvalidError(f"handle for '{self.instance}' is closed")
        if self.instance not in self._provider.categories.get(self.category, []):
            self._closed = True
            raise CounterInvalidError(f"instance '{self.instance}' is gone")

    def next_value(self) -> float:
        self._check()
        self.reads += 1
        key = (self.category, self.counter, self.instance)
        sequence = self._provider.values.get(key)
        if not sequence:
            return 0.0
        if len(sequence) > 1:
            return sequence.pop(0)
        return sequence[0]

    def raw_value(self) -> float:
        self._check()
        return self._provider.raw_values.get((self.category, self.counter, self.instance), 0.0)

    def close(self) -> None:
        self._closed = True


class FakeCounterProvider(AbstractCounterProvider):
    """
    In-memory counter subsystem.

    Attributes:
        categories: Live instance names per category.
        values: Sequences returned by next_value per (category, counter, instance);
                the last value repeats once the sequence is exhausted.
        raw_values: Values returned by raw_value.
        refused: Instances for which open() raises CounterError.
        handles: Every handle ever opened.
    """

    def __init__(self, categories: Optional[Dict[str, List[str]]] = None):
        self.categories: Dict[str, List[str]] = {k: list(v) for k, v in (categories or {}).items()}
        self.values: Dict[Tuple[str, str, str], List[float]] = {}
        self.raw_values: Dict[Tuple[str, str, str], float] = {}
        self.refused: set = set()
        self.handles: List[FakeCounterHandle] = []
        self.enumerations = 0

    def instance_names(self, category: str) -> List[str]:
        self.enumerations += 1
        if category not in self.categories:
            raise CounterError(f"Category '{category}' does not exist")
        return list(self.categories[category])

    def open(self, category: str, counter: str, instance: str) -> FakeCounterHandle:
        if category not in self.categories:
            raise CounterError(f"Category '{category}' does not exist")
        if instance not in self.categories[category] or instance in self.refused:
            raise CounterError(f"Instance '{instance}' does not exist in category '{category}'")
        handle = FakeCounterHandle(self, category, counter, instance)
        self.handles.append(handle)
        return handle

    def set_values(self, category: str, counter: str, instance: str, values: List[float]) -> None:
        self.values[(category, counter, instance)] = list(values)

    def remove_instance(self, category: str, instance: str) -> None:
        self.categories[category].remove(instance)

    def add_instance(self, category: str, instance: str) -> None:
        self.categories.setdefault(category, []).append(instance)

    def live_handles(self) -> List[FakeCounterHandle]:
        return [h for h in self.handles if not h.closed]


@pytest.fixture
def fake_provider():
    """An empty in-memory counter provider."""
    return FakeCounterProvider()


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def appcmd_output():
    """Typical worker-process listing output with surrounding noise."""
    return (
        "Listing worker processes...\r\n"
        'WP "1204" (applicationPool:DefaultAppPool)\r\n'
        'WP "4821" (applicationPool:ShopPool)\r\n'
        'WP "5100" (applicationPool:ShopPoolV2)\r\n'
        "\r\n"
    )


@pytest.fixture
def sample_config_data():
    """Sample configuration data for testing."""
    return {
        "monitor": {
            "interval_seconds": 5.0,
            "listing_command": "appcmd list WP",
            "listing_timeout": 10.0,
            "revalidate_interval": 0.0,
            "worker_process_name": "w3wp",
            "pid_suffixed_categories": [".NET Data Provider for SqlServer"],
        },
        "output": {
            "channel": "log",
        },
        "targets": [
            {
                "key": "system.cpu",
                "category": "Processor",
                "counter": "% Processor Time",
                "instance": "_Total",
            },
            {
                "key": "web.shop.cpu",
                "category": "Process",
                "counter": "% Processor Time",
                "app_pool": "ShopPool",
                "interval_seconds": 2.0,
            },
        ],
    }


@pytest.fixture
def config_file(temp_dir, sample_config_data):
    """Write the sample configuration to a temporary config.toml."""
    import toml

    config_path = temp_dir / "config.toml"
    with open(config_path, "w") as f:
        toml.dump(sample_config_data, f)
    return config_path


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    yield

    from countermon.config import clear_config_cache

    clear_config_cache()
