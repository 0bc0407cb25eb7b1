"""
countermon: polling of performance counters with unstable instance names.

Counter instance names for a logical target (an application pool worker,
a database driver connection pool) change whenever the underlying process
restarts. This package resolves logical names to the current concrete
instance, binds to it, samples it, and transparently rebinds when the
binding becomes invalid.

The package is organized into specialized modules:
- config: Configuration management and validation
- models: Data structures and type definitions
- validation: Error taxonomy, validation and error handling
- system: External command execution and process lookups
- counters: Counter subsystem interface, resolution, bindings and listeners
- monitoring: Polling loop driving the configured targets
- channels: Destinations for sampled values
- cli: Command-line interface

Usage:
    From command line:
        countermon --config conf/config.toml run

    Programmatically:
        from countermon import CounterBinding, InstanceResolver, PsutilCounterProvider
        provider = PsutilCounterProvider()
        with CounterBinding("Process", "% Processor Time", "python",
                            provider, InstanceResolver(provider)) as binding:
            binding.open()
            value = binding.sample()
"""

from .config import clear_config_cache, get_config, set_config_path

from .models import (
    AppConfig,
    BindingState,
    LogicalTarget,
    MonitorConfig,
    OutputConfig,
    ProcessRecord,
)

from .validation import (
    CounterError,
    CounterInvalidError,
    ProcessListingError,
    ResolutionError,
    ValidationError,
)

from .counters import (
    AbstractCounterHandle,
    AbstractCounterProvider,
    CounterBinding,
    InstanceResolver,
    PsutilCounterProvider,
    TargetListener,
)
from .system import ProcessDirectory, run_command
from .monitoring import PollingMonitor
from .channels import LoggingChannel, MetricsChannel, ParquetChannel, create_channel

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "get_config",
    "clear_config_cache",
    "set_config_path",
    # Models
    "AppConfig",
    "BindingState",
    "LogicalTarget",
    "MonitorConfig",
    "OutputConfig",
    "ProcessRecord",
    # Errors
    "CounterError",
    "CounterInvalidError",
    "ProcessListingError",
    "ResolutionError",
    "ValidationError",
    # Counters
    "AbstractCounterHandle",
    "AbstractCounterProvider",
    "CounterBinding",
    "InstanceResolver",
    "PsutilCounterProvider",
    "TargetListener",
    # System
    "ProcessDirectory",
    "run_command",
    # Monitoring
    "PollingMonitor",
    # Channels
    "LoggingChannel",
    "MetricsChannel",
    "ParquetChannel",
    "create_channel",
]
