"""
Configuration validation utilities.

This module turns the raw TOML tables into validated configuration
dataclasses: monitor settings, output settings and logical targets.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from ..models.config import (
    DEFAULT_LISTING_COMMAND,
    DEFAULT_PID_SUFFIXED_CATEGORIES,
    MonitorConfig,
    OutputConfig,
)
from ..models.targets import LogicalTarget
from ..validation import (
    ValidationError,
    validate_enum_choice,
    validate_metric_key,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_string_list,
)

logger = logging.getLogger(__name__)


def validate_monitor_config(monitor_data: Dict[str, Any]) -> MonitorConfig:
    """
    Validate and create a MonitorConfig from the ``[monitor]`` table.

    Raises:
        ValidationError: If validation fails
    """
    interval_seconds = validate_positive_float(
        monitor_data.get("interval_seconds", 10.0),
        min_value=0.01,
        max_value=86400.0,
        field_name="monitor.interval_seconds",
    )

    listing_command = validate_non_empty_string(
        monitor_data.get("listing_command", DEFAULT_LISTING_COMMAND),
        field_name="monitor.listing_command",
    )

    listing_timeout = validate_positive_float(
        monitor_data.get("listing_timeout", 30.0),
        min_value=0.1,
        max_value=600.0,
        field_name="monitor.listing_timeout",
    )

    revalidate_interval = validate_positive_float(
        monitor_data.get("revalidate_interval", 0.0),
        min_value=0.0,
        max_value=86400.0,
        field_name="monitor.revalidate_interval",
    )

    worker_process_name = validate_non_empty_string(
        monitor_data.get("worker_process_name", "w3wp"),
        field_name="monitor.worker_process_name",
    )

    pid_suffixed_categories = validate_string_list(
        monitor_data.get("pid_suffixed_categories", list(DEFAULT_PID_SUFFIXED_CATEGORIES)),
        field_name="monitor.pid_suffixed_categories",
    )

    return MonitorConfig(
        interval_seconds=interval_seconds,
        listing_command=listing_command,
        listing_timeout=listing_timeout,
        revalidate_interval=revalidate_interval,
        worker_process_name=worker_process_name,
        pid_suffixed_categories=pid_suffixed_categories,
    )


def validate_output_config(output_data: Dict[str, Any]) -> OutputConfig:
    """
    Validate and create an OutputConfig from the ``[output]`` table.

    Raises:
        ValidationError: If validation fails
    """
    channel = validate_enum_choice(
        output_data.get("channel", "log"),
        valid_choices=["log", "parquet"],
        field_name="output.channel",
    )

    parquet_path = Path(
        validate_non_empty_string(
            output_data.get("parquet_path", "samples.parquet"),
            field_name="output.parquet_path",
        )
    )

    flush_every = validate_positive_integer(
        output_data.get("flush_every", 100),
        min_value=1,
        max_value=1_000_000,
        field_name="output.flush_every",
    )

    return OutputConfig(channel=channel, parquet_path=parquet_path, flush_every=flush_every)


def validate_target(
    target_data: Dict[str, Any], index: int, default_interval: float
) -> LogicalTarget:
    """
    Validate one ``[[targets]]`` entry.

    Exactly one of ``instance`` and ``app_pool`` must be given.

    Raises:
        ValidationError: If validation fails
    """
    prefix = f"targets[{index}]"
    if not isinstance(target_data, dict):
        raise ValidationError(f"{prefix} must be a table", field_name=prefix, value=target_data)

    key = validate_metric_key(target_data.get("key"), field_name=f"{prefix}.key")
    category = validate_non_empty_string(target_data.get("category"), field_name=f"{prefix}.category")
    counter = validate_non_empty_string(target_data.get("counter"), field_name=f"{prefix}.counter")

    has_instance = "instance" in target_data
    has_app_pool = "app_pool" in target_data
    if has_instance == has_app_pool:
        raise ValidationError(
            f"{prefix} must set exactly one of 'instance' or 'app_pool'",
            field_name=prefix,
            value=target_data,
        )

    instance = None
    app_pool = None
    if has_instance:
        instance = validate_non_empty_string(target_data["instance"], field_name=f"{prefix}.instance")
    else:
        app_pool = validate_non_empty_string(target_data["app_pool"], field_name=f"{prefix}.app_pool")

    interval_seconds = validate_positive_float(
        target_data.get("interval_seconds", default_interval),
        min_value=0.01,
        max_value=86400.0,
        field_name=f"{prefix}.interval_seconds",
    )

    return LogicalTarget(
        key=key,
        category=category,
        counter=counter,
        instance=instance,
        app_pool=app_pool,
        interval_seconds=interval_seconds,
    )


def validate_targets_config(
    targets_data: List[Dict[str, Any]], default_interval: float
) -> List[LogicalTarget]:
    """
    Validate the list of targets and check that keys are unique.

    Raises:
        ValidationError: If validation fails
    """
    targets = [
        validate_target(target_data, i, default_interval)
        for i, target_data in enumerate(targets_data)
    ]

    seen = set()
    for target in targets:
        if target.key in seen:
            raise ValidationError(
                f"Duplicate target key '{target.key}'", field_name="targets", value=target.key
            )
        seen.add(target.key)

    logger.debug(f"Validated {len(targets)} targets")
    return targets
