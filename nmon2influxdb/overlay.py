"""Configuration resolution.

This module provides the single entrypoint for configuration resolution:
resolve_config(). Values are merged in the following order, later sources
winning:

1. built-in defaults
2. configuration file
3. command line flags

Dashboard connection parameters are the exception: when a dashboard build is
requested they are always taken from the configuration file or the defaults,
never from the command line.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from nmon2influxdb.config_file import load_config_file
from nmon2influxdb.settings import Config, default_config

logger = logging.getLogger(__name__)

# CLI flag name -> Config fields it sets
CLI_FLAGS: dict[str, tuple[str, ...]] = {
    "metric": ("metric",),
    "statshost": ("stats_host",),
    "from": ("stats_from",),
    "to": ("stats_to",),
    "limit": ("stats_limit",),
    "filter": ("stats_filter", "list_filter"),
    "nodisks": ("import_skip_disks",),
    "cpus": ("import_all_cpus",),
    "build": ("import_build_dashboard",),
    "skip_metrics": ("import_skip_metrics",),
    "log_database": ("import_log_database",),
    "log_retention": ("import_log_retention",),
    "file": ("dashboard_write_file",),
    "force": ("import_force",),
    "host": ("list_host",),
    "guser": ("grafana_user",),
    "gpassword": ("grafana_password",),
    "gaccess": ("grafana_access",),
    "gurl": ("grafana_url",),
    "datasource": ("grafana_datasource",),
    "hmc": ("hmc_server",),
    "hmcuser": ("hmc_user",),
    "hmcpass": ("hmc_password",),
    "managed_system": ("hmc_managed_system",),
    "managed_system-only": ("hmc_managed_system_only",),
    "samples": ("hmc_samples",),
    # global flags
    "debug": ("debug",),
    "server": ("influxdb_server",),
    "user": ("influxdb_user",),
    "port": ("influxdb_port",),
    "db": ("influxdb_database",),
    "pass": ("influxdb_password",),
    "tz": ("timezone",),
}

# Flags applied only when explicitly given on the command line (value not None)
SET_IF_PROVIDED = frozenset({"cpus"})

DASHBOARD_FIELDS = (
    "grafana_access",
    "grafana_url",
    "grafana_datasource",
    "grafana_user",
    "grafana_password",
)


def resolve_file_config(cfgfile: Path | None = None) -> Config:
    """Resolve defaults and configuration file settings.

    Generates the configuration file from the defaults when it is missing.

    Raises:
        ConfigFileError: If the configuration file cannot be created or read.
    """
    return load_config_file(default_config(), cfgfile)


def apply_cli_overrides(config: Config, cli_overrides: Mapping[str, Any]) -> Config:
    """Apply command line values over a configuration.

    Every flag present in ``cli_overrides`` wins, including empty or false
    values. Flags listed in ``SET_IF_PROVIDED`` are skipped when their value
    is None.

    Args:
        config: File resolved configuration.
        cli_overrides: Mapping of CLI flag name to its value.

    Returns:
        New configuration with the command line values applied.

    Raises:
        ValidationError: If a value does not match the configuration field type.
    """
    updates: dict[str, Any] = {}
    for flag, value in cli_overrides.items():
        fields = CLI_FLAGS.get(flag)
        if fields is None:
            logger.debug("Ignoring unknown command line flag '%s'", flag)
            continue
        if flag in SET_IF_PROVIDED and value is None:
            continue
        for field in fields:
            updates[field] = value

    if not updates:
        return config

    return Config.model_validate({**config.model_dump(), **updates})


def add_dashboard_params(config: Config, cfgfile: Path | None = None) -> Config:
    """Re-resolve dashboard parameters from the defaults and configuration file.

    Args:
        config: Configuration whose dashboard parameters are discarded.
        cfgfile: Configuration file path. Looked up when not provided.

    Returns:
        New configuration with dashboard parameters from a fresh resolution.
    """
    fresh = resolve_file_config(cfgfile)
    logger.debug("Using dashboard parameters from configuration file")
    return config.model_copy(
        update={field: getattr(fresh, field) for field in DASHBOARD_FIELDS}
    )


def resolve_config(
    cli_overrides: Mapping[str, Any] | None = None, cfgfile: Path | None = None
) -> Config:
    """Resolve the configuration of a run.

    Args:
        cli_overrides: Mapping of CLI flag name to its value. Flags absent from
            the mapping are not applied.
        cfgfile: Configuration file path. Looked up when not provided.

    Returns:
        Fully resolved, immutable configuration.

    Raises:
        ConfigFileError: If the configuration file cannot be created or read.
        ValidationError: If a command line value has the wrong type.
    """
    config = resolve_file_config(cfgfile)
    config = apply_cli_overrides(config, cli_overrides or {})

    if config.import_build_dashboard:
        config = add_dashboard_params(config, cfgfile)

    return config
