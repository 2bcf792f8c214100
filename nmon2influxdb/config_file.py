"""Persisted configuration file handling.

The configuration file is a TOML document with one scalar key per
configuration field plus repeatable ``[[input]]`` tables holding filtering
rules, each with its own ``[[input.tag]]`` tables.
Field names are mapped to file keys through the explicit tables below so the
configuration model stays independent from its textual representation.
"""

import datetime
import logging
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import ValidationError

from nmon2influxdb import constants
from nmon2influxdb.settings import Config

logger = logging.getLogger(__name__)

# Config field -> configuration file key
CONFIG_FILE_KEYS: dict[str, str] = {
    "debug": "debug",
    "timezone": "timezone",
    "influxdb_user": "influxdb_user",
    "influxdb_password": "influxdb_password",
    "influxdb_server": "influxdb_server",
    "influxdb_port": "influxdb_port",
    "influxdb_database": "influxdb_database",
    "grafana_user": "grafana_user",
    "grafana_password": "grafana_password",
    "grafana_url": "grafana_URL",
    "grafana_access": "grafana_access",
    "grafana_datasource": "grafana_datasource",
    "hmc_server": "hmc_server",
    "hmc_user": "hmc_user",
    "hmc_password": "hmc_password",
    "hmc_database": "hmc_database",
    "hmc_data_retention": "hmc_data_retention",
    "hmc_managed_system": "hmc_managed_system",
    "hmc_managed_system_only": "hmc_managed_system_only",
    "hmc_samples": "hmc_samples",
    "import_skip_disks": "import_skip_disks",
    "import_all_cpus": "import_all_cpus",
    "import_build_dashboard": "import_build_dashboard",
    "import_force": "import_force",
    "import_skip_metrics": "import_skip_metrics",
    "import_log_database": "import_log_database",
    "import_log_retention": "import_log_retention",
    "import_data_retention": "import_data_retention",
    "import_ssh_user": "import_ssh_user",
    "import_ssh_key": "import_ssh_key",
    "dashboard_write_file": "dashboard_write_file",
    "stats_limit": "stats_limit",
    "stats_sort": "stats_sort",
    "stats_filter": "stats_filter",
    "stats_from": "stats_from",
    "stats_to": "stats_to",
    "stats_host": "stats_host",
    "metric": "metric",
    "list_filter": "list_filter",
    "list_host": "list_host",
}

# Keys left out of the written file when their value is empty
OMIT_WHEN_EMPTY = frozenset({"metric", "list_filter", "list_host"})

INPUTS_KEY = "input"
INPUT_KEYS: dict[str, str] = {
    "measurement": "measurement",
    "name": "name",
    "match": "match",
}

TAGS_KEY = "tag"
TAG_KEYS: dict[str, str] = {
    "name": "name",
    "value": "value",
}


class ConfigFileError(Exception):
    """Exception raised when the configuration file cannot be written or read."""


def is_file(path: Path) -> bool:
    """Check that a regular file exists at the given path."""
    try:
        return path.is_file()
    except OSError:
        return False


def get_config_file_path() -> Path:
    """Get the configuration file path.

    The system-wide file is used when it exists, otherwise the dot-file in
    the current user's home directory.

    Returns:
        Path of the configuration file
    """
    system_file = Path(constants.SYSTEM_CONFIG_FILE)
    if is_file(system_file):
        return system_file

    return Path.home() / constants.USER_CONFIG_FILENAME


def _dump_fields(values: dict[str, Any], keys: dict[str, str]) -> dict[str, Any]:
    return {key: values[field] for field, key in keys.items()}


def _file_value(value: Any) -> Any:
    # unquoted dates are TOML values of their own, settings keep them as text
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return value


def _load_fields(document: dict[str, Any], keys: dict[str, str]) -> dict[str, Any]:
    return {
        field: _file_value(document[key])
        for field, key in keys.items()
        if document.get(key) is not None
    }


def config_to_document(config: Config) -> dict[str, Any]:
    """Convert a configuration into its file representation.

    Args:
        config: Configuration to convert.

    Returns:
        Mapping of file keys ready to be serialized.
    """
    values = config.model_dump()
    document = {
        key: value
        for key, value in _dump_fields(values, CONFIG_FILE_KEYS).items()
        if not (key in OMIT_WHEN_EMPTY and value == "")
    }

    inputs = []
    for input_values in values["inputs"]:
        entry = _dump_fields(input_values, INPUT_KEYS)
        if input_values["tags"]:
            entry[TAGS_KEY] = [
                _dump_fields(tag_values, TAG_KEYS)
                for tag_values in input_values["tags"]
            ]
        inputs.append(entry)
    if inputs:
        document[INPUTS_KEY] = inputs

    return document


def document_to_updates(document: dict[str, Any]) -> dict[str, Any]:
    """Extract configuration field updates from a file document.

    Only keys present in the document produce updates; a key holding no
    value counts as absent.

    Args:
        document: Mapping loaded from the configuration file.

    Returns:
        Mapping of configuration field names to their new values.

    Raises:
        ConfigFileError: If the input rules are not lists of mappings.
    """
    known_keys = set(CONFIG_FILE_KEYS.values()) | {INPUTS_KEY}
    for key in document:
        if key not in known_keys:
            logger.debug("Ignoring unknown configuration key '%s'", key)

    updates = _load_fields(document, CONFIG_FILE_KEYS)

    if INPUTS_KEY in document:
        inputs = []
        for entry in _as_list_of_mappings(document[INPUTS_KEY], INPUTS_KEY):
            input_values = _load_fields(entry, INPUT_KEYS)
            input_values["tags"] = [
                _load_fields(tag, TAG_KEYS)
                for tag in _as_list_of_mappings(entry.get(TAGS_KEY), TAGS_KEY)
            ]
            inputs.append(input_values)
        updates["inputs"] = inputs

    return updates


def _as_list_of_mappings(value: Any, key: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise ConfigFileError(f"'{key}' entries must be a list of tables")
    return value


def build_config_file(config: Config, cfgfile: Path) -> None:
    """Write a configuration file from the given configuration.

    Args:
        config: Configuration to persist, usually the built-in defaults.
        cfgfile: Path of the file to create.

    Raises:
        ConfigFileError: If the file cannot be written.
    """
    document = config_to_document(config)
    try:
        with open(cfgfile, "wb") as f:
            tomli_w.dump(document, f)
    except OSError as e:
        raise ConfigFileError(
            f"Cannot create configuration file {cfgfile}: {e}"
        ) from e

    logger.info("Generating default configuration file : %s", cfgfile)


def load_config_file(base: Config, cfgfile: Path | None = None) -> Config:
    """Load configuration file settings over a base configuration.

    When no configuration file exists yet, one is generated from ``base``
    first. Keys absent from the file keep their value from ``base``.

    Args:
        base: Configuration providing values for keys absent from the file.
        cfgfile: Configuration file path. Looked up when not provided.

    Returns:
        New configuration with the file settings applied.

    Raises:
        ConfigFileError: If the file cannot be created, read or parsed.
    """
    if cfgfile is None:
        cfgfile = get_config_file_path()

    if not is_file(cfgfile):
        build_config_file(base, cfgfile)

    logger.debug("Loading configuration from %s", cfgfile)
    try:
        with open(cfgfile, "rb") as f:
            document = tomllib.load(f)
    except OSError as e:
        raise ConfigFileError(f"Error opening configuration file {cfgfile}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigFileError(f"syntax error in configuration file: {e}") from e

    updates = document_to_updates(document)
    try:
        return Config.model_validate({**base.model_dump(), **updates})
    except ValidationError as e:
        raise ConfigFileError(
            "syntax error in configuration file: "
            + "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
        ) from e
