"""Configuration models for nmon2influxdb."""

import getpass
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from nmon2influxdb import constants


class Tag(BaseModel):
    """Tag attached to measurements matched by an input rule."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    name: str = ""
    value: str = ""


class Input(BaseModel):
    """Filtering rule loaded from the configuration file."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    measurement: str = ""
    name: str = ""
    match: str = ""
    tags: list[Tag] = []


class Config(BaseModel):
    """Resolved nmon2influxdb configuration.

    Settings are immutable once resolved. Each resolution stage builds a new
    instance instead of updating fields in place.
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    debug: bool = False
    timezone: str = constants.DEFAULT_TIMEZONE

    # InfluxDB connection
    influxdb_server: str = constants.DEFAULT_INFLUXDB_SERVER
    influxdb_port: str = constants.DEFAULT_INFLUXDB_PORT
    influxdb_user: str = constants.DEFAULT_INFLUXDB_USER
    influxdb_password: str = constants.DEFAULT_INFLUXDB_PASSWORD
    influxdb_database: str = constants.DEFAULT_INFLUXDB_DATABASE

    # Grafana dashboard
    grafana_user: str = constants.DEFAULT_GRAFANA_USER
    grafana_password: str = constants.DEFAULT_GRAFANA_PASSWORD
    grafana_url: str = constants.DEFAULT_GRAFANA_URL
    grafana_access: str = constants.DEFAULT_GRAFANA_ACCESS
    grafana_datasource: str = constants.DEFAULT_GRAFANA_DATASOURCE
    dashboard_write_file: bool = False

    # HMC collection
    hmc_server: str = ""
    hmc_user: str = constants.DEFAULT_HMC_USER
    hmc_password: str = constants.DEFAULT_HMC_PASSWORD
    hmc_database: str = constants.DEFAULT_HMC_DATABASE
    hmc_data_retention: str = ""
    hmc_managed_system: str = ""
    hmc_managed_system_only: bool = False
    hmc_samples: int = 0

    # nmon import
    import_skip_disks: bool = False
    import_all_cpus: bool = False
    import_build_dashboard: bool = False
    import_force: bool = False
    import_skip_metrics: str = constants.DEFAULT_IMPORT_SKIP_METRICS
    import_log_database: str = constants.DEFAULT_IMPORT_LOG_DATABASE
    import_log_retention: str = constants.DEFAULT_IMPORT_LOG_RETENTION
    import_data_retention: str = ""
    import_ssh_user: str = ""
    import_ssh_key: str = ""

    # stats and list reports
    stats_limit: int = constants.DEFAULT_STATS_LIMIT
    stats_sort: str = constants.DEFAULT_STATS_SORT
    stats_filter: str = ""
    stats_from: str = ""
    stats_to: str = ""
    stats_host: str = ""
    metric: str = ""
    list_filter: str = ""
    list_host: str = ""

    inputs: list[Input] = []


def default_config() -> Config:
    """Build the baseline configuration.

    The SSH user and key path are derived from the current user when called.

    Returns:
        Config with built-in defaults
    """
    return Config(
        import_ssh_user=getpass.getuser(),
        import_ssh_key=str(Path.home() / ".ssh" / "id_rsa"),
    )
