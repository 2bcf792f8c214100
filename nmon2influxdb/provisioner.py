"""Create InfluxDB databases and converge their retention policies.

The main and HMC databases keep whatever default retention policy InfluxDB
created for them; when a retention is configured, that policy is looked up by
name and updated. The log database gets its own ``log_retention`` policy,
created together with the database and updated on later runs.
"""

import logging
from collections.abc import Callable
from enum import Enum

from nmon2influxdb.constants import LOG_RETENTION_POLICY
from nmon2influxdb.influxdb_client import InfluxDBClient, connect_db
from nmon2influxdb.settings import Config

logger = logging.getLogger(__name__)

ConnectFunc = Callable[[Config, str], InfluxDBClient]


class Role(str, Enum):
    """Database targeted by a provisioning call."""

    MAIN = "main"
    SECONDARY = "secondary"
    LOG = "log"


def database_settings(role: Role, config: Config) -> tuple[str, str]:
    """Get the database name and retention literal configured for a role.

    Returns:
        Tuple of (database, retention)
    """
    if role is Role.MAIN:
        return config.influxdb_database, config.import_data_retention
    if role is Role.SECONDARY:
        return config.hmc_database, config.hmc_data_retention
    if role is Role.LOG:
        return config.import_log_database, config.import_log_retention
    raise ValueError(f"Invalid database role: {role}")


class DatabaseProvisioner:
    """Ensure the databases used by nmon2influxdb exist and are configured.

    Every operation is idempotent: running it again with an unchanged
    configuration leaves InfluxDB in the same state.
    """

    def __init__(self, config: Config, connect: ConnectFunc = connect_db) -> None:
        """Initialize the provisioner.

        Args:
            config: Resolved configuration
            connect: Factory returning a client bound to a database
        """
        self.config = config
        self.connect = connect

    def ensure(self, role: Role) -> InfluxDBClient:
        """Create or get the database of the given role.

        Raises:
            requests.RequestException: If any InfluxDB operation fails.
        """
        role = Role(role)
        if role is Role.LOG:
            return self.get_log_db()
        return self.get_db(role)

    def get_db(self, role: Role) -> InfluxDBClient:
        """Create or get the main or HMC database.

        The default retention policy is updated when a retention is configured.
        """
        role = Role(role)
        if role is Role.LOG:
            raise ValueError("The log database is handled by get_log_db()")

        db, retention = database_settings(role, self.config)
        influxdb = self.connect(self.config, db)

        if not influxdb.exist_db(db):
            logger.info("Creating InfluxDB database %s", db)
            influxdb.create_db(db)

        if retention:
            policy_name = influxdb.get_default_retention_policy()
            logger.info(
                "Updating %s retention policy to keep only the last %s. Timestamp based.",
                policy_name,
                retention,
            )
            influxdb.update_retention_policy(policy_name, retention, True)

        return influxdb

    def get_log_db(self) -> InfluxDBClient:
        """Create or get the log database and its log_retention policy."""
        db, retention = database_settings(Role.LOG, self.config)
        influxdb = self.connect(self.config, db)

        if not influxdb.exist_db(db):
            logger.info("Creating InfluxDB log database %s", db)
            influxdb.create_db(db)
            influxdb.set_retention_policy(LOG_RETENTION_POLICY, retention, True)
        else:
            logger.debug(
                "Updating %s retention policy on %s to %s",
                LOG_RETENTION_POLICY,
                db,
                retention,
            )
            influxdb.update_retention_policy(LOG_RETENTION_POLICY, retention, True)

        return influxdb


def ensure_database(
    role: Role, config: Config, connect: ConnectFunc = connect_db
) -> InfluxDBClient:
    """Create or get the database of a role and converge its retention policy.

    Args:
        role: Database role
        config: Resolved configuration
        connect: Factory returning a client bound to a database

    Returns:
        Client bound to the database, for reuse by the caller.

    Raises:
        requests.RequestException: If any InfluxDB operation fails.
    """
    return DatabaseProvisioner(config, connect).ensure(role)
