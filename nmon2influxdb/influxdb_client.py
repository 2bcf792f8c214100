"""HTTP client for the InfluxDB 1.x query API."""

import json
import logging
from typing import Any

import requests

from nmon2influxdb.constants import (
    INFLUXDB_CONNECTION_TIMEOUT,
    RETENTION_POLICY_REPLICATION,
    USER_AGENT,
)
from nmon2influxdb.settings import Config

logger = logging.getLogger(__name__)


class InfluxDBError(requests.RequestException):
    """Exception raised when InfluxDB rejects a request or a statement."""


def quote_identifier(name: str) -> str:
    """Quote an InfluxQL identifier."""
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class InfluxDBClient:
    """HTTP client bound to a single InfluxDB database.

    This class encapsulates all HTTP communication with the InfluxDB server:
    database existence checks, creation and retention policy management.
    """

    def __init__(
        self,
        host: str,
        port: str,
        database: str,
        user: str,
        password: str,
        debug: bool = False,
        connection_timeout: int = INFLUXDB_CONNECTION_TIMEOUT,
    ):
        """Initialize the InfluxDB client.

        Args:
            host: InfluxDB server host name
            port: InfluxDB HTTP API port
            database: Database the client operates on
            user: InfluxDB user
            password: InfluxDB password
            debug: Log every statement and raw response
            connection_timeout: HTTP request timeout in seconds
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.debug = debug
        self.connection_timeout = connection_timeout

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def _session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({"User-Agent": USER_AGENT})
        if self.user:
            session.auth = (self.user, self.password)
        return session

    def ping(self) -> None:
        """Check that the InfluxDB server answers.

        Raises:
            requests.RequestException: If the server cannot be reached.
        """
        with self._session() as s:
            response = s.get(
                url=f"{self.url}/ping", timeout=self.connection_timeout
            )

        if response.status_code != 204:
            logger.error(
                "Ping failed, response: %d: %s", response.status_code, response.text
            )
            raise InfluxDBError(
                f"InfluxDB ping failed with response code: {response.status_code}"
                f" and text: {response.text}",
            )
        logger.debug(
            "Connected to InfluxDB %s (version %s)",
            self.url,
            response.headers.get("X-Influxdb-Version", "unknown"),
        )

    def query(self, statement: str) -> list[dict[str, Any]]:
        """Run an InfluxQL statement.

        Args:
            statement: InfluxQL statement to execute.

        Returns:
            The series returned for the statement.

        Raises:
            requests.RequestException: If the request fails or InfluxDB
                reports an error for the statement.
        """
        if self.debug:
            logger.debug("Executing query: %s", statement)

        with self._session() as s:
            response = s.post(
                url=f"{self.url}/query",
                params={"db": self.database},
                data={"q": statement},
                timeout=self.connection_timeout,
            )

        if self.debug:
            logger.debug("Response: %s", pretty_json(response.text))

        if not 200 <= response.status_code < 300:
            logger.error(
                "Query failed, response: %d: %s", response.status_code, response.text
            )
            raise InfluxDBError(
                f"Query failed with response code: {response.status_code}"
                f" and text: {response.text}",
            )

        results = response.json().get("results", [])
        if not results:
            return []

        result = results[0]
        if "error" in result:
            raise InfluxDBError(f"Query '{statement}' failed: {result['error']}")

        return result.get("series", [])

    def exist_db(self, name: str) -> bool:
        """Check if a database exists."""
        for series in self.query("SHOW DATABASES"):
            for row in series.get("values") or []:
                if row and row[0] == name:
                    return True
        return False

    def create_db(self, name: str) -> None:
        """Create a database."""
        self.query(f"CREATE DATABASE {quote_identifier(name)}")

    def get_default_retention_policy(self) -> str:
        """Get the name of the default retention policy of the database.

        Raises:
            InfluxDBError: If the database has no default retention policy.
        """
        for series in self.query(
            f"SHOW RETENTION POLICIES ON {quote_identifier(self.database)}"
        ):
            columns = series.get("columns", [])
            for row in series.get("values") or []:
                policy = dict(zip(columns, row))
                if policy.get("default"):
                    return policy["name"]

        raise InfluxDBError(
            f"No default retention policy found on database {self.database}"
        )

    def _retention_policy_clause(self, name: str, duration: str) -> str:
        return (
            f"RETENTION POLICY {quote_identifier(name)} "
            f"ON {quote_identifier(self.database)} DURATION {duration}"
        )

    def set_retention_policy(self, name: str, duration: str, default: bool) -> None:
        """Create a retention policy on the database."""
        statement = (
            f"CREATE {self._retention_policy_clause(name, duration)}"
            f" REPLICATION {RETENTION_POLICY_REPLICATION}"
        )
        if default:
            statement += " DEFAULT"
        self.query(statement)

    def update_retention_policy(
        self, name: str, duration: str, default: bool
    ) -> None:
        """Alter the duration of an existing retention policy on the database."""
        statement = f"ALTER {self._retention_policy_clause(name, duration)}"
        if default:
            statement += " DEFAULT"
        self.query(statement)


def pretty_json(contents: str) -> str:
    """Indent a JSON document, returning it unchanged when it is not JSON."""
    try:
        return json.dumps(json.loads(contents), indent="\t")
    except ValueError as e:
        logger.debug("JSON parse error: %s", e)
        return contents


def connect_db(config: Config, database: str) -> InfluxDBClient:
    """Connect to the specified InfluxDB database.

    Args:
        config: Configuration holding the connection settings.
        database: Database the returned client operates on.

    Returns:
        Connected client.

    Raises:
        requests.RequestException: If the server cannot be reached.
    """
    client = InfluxDBClient(
        host=config.influxdb_server,
        port=config.influxdb_port,
        database=database,
        user=config.influxdb_user,
        password=config.influxdb_password,
        debug=config.debug,
    )
    client.ping()
    return client
