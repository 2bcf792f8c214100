"""Shared pytest fixtures and configuration."""

import pytest
import tempfile
from pathlib import Path

from nmon2influxdb import constants


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def home_dir(temp_dir, monkeypatch):
    """Isolate the user environment: home directory, login name, system config."""
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("LOGNAME", "nmonuser")
    monkeypatch.setattr(
        constants, "SYSTEM_CONFIG_FILE", str(temp_dir / "etc" / "nmon2influxdb.cfg")
    )
    return home


@pytest.fixture
def cfgfile(home_dir):
    """Path of the user configuration file inside the isolated home."""
    return home_dir / ".nmon2influxdb.cfg"


@pytest.fixture
def sample_config_text():
    """Sample configuration file overriding a few settings."""
    return """\
influxdb_server = "influx.example.com"
influxdb_port = 9086
import_all_cpus = true
import_data_retention = "30d"
grafana_URL = "http://grafana.example.com:3000"
grafana_user = "grafana-file-user"

[[input]]
measurement = "PROCESSES"
name = "oracle"
match = "ora_"

  [[input.tag]]
  name = "app"
  value = "database"

  [[input.tag]]
  name = "env"
  value = "prod"
"""


class FakeInfluxDBServer:
    """In-memory InfluxDB recording every operation issued by clients."""

    def __init__(self):
        # database -> policy name -> (duration, default)
        self.databases: dict[str, dict[str, tuple[str, bool]]] = {}
        self.calls: list[tuple] = []

    def connect(self, config, database):
        self.calls.append(("connect", database))
        return FakeInfluxDBClient(self, database)

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]


class FakeInfluxDBClient:
    """Client bound to a database of a FakeInfluxDBServer."""

    def __init__(self, server: FakeInfluxDBServer, database: str):
        self.server = server
        self.database = database

    def exist_db(self, name):
        self.server.calls.append(("exist_db", name))
        return name in self.server.databases

    def create_db(self, name):
        self.server.calls.append(("create_db", name))
        # InfluxDB creates an "autogen" default policy with infinite duration
        self.server.databases.setdefault(name, {"autogen": ("0s", True)})

    def get_default_retention_policy(self):
        self.server.calls.append(("get_default_retention_policy", self.database))
        for name, (_, default) in self.server.databases[self.database].items():
            if default:
                return name
        raise AssertionError("no default retention policy")

    def _set_default(self, policies, name, default):
        if default:
            for other, (duration, _) in policies.items():
                policies[other] = (duration, False)

    def set_retention_policy(self, name, duration, default):
        self.server.calls.append(("set_retention_policy", name, duration, default))
        policies = self.server.databases[self.database]
        self._set_default(policies, name, default)
        policies[name] = (duration, default)

    def update_retention_policy(self, name, duration, default):
        self.server.calls.append(("update_retention_policy", name, duration, default))
        policies = self.server.databases[self.database]
        if name not in policies:
            raise AssertionError(f"retention policy {name} not found")
        self._set_default(policies, name, default)
        policies[name] = (duration, default)


@pytest.fixture
def influxdb_server():
    """Fake InfluxDB server whose connect method acts as connection factory."""
    return FakeInfluxDBServer()
