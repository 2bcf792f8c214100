# Configuration file locations
SYSTEM_CONFIG_FILE = "/etc/nmon2influxdb/nmon2influxdb.cfg"
USER_CONFIG_FILENAME = ".nmon2influxdb.cfg"

# InfluxDB retention policy created and owned for the log database
LOG_RETENTION_POLICY = "log_retention"
RETENTION_POLICY_REPLICATION = 1

# Timing constants (in seconds)
INFLUXDB_CONNECTION_TIMEOUT = 30

USER_AGENT = "nmon2influxdb"

# Built-in configuration defaults
DEFAULT_TIMEZONE = "Europe/Paris"
DEFAULT_INFLUXDB_SERVER = "localhost"
DEFAULT_INFLUXDB_PORT = "8086"
DEFAULT_INFLUXDB_USER = "root"
DEFAULT_INFLUXDB_PASSWORD = "root"
DEFAULT_INFLUXDB_DATABASE = "nmon_reports"

DEFAULT_HMC_USER = "hscroot"
DEFAULT_HMC_PASSWORD = "abc123"
DEFAULT_HMC_DATABASE = "nmon2influxdbHMC"

DEFAULT_GRAFANA_USER = "admin"
DEFAULT_GRAFANA_PASSWORD = "admin"
DEFAULT_GRAFANA_URL = "http://localhost:3000"
DEFAULT_GRAFANA_ACCESS = "direct"
DEFAULT_GRAFANA_DATASOURCE = "nmon2influxdb"

DEFAULT_IMPORT_SKIP_METRICS = "JFSINODE|TOP|PCPU"
DEFAULT_IMPORT_LOG_DATABASE = "nmon2influxdb_log"
DEFAULT_IMPORT_LOG_RETENTION = "2d"

DEFAULT_STATS_LIMIT = 20
DEFAULT_STATS_SORT = "mean"
