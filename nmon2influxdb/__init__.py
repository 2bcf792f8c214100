"""Configuration resolution and InfluxDB provisioning for nmon2influxdb."""
