#!/usr/bin/env python3
"""Main entrypoint for nmon2influxdb configuration and database provisioning."""

import argparse
import json
import logging
import sys
from typing import Any, cast

import requests
from pydantic import ValidationError

from nmon2influxdb.config_file import ConfigFileError, get_config_file_path
from nmon2influxdb.overlay import CLI_FLAGS, resolve_config, resolve_file_config
from nmon2influxdb.provisioner import Role, ensure_database
from nmon2influxdb.settings import Config


class Args(argparse.Namespace):
    command: str
    role: list[str] | None
    log_level: str
    rich_logs: bool
    debug: bool


logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="INFO",
        help="Set the logging level",
    )

    parser.add_argument(
        "--rich-logs",
        action="store_true",
        help="Enable rich colored logging output",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug mode, logs every InfluxDB statement (implies --log-level DEBUG)",
    )


def add_global_arguments(parser: argparse.ArgumentParser, defaults: Config) -> None:
    parser.add_argument(
        "--server", default=defaults.influxdb_server, help="InfluxDB server"
    )
    parser.add_argument("--user", default=defaults.influxdb_user, help="InfluxDB user")
    parser.add_argument(
        "--pass", default=defaults.influxdb_password, help="InfluxDB password"
    )
    parser.add_argument("--port", default=defaults.influxdb_port, help="InfluxDB port")
    parser.add_argument(
        "--db", default=defaults.influxdb_database, help="InfluxDB database for nmon data"
    )
    parser.add_argument("--tz", default=defaults.timezone, help="Timezone")


def add_command_arguments(parser: argparse.ArgumentParser, defaults: Config) -> None:
    """Declare the flags shared by every command.

    Defaults come from the file resolved configuration so an unset flag keeps
    the configured value. ``--cpus`` has no default to keep its absence
    visible.
    """
    imports = parser.add_argument_group("import")
    imports.add_argument(
        "--nodisks", action="store_true", help="Skip disk metrics"
    )
    imports.add_argument(
        "--cpus",
        action="store_true",
        default=None,
        help="Import all CPU metrics (default from configuration file)",
    )
    imports.add_argument(
        "--build", action="store_true", help="Build dashboard after import"
    )
    imports.add_argument(
        "--force", action="store_true", help="Force import of already imported data"
    )
    imports.add_argument(
        "--skip_metrics",
        default=defaults.import_skip_metrics,
        help="Skip metrics matching this regular expression",
    )
    imports.add_argument(
        "--log_database",
        default=defaults.import_log_database,
        help="InfluxDB database used to log imports",
    )
    imports.add_argument(
        "--log_retention",
        default=defaults.import_log_retention,
        help="Retention of the log database",
    )

    dashboard = parser.add_argument_group("dashboard")
    dashboard.add_argument(
        "--file", action="store_true", help="Write the dashboard to a file"
    )
    dashboard.add_argument(
        "--guser", default=defaults.grafana_user, help="Grafana user"
    )
    dashboard.add_argument(
        "--gpassword", default=defaults.grafana_password, help="Grafana password"
    )
    dashboard.add_argument(
        "--gaccess",
        default=defaults.grafana_access,
        help="Grafana datasource access mode",
    )
    dashboard.add_argument("--gurl", default=defaults.grafana_url, help="Grafana URL")
    dashboard.add_argument(
        "--datasource",
        default=defaults.grafana_datasource,
        help="Grafana datasource name",
    )

    stats = parser.add_argument_group("stats")
    stats.add_argument("--metric", default=defaults.metric, help="Metric name")
    stats.add_argument(
        "--statshost", default=defaults.stats_host, help="Host filter for stats"
    )
    stats.add_argument("--from", default=defaults.stats_from, help="Start time")
    stats.add_argument("--to", default=defaults.stats_to, help="End time")
    stats.add_argument(
        "--limit", type=int, default=defaults.stats_limit, help="Number of results"
    )
    stats.add_argument(
        "--filter", default=defaults.stats_filter, help="Filter expression"
    )
    stats.add_argument("--host", default=defaults.list_host, help="Host filter for lists")

    hmc = parser.add_argument_group("hmc")
    hmc.add_argument("--hmc", default=defaults.hmc_server, help="HMC server")
    hmc.add_argument("--hmcuser", default=defaults.hmc_user, help="HMC user")
    hmc.add_argument("--hmcpass", default=defaults.hmc_password, help="HMC password")
    hmc.add_argument(
        "--managed_system",
        default=defaults.hmc_managed_system,
        help="Only collect this managed system",
    )
    hmc.add_argument(
        "--managed_system-only",
        action="store_true",
        help="Only collect managed system metrics, not partitions",
    )
    hmc.add_argument(
        "--samples",
        type=int,
        default=defaults.hmc_samples,
        help="Number of HMC samples to collect",
    )


def build_parser(defaults: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nmon2influxdb",
        description="Resolve nmon2influxdb configuration and provision InfluxDB databases",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_logging_arguments(parser)
    add_global_arguments(parser, defaults)

    command_flags = argparse.ArgumentParser(add_help=False)
    add_command_arguments(command_flags, defaults)

    subparsers = parser.add_subparsers(dest="command", required=True)

    provision = subparsers.add_parser(
        "provision",
        parents=[command_flags],
        help="Create InfluxDB databases and update their retention policies",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    provision.add_argument(
        "--role",
        nargs="+",
        choices=[role.value for role in Role],
        help="Databases to provision (default: main and log, plus secondary when an HMC server is configured)",
    )

    subparsers.add_parser(
        "config",
        parents=[command_flags],
        help="Print the resolved configuration as JSON and exit",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    return parser


def parse_logging_args(argv: list[str] | None = None) -> Args:
    """Parse the logging flags before the configuration file is read."""
    parser = argparse.ArgumentParser(add_help=False, allow_abbrev=False)
    add_logging_arguments(parser)
    args, _ = parser.parse_known_args(argv)
    return cast(Args, args)


def parse_args(defaults: Config, argv: list[str] | None = None) -> Args:
    """Parse command line arguments.

    Args:
        defaults: File resolved configuration providing the flag defaults.
        argv: Arguments to parse, ``sys.argv`` when not provided.
    """
    return cast(Args, build_parser(defaults).parse_args(argv))


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Build the flag name to value mapping consumed by the configuration overlay."""
    values = vars(args)
    return {
        flag: values[flag.replace("-", "_")]
        for flag in CLI_FLAGS
        if flag.replace("-", "_") in values
    }


def configure_logging(log_level: str, use_rich: bool = False) -> None:
    """Configure logging with optional rich formatting.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_rich: Whether to use rich colored logging
    """
    if use_rich:
        from rich.console import Console
        from rich.logging import RichHandler

        logging.basicConfig(
            level=getattr(logging, log_level),
            format="%(message)s",
            datefmt="[%X]",
            handlers=[
                RichHandler(
                    console=Console(stderr=True),
                    show_path=True,
                    show_time=True,
                    show_level=True,
                    markup=True,
                    rich_tracebacks=True,
                )
            ],
        )
    else:
        logging.basicConfig(
            level=getattr(logging, log_level),
            format="%(asctime)s [%(name)s:%(filename)s:%(lineno)d] %(levelname)s: %(message)s",
        )

    # silence libs logging
    # - urllib3 - we don't care about those debug posts
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def select_roles(requested: list[str] | None, config: Config) -> list[Role]:
    """Get the roles to provision, in provisioning order."""
    if requested:
        roles = {Role(role) for role in requested}
    else:
        roles = {Role.MAIN, Role.LOG}
        if config.hmc_server:
            roles.add(Role.SECONDARY)

    return [role for role in Role if role in roles]


def main(argv: list[str] | None = None) -> int:
    """Main function."""
    log_args = parse_logging_args(argv)
    configure_logging(
        "DEBUG" if log_args.debug else log_args.log_level, log_args.rich_logs
    )

    try:
        cfgfile = get_config_file_path()
        args = parse_args(resolve_file_config(cfgfile), argv)
        config = resolve_config(cli_overrides(args), cfgfile)

        if args.command == "config":
            logger.info("Printing resolved configuration from %s", cfgfile)
            print(json.dumps(config.model_dump(), indent=2, sort_keys=True))
            return 0

        for role in select_roles(args.role, config):
            logger.info("Provisioning %s database", role.value)
            ensure_database(role, config)

    except ConfigFileError as e:
        logger.error("Configuration file error: %s", e)
        return 1
    except ValidationError as e:
        logger.error(
            "Invalid config\n"
            + "\n".join(
                [
                    f"{''.join([str(loc) for loc in err['loc']])}: {err['msg']} (got {err['input']})"
                    for err in e.errors()
                ]
            )
        )
        return 1
    except requests.RequestException as e:
        logger.error("InfluxDB error: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Provisioning stopped by user")
        return 0

    logger.info("Provisioning completed")
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
