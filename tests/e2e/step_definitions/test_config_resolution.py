"""Step definitions for configuration resolution scenarios."""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest
from pytest_bdd import given, when, then, scenarios, parsers


# Load scenarios from the feature file
scenarios("../features/config_resolution.feature")


@pytest.fixture
def project_root():
    """Get the path to the project root."""
    return Path(__file__).parent.parent.parent.parent


@pytest.fixture
def command_result():
    """Store the result of running a command."""
    return {}


@pytest.fixture
def e2e_home(temp_dir):
    """Home directory used by the nmon2influxdb process."""
    home = temp_dir / "home"
    home.mkdir()
    return home


@pytest.fixture
def e2e_cfgfile(e2e_home):
    return e2e_home / ".nmon2influxdb.cfg"


# Given steps
@given("I have no configuration file")
def no_config_file(e2e_cfgfile):
    """Make sure no configuration file exists."""
    assert not e2e_cfgfile.exists()


@given("I have a config file with content:")
def create_config_file(e2e_cfgfile, docstring):
    """Create the user configuration file with the given content."""
    e2e_cfgfile.write_text(docstring + "\n")


# When steps
@when(parsers.parse('I run nmon2influxdb with args "{args}"'))
def run_nmon2influxdb(project_root, e2e_home, command_result, args):
    """Run the nmon2influxdb entrypoint with the given arguments."""
    env = os.environ.copy()
    env["HOME"] = str(e2e_home)
    env["LOGNAME"] = "nmonuser"

    try:
        result = subprocess.run(
            [sys.executable, "-m", "nmon2influxdb.main", *args.split()],
            capture_output=True,
            text=True,
            timeout=30,
            cwd=project_root,
            env=env,
        )
        command_result["returncode"] = result.returncode
        command_result["stdout"] = result.stdout
        command_result["stderr"] = result.stderr
    except subprocess.TimeoutExpired:
        pytest.fail("Command timed out")


# Then steps
@then(parsers.parse("the exit code must be {code:d}"))
def check_exit_code(command_result, code):
    """Check the process exit code."""
    assert command_result["returncode"] == code, (
        f"Expected exit code {code}, got {command_result['returncode']}. "
        f"stdout: {command_result['stdout']}, stderr: {command_result['stderr']}"
    )


@then("the configuration file must exist")
def check_config_file_exists(e2e_cfgfile):
    assert e2e_cfgfile.is_file()


@then(parsers.parse('the config value "{key}" must be "{expected_value}"'))
def check_config_value(command_result, key, expected_value):
    """Assert that config output contains the expected key-value pair."""
    try:
        config_data = json.loads(command_result["stdout"])
    except json.JSONDecodeError as e:
        pytest.fail(
            f"Failed to parse JSON from output: {e}. stdout: {command_result['stdout']}"
        )

    actual_value = str(config_data.get(key, ""))
    assert actual_value == expected_value, (
        f"Expected {key}='{expected_value}', got {key}='{actual_value}'. "
        f"Full config: {config_data}"
    )


@then(parsers.parse('the log must contain: "{expected_text}"'))
def check_log_contains_text(command_result, expected_text):
    """Check that the log contains the expected text."""
    combined_output = command_result["stdout"] + command_result["stderr"]
    assert expected_text in combined_output, (
        f"Expected text '{expected_text}' not found in output. "
        f"stdout: {command_result['stdout']}, stderr: {command_result['stderr']}"
    )
