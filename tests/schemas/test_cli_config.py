"""Tests for CLIConfig schema and conversion to internal overrides."""

import pytest
from pydantic import ValidationError

from dnr.schemas.cli import CLIConfig
from dnr.schemas.param import ParamConfig
from dnr.schemas.resolve import resolve_config
from dnr.schemas.user import UserConfig

pytestmark = pytest.mark.unit


def test_cli_to_internal_overrides_with_paths():
    """Test CLI config conversion with input paths."""
    cli = CLIConfig(records_path="data/2008.csv", lookup_path="data/airports.csv")
    overrides = cli.to_internal_overrides()
    assert overrides["input"] == {
        "records_path": "data/2008.csv",
        "lookup_path": "data/airports.csv",
    }


def test_cli_to_internal_overrides_with_log_level():
    cli = CLIConfig(log_level="DEBUG")
    overrides = cli.to_internal_overrides()
    assert overrides["logging"]["level"] == "DEBUG"


def test_cli_to_internal_overrides_empty():
    """Test CLI config conversion with no overrides."""
    assert CLIConfig().to_internal_overrides() == {}


def test_cli_config_accepts_base_dir_and_format():
    cli = CLIConfig(base_dir="/path/to/output", output_format="csv")
    overrides = cli.to_internal_overrides()
    assert overrides["output"] == {"base_dir": "/path/to/output", "format": "csv"}


def test_cli_infers_threads_from_max_workers():
    """A worker count without a backend implies the threaded backend."""
    cli = CLIConfig(max_workers=8)
    assert cli.backend == "threads"
    assert cli.to_internal_overrides()["execution"] == {"backend": "threads", "max_workers": 8}


def test_cli_explicit_backend_is_kept():
    cli = CLIConfig(backend="sequential", max_workers=2)
    assert cli.backend == "sequential"


def test_cli_rejects_bad_values():
    with pytest.raises(ValidationError):
        CLIConfig(backend="processes")
    with pytest.raises(ValidationError):
        CLIConfig(max_workers=0)
    with pytest.raises(ValidationError):
        CLIConfig(log_level="LOUD")


def test_cli_overrides_do_not_mutate_user():
    user = UserConfig.model_validate({"RECORDS_PATH": "a.csv", "BASE_DIR": "/tmp"})
    cli = CLIConfig.model_validate({"records_path": "b.csv"})

    internal = resolve_config(ParamConfig(), user, cli)

    assert internal.input.records_path == "b.csv"  # CLI wins
    assert internal.output.base_dir == "/tmp"      # User value preserved
    assert user.records_path == "a.csv"
