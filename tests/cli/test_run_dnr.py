"""Tests for the file-based pipeline runner and its command line."""

import json
import logging

import pandas as pd
import pytest

import dnr.cli.run_dnr as run_dnr
from dnr.cli import main, run_dnr_pipeline
from dnr.cli.run_dnr import build_parser, configure_logging

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]


@pytest.fixture
def logging_calls(monkeypatch):
    """Record configure_logging calls instead of replacing pytest's handlers."""
    calls = []
    monkeypatch.setattr(run_dnr, "configure_logging",
                        lambda level, log_path=None: calls.append((level, log_path)))
    return calls


@pytest.fixture
def input_files(tmp_path, flights, airports):
    """Raw-style record CSV, lookup CSV and a user config pointing at them."""
    records_path = tmp_path / "flights.csv"
    flights.rename(columns={
        "carrier": "UniqueCarrier",
        "origin": "Origin",
        "dest": "Dest",
        "month": "Month",
        "arr_delay": "ArrDelay",
    }).to_csv(records_path, index=False)

    lookup_path = tmp_path / "airports.csv"
    airports.to_csv(lookup_path, index=False)

    config_path = tmp_path / "user_config.py"
    config_path.write_text(
        "CONFIG = {\n"
        f"    'RECORDS_PATH': {str(records_path)!r},\n"
        f"    'LOOKUP_PATH': {str(lookup_path)!r},\n"
        "    'BACKEND': 'sequential',\n"
        "    'ORDER_PANELS_BY': 'mean_delay',\n"
        "}\n"
    )
    return {"records": records_path, "lookup": lookup_path, "config": config_path}


class TestRunDnrPipeline:

    def test_run_from_user_config(self, input_files, tmp_path, logging_calls):
        out = tmp_path / "out"
        result = run_dnr_pipeline(str(input_files["config"]), cli_args={"base_dir": str(out)})

        assert sorted(result.panels.keys()) == [("SEA", "BOS"), ("SFO", "ORD")]
        assert [p.panel for p in result.excluded] == [("LAX", "JFK")]

        panels = list((out / "panels").glob("panels_*.parquet"))
        assert len(panels) == 1
        table = pd.read_parquet(panels[0])
        assert {"origin_airport", "dest_airport", "mean_delay"} <= set(table.columns)
        assert len(list((out / "summaries").glob("summary_*.parquet"))) == 1

        level, log_path = logging_calls[0]
        assert level == "INFO"
        assert log_path.parent == out / "logs"

    def test_runtime_config_persisted(self, input_files, tmp_path, logging_calls):
        out = tmp_path / "out"
        run_dnr_pipeline(str(input_files["config"]), cli_args={"base_dir": str(out)})

        saved = list(out.glob("runtime_config_*.json"))
        assert len(saved) == 1
        data = json.loads(saved[0].read_text())
        assert data["input"]["records_path"] == str(input_files["records"])
        assert data["execution"]["backend"] == "sequential"
        assert data["panels"]["order_by"] == "mean_delay"
        assert saved[0].name == f"runtime_config_{data['run_id']}.json"

    def test_cli_args_override_user_config(self, input_files, tmp_path, logging_calls):
        out = tmp_path / "out"
        run_dnr_pipeline(
            str(input_files["config"]),
            cli_args={"base_dir": str(out), "output_format": "csv"},
            verbose=True,
        )

        assert len(list((out / "panels").glob("panels_*.csv"))) == 1
        assert logging_calls[0][0] == "DEBUG"

    def test_no_records_path(self, tmp_path, logging_calls):
        with pytest.raises(ValueError, match="records"):
            run_dnr_pipeline(cli_args={"base_dir": str(tmp_path / "out")})
        assert not (tmp_path / "out").exists()

    def test_missing_user_config(self, tmp_path, logging_calls):
        with pytest.raises(FileNotFoundError):
            run_dnr_pipeline(str(tmp_path / "nope.py"))

    def test_rerun_cleans_output(self, input_files, tmp_path, logging_calls):
        out = tmp_path / "out"
        out.mkdir()
        stale = out / "stale.txt"
        stale.write_text("old")

        run_dnr_pipeline(str(input_files["config"]), cli_args={"base_dir": str(out)}, rerun=True)

        assert not stale.exists()
        assert (out / "panels").is_dir()


class TestCommandLine:

    def test_parser_maps_flags(self):
        args = build_parser().parse_args([
            "cfg.py", "--records", "r.csv", "--max-workers", "3", "--format", "csv", "-v",
        ])
        assert args.config == "cfg.py"
        assert args.records_path == "r.csv"
        assert args.max_workers == 3
        assert args.output_format == "csv"
        assert args.verbose

    def test_main_without_user_config(self, input_files, tmp_path, logging_calls):
        out = tmp_path / "out"
        rc = main([
            "--records", str(input_files["records"]),
            "--lookup", str(input_files["lookup"]),
            "--base-dir", str(out),
            "--backend", "sequential",
            "--format", "csv",
        ])

        assert rc == 0
        excluded = pd.read_csv(next((out / "panels").glob("excluded_*.csv")))
        assert excluded[["origin", "dest"]].values.tolist() == [["LAX", "JFK"]]

    def test_bad_backend_rejected_by_parser(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--backend", "dask"])


class TestConfigureLogging:

    @pytest.fixture
    def bare_root(self):
        """Detach the root handlers for the test and put them back afterwards."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        for handler in saved_handlers:
            root.removeHandler(handler)
        yield root
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

    def test_file_and_console_handlers(self, bare_root, tmp_path):
        log_path = tmp_path / "dnr_test.log"
        configure_logging("debug", log_path)

        kinds = sorted(type(h).__name__ for h in bare_root.handlers)
        assert kinds == ["FileHandler", "StreamHandler"]
        assert bare_root.level == logging.DEBUG

        logging.getLogger("dnr.test").debug("hello")
        for handler in bare_root.handlers:
            handler.flush()
        assert "dnr.test - DEBUG - hello" in log_path.read_text()

    def test_reconfiguring_does_not_duplicate(self, bare_root):
        configure_logging("INFO")
        configure_logging("WARNING")

        assert len(bare_root.handlers) == 1
        assert bare_root.level == logging.WARNING
