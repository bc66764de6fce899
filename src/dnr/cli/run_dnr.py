"""Core dnr pipeline execution logic.

This module contains the actual pipeline runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import argparse
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

from dnr.io import load_table
from dnr.pipeline import DnrPipeline, PipelineResult
from dnr.schemas import CLIConfig, ParamConfig, UserConfig, resolve_config
from dnr.schemas.initialization import (
    generate_run_id,
    load_user_config_dict,
    persist_runtime_config,
)
from dnr.setup_directories import get_log_path, setup_output_directories

__all__ = ['run_dnr_pipeline', 'configure_logging', 'build_parser', 'main']

logger = logging.getLogger(__name__)


def configure_logging(level: str, log_path: Optional[Path] = None) -> None:
    """Configure root logging with console and (optional) file handlers.

    Existing root handlers are replaced, so calling this twice does not
    duplicate output.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    if log_path is not None:
        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)


def run_dnr_pipeline(
    user_config_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None,
    rerun: bool = False,
    verbose: bool = False,
) -> PipelineResult:
    """Execute the divide-and-recombine pipeline from files.

    This is the core pipeline execution function. It:
    1. Loads and resolves configuration (Param < User < CLI)
    2. Sets up output directories and logging
    3. Loads the record table (and lookup table, if configured)
    4. Runs partition -> recombine -> panels
    5. Writes outputs and persists the resolved configuration

    Parameters
    ----------
    user_config_path : str, optional
        Path to user config file (Python file with CONFIG dict).
        If None, expert defaults plus CLI overrides are used.

    cli_args : dict, optional
        CLI argument overrides. Keys: records_path, lookup_path, base_dir,
        backend, max_workers, output_format, log_level. All optional.

    rerun : bool, optional
        If True, delete the output directory before running.

    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    Returns
    -------
    PipelineResult
        Summary table and annotated panels of this run.

    Raises
    ------
    FileNotFoundError
        If the user config or an input table does not exist.
    ValueError
        If no records path is configured, or configuration validation fails.
    DnrError
        If the configured request does not fit the data.

    Examples
    --------
    Run with user config only::

        run_dnr_pipeline("scripts/user_config.py")

    Run with CLI overrides::

        run_dnr_pipeline(
            "scripts/user_config.py",
            cli_args={"records_path": "data/2008.csv", "max_workers": 8},
        )
    """
    param_cfg = ParamConfig()  # Expert defaults

    user_cfg_dict = load_user_config_dict(user_config_path) if user_config_path else {}
    user_cfg = UserConfig.model_validate(user_cfg_dict)

    cli_args = dict(cli_args or {})
    if verbose and cli_args.get("log_level") is None:
        cli_args["log_level"] = "DEBUG"

    # Filter None values
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    # Resolve to internal config (Param < User < CLI)
    config = resolve_config(param_cfg, user_cfg, cli_cfg)
    config = config.model_copy(update={"run_id": generate_run_id()})

    if config.input.records_path is None:
        raise ValueError("No records path configured (set RECORDS_PATH or --records)")

    if rerun:
        base_dir_path = Path(config.output.base_dir).expanduser()
        if base_dir_path.exists():
            print(f"Cleaning output directory: {base_dir_path}")
            shutil.rmtree(base_dir_path)

    output_dirs = setup_output_directories(config.output.base_dir)
    configure_logging(config.logging.level, get_log_path(output_dirs, config.run_id))

    print(f"\n{'='*60}")
    print("dnr Divide & Recombine Pipeline")
    print('='*60)
    print(f"Config:  {user_config_path or '(defaults)'}")
    print(f"Records: {config.input.records_path}")
    print(f"Keys:    {config.partition.keys}")
    print(f"Panels:  {config.panels.panel_key} x {config.panels.period_column}")
    print(f"Output:  {output_dirs['base']}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2, default=str))
        print('='*60)

    records = load_table(
        config.input.records_path,
        columns=config.input.columns,
        rename=config.input.rename,
        lowercase_columns=config.input.lowercase_columns,
    )
    lookup = None
    if config.input.lookup_path is not None:
        lookup = load_table(
            config.input.lookup_path,
            lowercase_columns=config.input.lowercase_columns,
        )

    with DnrPipeline(config) as pipeline:
        result = pipeline.run(records, lookup=lookup)
        written = pipeline.write(result, output_dirs)

    persist_runtime_config(config, output_dirs)

    for name, path in written.items():
        print(f"  {name:10s}: {path}")
    return result


def build_parser() -> argparse.ArgumentParser:
    """Argument parser shared by ``dnr`` and ``scripts/run_dnr_pipeline.py``."""
    parser = argparse.ArgumentParser(description="Run the dnr divide-and-recombine pipeline")
    parser.add_argument("config", nargs="?", help="Path to user config file")
    parser.add_argument("--records", dest="records_path", help="Record table (CSV or parquet)")
    parser.add_argument("--lookup", dest="lookup_path", help="Lookup table for joins")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--backend", choices=["sequential", "threads"], help="Execution back end")
    parser.add_argument("--max-workers", type=int, help="Worker threads (implies --backend threads)")
    parser.add_argument("--format", dest="output_format", choices=["parquet", "csv"],
                        help="Output file format")
    parser.add_argument("--rerun", action="store_true", help="Delete output directory before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    run_dnr_pipeline(
        args.config,
        cli_args={
            "records_path": args.records_path,
            "lookup_path": args.lookup_path,
            "base_dir": args.base_dir,
            "backend": args.backend,
            "max_workers": args.max_workers,
            "output_format": args.output_format,
        },
        rerun=args.rerun,
        verbose=args.verbose,
    )
    return 0
