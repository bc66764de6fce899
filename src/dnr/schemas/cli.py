"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: input paths, output directory, execution back end, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from pydantic import Field, model_validator
from dnr.schemas.base import DnrBaseModel


class CLIConfig(DnrBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Notes
    -----
    If max_workers is provided but backend is not, backend is set to
    "threads" (schema responsibility, not runtime): asking for workers
    only makes sense for the threaded back end.

    Usage
    -----
        cli_cfg = CLIConfig(
            records_path="data/2008.csv",
            base_dir="/scratch/dnr_output",
            max_workers=8,
        )
        # backend automatically set to "threads"

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    records_path: Optional[str] = None
    lookup_path: Optional[str] = None
    base_dir: Optional[str] = None
    backend: Optional[Literal["sequential", "threads"]] = None
    max_workers: Optional[int] = Field(None, ge=1)
    output_format: Optional[Literal["parquet", "csv"]] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    @model_validator(mode="after")
    def infer_threads_from_workers(self):
        """If a worker count is given without a backend, use threads."""
        if self.backend is None and self.max_workers is not None:
            self.backend = "threads"
        return self

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        input_cfg = {}
        if self.records_path is not None:
            input_cfg["records_path"] = str(self.records_path)
        if self.lookup_path is not None:
            input_cfg["lookup_path"] = str(self.lookup_path)
        if input_cfg:
            overrides["input"] = input_cfg

        execution = {}
        if self.backend is not None:
            execution["backend"] = self.backend
        if self.max_workers is not None:
            execution["max_workers"] = self.max_workers
        if execution:
            overrides["execution"] = execution

        output = {}
        if self.base_dir is not None:
            output["base_dir"] = str(self.base_dir)
        if self.output_format is not None:
            output["format"] = self.output_format
        if output:
            overrides["output"] = output

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
