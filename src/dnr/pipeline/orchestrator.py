"""End-to-end divide-and-recombine pipeline.

Runs the three stages in order on in-memory tables, enforcing the stage
contracts between them:

    records ──partition──▶ Partitioning ──recombine──▶ Summary Rows
            ──join──▶ joined Summary Rows ──group/filter/annotate──▶ PanelSet

Loading inputs and writing outputs are the caller's job (see ``dnr.cli``);
``write()`` is provided for the CLI and for notebooks that want the same
file layout.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import pandas as pd

from dnr.contracts import (
    PIPELINE_INVARIANTS,
    ContractViolation,
    assert_annotated,
    assert_partitioned,
    assert_recombined,
)
from dnr.core.context import ExecutionContext
from dnr.recombine import (
    IncompletePanel,
    PanelPreparer,
    PanelSet,
    Partitioner,
    Recombiner,
)
from dnr.schemas import AggregationSpec, InternalConfig, SummaryFilter

__all__ = ['DnrPipeline', 'PipelineResult']

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PipelineResult:
    """Outputs of one pipeline run.

    Attributes
    ----------
    summary : pd.DataFrame
        Summary Row table (one row per partition key tuple), before joins.
    panels : PanelSet
        Annotated panel set.
    """
    summary: pd.DataFrame
    panels: PanelSet

    @property
    def excluded(self) -> Tuple[IncompletePanel, ...]:
        """Panel groups dropped by the completeness filter."""
        return self.panels.excluded

    def panel_table(self) -> pd.DataFrame:
        """Flat annotated panel table for a rendering layer."""
        return self.panels.to_frame()

    def excluded_table(self) -> pd.DataFrame:
        """One row per excluded panel with its completeness diagnostics."""
        columns = list(self.panels.panel_key) + ["found", "expected", "missing", "null_periods"]
        rows = []
        for item in self.excluded:
            row = dict(zip(self.panels.panel_key, item.panel))
            row.update(
                found=item.found,
                expected=item.expected,
                missing=", ".join(str(v) for v in item.missing),
                null_periods=item.null_periods,
            )
            rows.append(row)
        return pd.DataFrame.from_records(rows, columns=columns)


class DnrPipeline:
    """Configured divide-and-recombine run.

    Requests (aggregation outputs, post-aggregation filter, cognostics) are
    built from the config when the pipeline is constructed, so a malformed
    config fails before any data is read.

    Parameters
    ----------
    config : InternalConfig
        Resolved runtime configuration.
    context : ExecutionContext, optional
        Execution back end shared by all stages. If omitted, one is built
        from ``config.execution`` and closed by ``close()``.

    Examples
    --------
    >>> config = resolve_config(ParamConfig(), UserConfig(MIN_COUNT=30))
    >>> with DnrPipeline(config) as pipeline:
    ...     result = pipeline.run(flights, lookup=airports)
    >>> result.panel_table().head()
    """

    def __init__(self, config: InternalConfig, context: Optional[ExecutionContext] = None):
        self.config = config
        self._owns_context = context is None
        self.context = context if context is not None else ExecutionContext.from_config(config)

        self.aggregation = AggregationSpec.from_config(config.aggregation.outputs)
        self.cognostics = AggregationSpec.from_config(config.cognostics)
        summary_filter = config.aggregation.filter
        self.where = (
            SummaryFilter.model_validate(summary_filter.model_dump())
            if summary_filter is not None else None
        )

    def _expected_records(self, records: pd.DataFrame) -> int:
        """Number of records the partitioning must cover."""
        if self.config.partition.null_keys == "drop":
            keys = list(self.config.partition.keys)
            return int((~records[keys].isna().any(axis=1)).sum())
        return len(records)

    def run(self, records: pd.DataFrame, lookup: Optional[pd.DataFrame] = None) -> PipelineResult:
        """Partition, recombine, join and prepare panels.

        Parameters
        ----------
        records : pd.DataFrame
            Source records.
        lookup : pd.DataFrame, optional
            Auxiliary descriptive table for the configured joins. Joins are
            skipped when it is None.

        Returns
        -------
        PipelineResult

        Raises
        ------
        DnrError
            For a malformed request (missing column, ambiguous join, ...).
        ContractViolation
            If a stage broke its own guarantee.
        """
        cfg = self.config
        logger.info("=" * 60)
        logger.info("Divide & recombine: %d records, keys=%s", len(records), cfg.partition.keys)
        logger.info("=" * 60)

        try:
            # Divide
            partitioner = Partitioner(cfg.partition.keys, dropna=cfg.partition.null_keys == "drop")
            partitioning = partitioner.partition(records)
            assert_partitioned(partitioning, self._expected_records(records))
            logger.info("✓ Partitioned into %d partitions", len(partitioning))

            # Recombine
            recombiner = Recombiner(self.aggregation, self.context)
            summary = recombiner.recombine(
                partitioning, where=self.where, sort_by=cfg.aggregation.sort_by
            )
            assert_recombined(summary, cfg.partition.keys, self.aggregation.names)
            logger.info("✓ Recombined: %d summary rows", len(summary))

            # Prepare panels
            preparer = PanelPreparer(self.context)
            table = summary
            if lookup is not None:
                for join in cfg.joins:
                    table = preparer.join(
                        table, lookup,
                        on=join.on,
                        lookup_key=join.lookup_key,
                        columns=join.columns,
                        prefix=join.prefix,
                        disambiguate=join.disambiguate,
                    )
                    if join.fallback_column is not None:
                        table = preparer.with_fallback(table, {join.fallback_column: join.on})
            elif cfg.joins:
                logger.info("No lookup table given, skipping %d joins", len(cfg.joins))

            panels = preparer.prepare(
                table,
                cfg.panels.panel_key,
                cfg.panels.period_column,
                cfg.panels.expected_periods,
                self.cognostics,
            )
            if cfg.panels.order_by is not None:
                panels = panels.order_by(cfg.panels.order_by, ascending=not cfg.panels.descending)
            assert_annotated(panels)
            logger.info("✓ Panels: %d annotated, %d excluded as incomplete",
                        len(panels), len(panels.excluded))

        except ContractViolation as e:
            logger.critical("Pipeline contract violated at %s stage: %s", e.stage or "unknown", e)
            for invariant in PIPELINE_INVARIANTS.get(e.stage, []):
                logger.error("  invariant: %s", invariant)
            raise

        return PipelineResult(summary=summary, panels=panels)

    def write(self, result: PipelineResult, output_dirs: Dict[str, Path]) -> Dict[str, Path]:
        """Write the panel table, exclusions and (optionally) the summary table.

        Returns
        -------
        dict
            Output name -> written path.
        """
        run_id = self.config.run_id or "latest"
        ext = "parquet" if self.config.output.format == "parquet" else "csv"
        written = {}

        panels_path = Path(output_dirs["panels"]) / f"panels_{run_id}.{ext}"
        self._write_table(result.panel_table(), panels_path)
        written["panels"] = panels_path

        excluded_path = Path(output_dirs["panels"]) / f"excluded_{run_id}.{ext}"
        self._write_table(result.excluded_table(), excluded_path)
        written["excluded"] = excluded_path

        if self.config.output.write_summary:
            summary_path = Path(output_dirs["summaries"]) / f"summary_{run_id}.{ext}"
            self._write_table(result.summary, summary_path)
            written["summary"] = summary_path

        return written

    def _write_table(self, df: pd.DataFrame, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if self.config.output.format == "parquet":
            compression = self.config.output.compression
            df.to_parquet(path, engine='pyarrow',
                          compression=None if compression == "none" else compression,
                          index=False)
        else:
            df.to_csv(path, index=False)
        logger.info("Exported %d rows to: %s", len(df), path)

    def close(self) -> None:
        """Close the execution context if this pipeline created it."""
        if self._owns_context:
            self.context.close()

    def __enter__(self) -> "DnrPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
