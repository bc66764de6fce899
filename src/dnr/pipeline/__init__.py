"""Pipeline modules.

- orchestrator: DnrPipeline, the configured partition -> recombine -> panels run
"""

from dnr.pipeline.orchestrator import DnrPipeline, PipelineResult

__all__ = [
    "DnrPipeline",
    "PipelineResult",
]
