"""`dnr` - Divide and Recombine summarization for faceted displays.

Subpackages:
- recombine: Partitioner, Recombiner, PanelPreparer
- schemas: Layered configuration and typed aggregation requests
- contracts: Stage invariants
- pipeline: Configured end-to-end run
- io, cli: Table loading and the command-line runner
"""

__version__ = "0.1.0"
