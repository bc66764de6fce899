"""Command-line interface modules for dnr pipeline execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from dnr.cli.run_dnr import run_dnr_pipeline, main

__all__ = ['run_dnr_pipeline', 'main']
