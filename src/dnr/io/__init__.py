"""Table loading for the CLI.

- loader: CSV / parquet ingestion with column normalization
"""

from dnr.io.loader import load_table, normalize_columns

__all__ = ['load_table', 'normalize_columns']
