"""dnr User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the pipeline behavior. Expert defaults are in src/dnr/schemas/param.py

Usage:
    python scripts/run_dnr_pipeline.py scripts/user_config.py
    python scripts/run_dnr_pipeline.py scripts/user_config.py --records data/2007.csv
"""

CONFIG = {
    # ========================================================================
    # INPUTS
    # ========================================================================
    "RECORDS_PATH": "data/2008.csv",     # Airline on-time records (CSV or parquet)
    "LOOKUP_PATH": "data/airports.csv",  # Airport names, keyed by "iata"
    "BASE_DIR": "output",                # All outputs go here

    # ========================================================================
    # DIVIDE
    # ========================================================================
    "PARTITION_KEYS": ["origin", "dest", "month"],   # one summary row per route-month
    "NULL_KEYS": "keep",                 # "keep" (null is a key) or "drop"

    # ========================================================================
    # RECOMBINE
    # ========================================================================
    "AGGREGATIONS": {
        "mean_arr_delay": ("mean", "arr_delay"),
        "n": "count",
    },
    "MIN_COUNT": 30,                     # Drop summary rows with n < 30
    "SORT_BY": ["origin", "dest", "month"],

    # ========================================================================
    # PANELS
    # ========================================================================
    "PANEL_KEY": ["origin", "dest"],     # One panel per route
    "PERIOD_COLUMN": "month",
    "EXPECTED_PERIODS": 12,              # Keep routes with all 12 months
    "COGNOSTICS": {
        "mean_delay": ("mean", "mean_arr_delay"),
        "max_delay": ("max", "mean_arr_delay"),
        "n_flights": ("sum", "n"),
    },
    "ORDER_PANELS_BY": "mean_delay",

    # ========================================================================
    # EXECUTION
    # ========================================================================
    "BACKEND": "threads",                # "sequential" or "threads"
    "MAX_WORKERS": 4,
    "OUTPUT_FORMAT": "parquet",          # "parquet" or "csv"
}
