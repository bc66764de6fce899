"""Stage invariants, by contract stage.

Human-readable statement of what each stage guarantees. The orchestrator
logs the entries for a stage when that stage's contract fails.
"""

PIPELINE_INVARIANTS = {
    "partition": [
        "Every record belongs to exactly one partition (exhaustive + disjoint)",
        "Null key values form their own key value unless null_keys='drop'",
        "Partition membership depends only on key equality",
    ],

    "recombine": [
        "One summary row per partition, key columns first",
        "count() without a field equals the partition's record count",
        "Result for a partition depends only on that partition's records",
        "Post-aggregation filter runs after every partition is aggregated",
        "All-null input field yields null (count of a field yields 0)",
    ],

    "join": [
        "Left join: row count unchanged",
        "Unmatched rows keep null in joined columns",
        "Non-unique lookup key raises AmbiguousJoin unless disambiguated",
    ],

    "panels": [
        "State machine RAW -> FILTERED -> ANNOTATED, no skipping",
        "Only groups covering the full expected sub-period set are FILTERED",
        "Repeated sub-period in a group raises DuplicateSubPeriod",
        "Cognostics are pure functions of one group's summary rows",
        "Only ANNOTATED sets are flattened for rendering",
    ],
}
