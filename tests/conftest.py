"""Root-level pytest fixtures for the dnr test suite.

Provides shared configuration fixtures following the Pydantic-based
architecture, plus small in-memory flight tables. All tests must use these
fixtures instead of creating raw dict configs.
"""

import pytest
import pandas as pd

from dnr.core import ExecutionContext
from dnr.schemas import ParamConfig, UserConfig, resolve_config


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using make_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs
    (flat aliases or field names).

    Examples
    --------
    >>> def test_min_count(make_config):
    ...     config = make_config(MIN_COUNT=30)
    ...     assert config.aggregation.filter.value == 30
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Execution Fixtures
# =============================================================================

@pytest.fixture(params=["sequential", "threads"])
def context(request):
    """Execution context for each backend; results must not depend on it."""
    ctx = ExecutionContext(request.param, max_workers=2)
    yield ctx
    ctx.close()


# =============================================================================
# Data Fixtures
# =============================================================================

# Months covered by each route: LAX-JFK is missing December
ROUTE_MONTHS = {
    ("SFO", "ORD"): range(1, 13),
    ("SEA", "BOS"): range(1, 13),
    ("LAX", "JFK"): range(1, 12),
}


@pytest.fixture
def carrier_records():
    """Three records, two carriers, one period."""
    return pd.DataFrame({
        "carrier": ["A", "A", "B"],
        "period": [1, 1, 1],
        "delay": [10, 20, 5],
    })


@pytest.fixture
def flights():
    """Two flights per route per month; arr_delay averages to month + 5."""
    rows = []
    for (origin, dest), months in ROUTE_MONTHS.items():
        for month in months:
            for i, carrier in enumerate(["AA", "UA"]):
                rows.append({
                    "carrier": carrier,
                    "origin": origin,
                    "dest": dest,
                    "month": month,
                    "arr_delay": float(month + 10 * i),
                })
    return pd.DataFrame(rows)


@pytest.fixture
def route_summary():
    """Summary Rows keyed by (origin, dest, month), as the Recombiner emits them."""
    rows = []
    for (origin, dest), months in ROUTE_MONTHS.items():
        for month in months:
            rows.append({
                "origin": origin,
                "dest": dest,
                "month": month,
                "mean_arr_delay": float(month + 5),
                "n": 2,
            })
    return pd.DataFrame(rows)


@pytest.fixture
def airports():
    """Airport lookup keyed by IATA code (BOS deliberately absent)."""
    return pd.DataFrame({
        "iata": ["SFO", "ORD", "SEA", "LAX", "JFK"],
        "airport": [
            "San Francisco International",
            "Chicago O'Hare International",
            "Seattle-Tacoma International",
            "Los Angeles International",
            "John F Kennedy International",
        ],
        "city": ["San Francisco", "Chicago", "Seattle", "Los Angeles", "New York"],
        "state": ["CA", "IL", "WA", "CA", "NY"],
    })
