"""Tests for ExecutionContext backends."""

import threading
import time
from concurrent.futures import TimeoutError as FuturesTimeoutError

import pytest

from dnr.core import ExecutionContext

pytestmark = pytest.mark.unit


class TestExecutionContext:

    def test_map_preserves_order(self, context):
        assert context.map(lambda x: x * x, range(10)) == [x * x for x in range(10)]

    def test_threads_preserve_order_when_finishing_out_of_order(self):
        """Later items finishing first does not reorder results."""
        def slow_first(x):
            time.sleep(0.05 if x == 0 else 0)
            return x

        with ExecutionContext("threads", max_workers=4) as ctx:
            assert ctx.map(slow_first, range(5)) == [0, 1, 2, 3, 4]

    def test_threads_run_off_the_calling_thread(self):
        main = threading.get_ident()
        with ExecutionContext("threads", max_workers=2) as ctx:
            idents = ctx.map(lambda _: threading.get_ident(), range(4))
        assert main not in idents

    def test_sequential_runs_in_calling_thread(self):
        main = threading.get_ident()
        with ExecutionContext("sequential") as ctx:
            assert set(ctx.map(lambda _: threading.get_ident(), range(4))) == {main}

    def test_exceptions_propagate(self, context):
        def boom(x):
            if x == 2:
                raise KeyError("bad item")
            return x

        with pytest.raises(KeyError, match="bad item"):
            context.map(boom, range(4))

    def test_empty_input(self, context):
        assert context.map(lambda x: x, []) == []

    def test_timeout_surfaces_to_caller(self):
        ctx = ExecutionContext("threads", max_workers=2, timeout=0.05)
        try:
            with pytest.raises(FuturesTimeoutError):
                ctx.map(lambda _: time.sleep(0.5), range(2))
        finally:
            ctx.close()

    def test_closed_context_refuses_work(self):
        ctx = ExecutionContext("threads")
        ctx.close()
        ctx.close()  # idempotent
        assert ctx.closed
        with pytest.raises(RuntimeError, match="closed"):
            ctx.map(lambda x: x, [1, 2])

    def test_invalid_arguments(self):
        with pytest.raises(ValueError, match="backend"):
            ExecutionContext("processes")
        with pytest.raises(ValueError, match="max_workers"):
            ExecutionContext("threads", max_workers=0)

    def test_from_config(self, make_config):
        config = make_config(BACKEND="sequential", MAX_WORKERS=3)
        ctx = ExecutionContext.from_config(config)

        assert ctx.backend == "sequential"
        assert ctx.max_workers == 3
        assert ctx.timeout is None

    def test_contexts_are_independent(self):
        """Closing one context does not affect another."""
        a = ExecutionContext("threads", max_workers=2)
        b = ExecutionContext("threads", max_workers=2)
        a.close()
        assert b.map(lambda x: x + 1, [1, 2]) == [2, 3]
        b.close()
