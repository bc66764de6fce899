"""Execution context for per-partition and per-panel work.

Partition aggregation and cognostic derivation are embarrassingly parallel:
each unit of work reads only its own rows and shares no mutable state. The
ExecutionContext decides *where* that work runs. It is created by the caller,
passed explicitly to the stages that need it, and closed by the caller; there
is no module-level default instance.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from dnr.schemas import InternalConfig

__all__ = ['ExecutionContext', 'BACKENDS']

logger = logging.getLogger(__name__)

BACKENDS = ("sequential", "threads")


class ExecutionContext:
    """Session-scoped handle over the back end that evaluates independent work.

    Backends
    --------
    - ``sequential``: run every unit in the calling thread, in order.
    - ``threads``: run units on a ``ThreadPoolExecutor`` owned by this context.

    Both backends return results in input order, so any stage produces the
    same output whichever backend it is handed.

    A unit of work is small and idempotent. If ``timeout`` is set and the
    results are not all available in time, ``TimeoutError`` propagates to the
    caller, which can discard the attempt and call again.

    Examples
    --------
    >>> with ExecutionContext("threads", max_workers=4) as ctx:
    ...     summary = Recombiner(spec, ctx).recombine(partitioning)
    """

    def __init__(self, backend: str = "sequential", max_workers: Optional[int] = None,
                 timeout: Optional[float] = None):
        if backend not in BACKENDS:
            raise ValueError(
                f"Unknown execution backend {backend!r} (expected one of: {', '.join(BACKENDS)})"
            )
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.backend = backend
        self.max_workers = max_workers
        self.timeout = timeout
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False

    @classmethod
    def from_config(cls, config: "InternalConfig") -> "ExecutionContext":
        """Build a context from the ``execution`` section of a runtime config."""
        execution = config.execution
        return cls(
            backend=execution.backend,
            max_workers=execution.max_workers,
            timeout=execution.timeout_sec,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def map(self, fn: Callable[[Any], Any], items: Iterable[Any]) -> List[Any]:
        """Apply ``fn`` to every item and return the results in input order.

        Exceptions raised by ``fn`` propagate unchanged; the first one to be
        collected aborts the call.
        """
        if self._closed:
            raise RuntimeError("ExecutionContext is closed")

        items = list(items)
        if self.backend == "sequential" or len(items) <= 1:
            return [fn(item) for item in items]

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="dnr-worker",
            )
            logger.debug("Started thread pool (max_workers=%s)", self.max_workers)

        return list(self._executor.map(fn, items, timeout=self.timeout))

    def close(self) -> None:
        """Release the worker pool. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.debug("Thread pool shut down")

    def __enter__(self) -> "ExecutionContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(backend={self.backend!r}, "
            f"max_workers={self.max_workers!r}, timeout={self.timeout!r})"
        )
