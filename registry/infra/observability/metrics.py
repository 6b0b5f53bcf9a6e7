import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

# Low-cardinality labels only: never put keys or module identities here
STORAGE_OPERATIONS = Counter(
    "storage_operations_total",
    "Total storage backend operations",
    ["backend", "operation", "outcome"],
)

STORAGE_LATENCY = Histogram(
    "storage_operation_duration_seconds",
    "Storage operation latency in seconds",
    ["backend", "operation"],
)


@contextmanager
def observe_operation(backend: str, operation: str) -> Iterator[None]:
    """Record count, outcome and latency of one storage operation."""
    start = time.perf_counter()
    outcome = "ok"
    try:
        yield
    except Exception as exc:
        outcome = type(exc).__name__
        raise
    finally:
        STORAGE_LATENCY.labels(backend=backend, operation=operation).observe(
            time.perf_counter() - start
        )
        STORAGE_OPERATIONS.labels(
            backend=backend, operation=operation, outcome=outcome
        ).inc()
