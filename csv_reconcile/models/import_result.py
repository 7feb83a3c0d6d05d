from __future__ import annotations

import statistics
from dataclasses import dataclass, field

from .row_error import RowError

"""Result models for the CSV import engine.

ImportResult is the value handed back to callers (the UI depends on its
shape). ResultAccumulator is the mutable running tally owned by a single
orchestrator run; BatchStatsAccumulator collects store call timings.
"""

__all__ = [
    "ImportResult",
    "ResultAccumulator",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class ImportResult:
    """Aggregate outcome of one import run.

    Flat imports: every row lands in exactly one of success_count /
    failure_count and duplicate_count counts the successful rows reconciled
    against an existing or earlier in-file record.

    Grouped imports: success_count counts written documents, failure_count
    failed documents plus rows rejected by validation, and duplicate_count the
    rows whose customer already existed in the store.
    """
    success_count: int
    failure_count: int
    duplicate_count: int
    errors: tuple[RowError, ...] = ()

    @property
    def processed_count(self) -> int:
        return self.success_count + self.failure_count

    @property
    def ok(self) -> bool:
        return self.failure_count == 0 and not self.errors

    def error_lines(self) -> list[str]:
        return [e.to_line() for e in self.errors]


@dataclass
class ResultAccumulator:
    """Running counters for one run. Not shared between runs."""
    success_count: int = 0
    failure_count: int = 0
    duplicate_count: int = 0
    errors: list[RowError] = field(default_factory=list)

    def succeed(self, count: int = 1, *, duplicate: bool = False) -> None:
        self.success_count += count
        if duplicate:
            self.duplicate_count += count

    def fail(self, error: RowError) -> None:
        self.failure_count += 1
        self.errors.append(error)

    def mark_duplicates(self, count: int) -> None:
        """Count rows that referenced an already stored entity (grouped imports)."""
        self.duplicate_count += count

    def note(self, error: RowError) -> None:
        """Record an error that does not change the unit counters (orphan parent)."""
        self.errors.append(error)

    def freeze(self) -> ImportResult:
        return ImportResult(
            success_count=self.success_count,
            failure_count=self.failure_count,
            duplicate_count=self.duplicate_count,
            errors=tuple(self.errors),
        )


class BatchStatsAccumulator:
    """Accumulates store call timings (chunk inserts, parent inserts)."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
