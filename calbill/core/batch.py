"""Batch processing with per-item isolation and graceful degradation."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, TypeVar

from calbill.core.errors import BudgetExceededError, classify_error
from calbill.core.models import BatchResult, ItemOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS = "success"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass(frozen=True)
class Skip:
    """Returned by a processor for items it deliberately does not process."""

    reason: str = "filtered"


SKIP = Skip()


@dataclass
class BatchOptions:
    """Knobs for process_batch."""

    max_failures: Optional[int] = None
    failure_ratio: float = 0.5
    stop_on_excessive_failures: bool = True
    time_budget_seconds: Optional[float] = None
    started_at: Optional[float] = None
    clock: Callable[[], float] = field(default=time.monotonic)

    def failure_quota(self, total: int) -> int:
        if self.max_failures is not None:
            return self.max_failures
        return math.ceil(total * self.failure_ratio)


def _abandon_rest(result: BatchResult, start_index: int, reason: str) -> None:
    for index in range(start_index, result.total):
        result.outcomes.append(ItemOutcome(index=index, status=SKIPPED, detail=reason))
        result.skipped += 1


def process_batch(
    items: Sequence[T],
    processor: Callable[[T, int], Any],
    options: Optional[BatchOptions] = None,
) -> BatchResult:
    """Run processor over items in order and account for every item.

    A processor returning a Skip counts as skipped, an exception counts as
    failed, anything else as success. The loop stops early when failures
    exceed the quota or the elapsed-time budget is spent; items not
    attempted are reported as skipped with the abort reason, so
    successful + failed + skipped always equals total.
    """
    opts = options or BatchOptions()
    result = BatchResult(total=len(items))
    quota = opts.failure_quota(result.total)
    started = opts.started_at if opts.started_at is not None else opts.clock()

    for index, item in enumerate(items):
        if opts.time_budget_seconds is not None:
            elapsed = opts.clock() - started
            if elapsed > opts.time_budget_seconds:
                reason = (
                    f"time budget exceeded before item {index}: "
                    f"{elapsed:.1f}s > {opts.time_budget_seconds:.1f}s"
                )
                logger.error("Stopping batch: %s", reason)
                result.timed_out = True
                result.aborted = True
                result.abort_reason = reason
                result.errors.append(classify_error(BudgetExceededError(reason), f"Processing item {index}"))
                _abandon_rest(result, index, "not attempted: time budget exceeded")
                break

        try:
            outcome = processor(item, index)
        except Exception as exc:
            info = classify_error(exc, f"Processing item {index}")
            result.failed += 1
            result.errors.append(info)
            result.outcomes.append(ItemOutcome(index=index, status=FAILED, error=info))
            logger.error("Item %d failed: %s", index, exc)

            if opts.stop_on_excessive_failures and result.failed > quota:
                reason = f"excessive failures ({result.failed}/{result.total})"
                logger.error("Stopping batch: %s", reason)
                result.aborted = True
                result.abort_reason = reason
                _abandon_rest(result, index + 1, "not attempted: failure quota exceeded")
                break
            continue

        if isinstance(outcome, Skip):
            result.skipped += 1
            result.outcomes.append(ItemOutcome(index=index, status=SKIPPED, detail=outcome.reason))
            logger.debug("Item %d skipped: %s", index, outcome.reason)
        else:
            result.successful += 1
            result.outcomes.append(ItemOutcome(index=index, status=SUCCESS, detail=outcome))

    logger.info(
        "Batch complete: %d/%d successful, %d skipped, %d failed",
        result.successful,
        result.total,
        result.skipped,
        result.failed,
    )
    return result
