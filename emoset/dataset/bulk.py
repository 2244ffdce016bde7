"""Sequential batch runner shared by the bulk actions."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BatchReport(BaseModel):
    """Outcome of a bulk action."""

    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed

    def summary(self) -> str:
        text = f"{self.succeeded} succeeded, {self.failed} failed"
        if self.skipped:
            text += f", {self.skipped} skipped"
        return text


async def run_batch(
    items: Iterable[T],
    operation: Callable[[T], Awaitable[bool | None]],
    describe: Callable[[T], str] = str,
    on_progress: Callable[[int, int], None] | None = None,
) -> BatchReport:
    """Apply ``operation`` to each item in order, one at a time.

    A failing item is counted and logged; the remaining items still run.
    An operation that returns ``False`` marks its item as skipped.

    Args:
        items: Work items
        operation: Async callable run for each item
        describe: Label for an item in error messages
        on_progress: Called with (done, total) after each item

    Returns:
        BatchReport with counts and per-item error strings
    """
    work = list(items)
    report = BatchReport()

    for index, item in enumerate(work, start=1):
        try:
            outcome = await operation(item)
        except Exception as e:
            msg = f"{describe(item)}: {e}"
            logger.warning(f"Batch item failed: {msg}")
            report.failed += 1
            report.errors.append(msg)
        else:
            if outcome is False:
                report.skipped += 1
            else:
                report.succeeded += 1

        if on_progress is not None:
            on_progress(index, len(work))

    logger.info(f"Batch finished: {report.summary()}")
    return report
