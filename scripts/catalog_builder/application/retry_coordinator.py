from __future__ import annotations

import logging
from dataclasses import dataclass, field

from catalog_builder.domain.entities import SourceFailure
from .context import ListOutcome, RunContext
from .list_processor import ListProcessor

log = logging.getLogger(__name__)

RETRY_PASSES = 3


@dataclass
class RetryReport:
    recovered: list[ListOutcome]   = field(default_factory=list)
    failed:    list[SourceFailure] = field(default_factory=list)
    passes:    int = 0


class RetryCoordinator:
    """
    Deferred retry for sources that failed the main pass.

    Up to `passes` extra passes, each re-running only the still-failing
    subset. Whatever is left afterwards is logged and given up on for
    this run - never fatal.
    """

    def __init__(self, processor: ListProcessor, passes: int = RETRY_PASSES) -> None:
        self._processor = processor
        self._passes    = passes

    async def run(self, failures: list[SourceFailure], ctx: RunContext) -> RetryReport:
        report = RetryReport(failed=list(failures))

        while report.failed and report.passes < self._passes:
            report.passes += 1
            log.info("Retry pass %d: %d lists", report.passes, len(report.failed))
            outcomes, still_failed = await self._processor.process_many(
                [failure.source for failure in report.failed], ctx
            )
            report.recovered.extend(outcomes)
            report.failed = still_failed

        if report.failed:
            log.error("%d lists failed after %d retry passes:", len(report.failed), report.passes)
            for failure in report.failed:
                log.error("  - %s: %s", failure.repo, failure.error)
        return report
