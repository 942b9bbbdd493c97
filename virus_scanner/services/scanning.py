"""ScanService: the two entry points into the scan pipeline.

* :meth:`ScanService.scan_batch`: files from a delta.  Runs the orchestrator
  over the whole worklist and reports the batch.  Never raises for a single
  file's failure.
* :meth:`ScanService.scan_file`: a single file requested directly.  Storage
  failures propagate so the caller can answer with an error.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from virus_scanner.core.orchestrator import ScanOrchestrator
from virus_scanner.core.outcome import ScanOutcome
from virus_scanner.core.reporter import BatchSummary, ResultReporter, summarize

logger = logging.getLogger(__name__)


class ScanService:
    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        reporter: ResultReporter | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._reporter = reporter or ResultReporter()

    async def scan_batch(self, files: Sequence[str]) -> BatchSummary:
        logger.info("File IRIs to be scanned: %s", json.dumps(list(files)))
        outcomes = await self._orchestrator.run(files)
        logger.debug(
            "Detailed results per file:\n%s",
            json.dumps([o.as_log_dict() for o in outcomes], indent=2),
        )
        summary = summarize(outcomes)
        self._reporter.report(summary)
        return summary

    async def scan_file(self, file: str) -> ScanOutcome:
        """Scan and record *file*.

        Raises:
            StorageError: The analysis could not be written.
        """
        outcome = await self._orchestrator.scan_one(file)
        logger.info("Scan request result: %s", json.dumps(outcome.as_log_dict()))
        return outcome
