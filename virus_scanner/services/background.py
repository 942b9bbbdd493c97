"""Detached execution of delta-triggered scan batches.

The delta endpoint must answer the notifier straight away, long before
clamd has looked at any file.  :meth:`BackgroundScanService.submit` starts
the batch as an :mod:`asyncio` task and returns immediately.

The task is returned, and also kept in :attr:`BackgroundScanService.pending`
until it finishes, so that:

* tests can ``await`` the exact batch they triggered;
* :meth:`BackgroundScanService.drain` can wait for running batches at
  shutdown;
* the event loop holds a strong reference to every running batch.

A batch that fails unexpectedly is logged with its traceback; the exception
does not leave the task.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from virus_scanner.core.reporter import BatchSummary
from virus_scanner.services.scanning import ScanService

logger = logging.getLogger(__name__)


class BackgroundScanService:
    def __init__(self, scan_service: ScanService) -> None:
        self._scan_service = scan_service
        self._tasks: set[asyncio.Task[BatchSummary | None]] = set()

    @property
    def pending(self) -> frozenset[asyncio.Task[BatchSummary | None]]:
        return frozenset(self._tasks)

    def submit(self, files: Sequence[str]) -> asyncio.Task[BatchSummary | None]:
        """Schedule a scan of *files* and return without waiting for it.

        Returns:
            The task running the batch.  It resolves to the batch summary,
            or to ``None`` if the batch failed unexpectedly.
        """
        task = asyncio.create_task(self._run(list(files)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until every submitted batch has finished."""
        if self._tasks:
            logger.info("Waiting for %d running scan batch(es)", len(self._tasks))
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _run(self, files: list[str]) -> BatchSummary | None:
        try:
            return await self._scan_service.scan_batch(files)
        except Exception:
            logger.exception("Uncaught error while scanning files %s", files)
            return None
