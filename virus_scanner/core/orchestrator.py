"""ScanOrchestrator: per-file resolve → scan → record, with OpenTelemetry spans.

For every logical file the orchestrator:

1. **resolve**: finds the physical file via
   :class:`~virus_scanner.core.resolver.FileResolver` and maps it to a local
   path on the share;
2. **scan**: hands that path to the
   :class:`~virus_scanner.engines.base.ScanEngine`;
3. **record**: stores the outcome through
   :class:`~virus_scanner.core.recorder.AnalysisRecorder`.

Steps 1 and 2 form the *scan attempt*.  The attempt never raises: whatever
goes wrong (no physical file, file missing on disk, clamd down, indeterminate
answer) is captured as a diagnostic and the file gets verdict ``unknown``.
That verdict is then recorded like any other, so a failed scan is visible in
the store and never looks like a clean one.

Step 3 is different.  When the analysis cannot be written,
:class:`~virus_scanner.sparql.client.StorageError` propagates out of
:meth:`ScanOrchestrator.scan_one`.  :meth:`ScanOrchestrator.run` contains it
per file: the diagnostic lands on ``outcome.storage_error`` and the batch
moves on to the next file.

Files are processed strictly one after another, each one including its
store write.  At most one scan and one store request are in flight at any
time.  ``run`` returns one outcome per input file, in input order.

Usage::

    orchestrator = ScanOrchestrator(
        resolver=FileResolver(sparql),
        engine=ClamAVAdapter(),
        recorder=AnalysisRecorder(sparql),
    )
    outcomes = await orchestrator.run(["http://example.com/files/1"])
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from pathlib import Path

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from virus_scanner.core.outcome import ScanAttempt, ScanOutcome, ScanState, utcnow
from virus_scanner.core.recorder import AnalysisRecorder, RecordingResult
from virus_scanner.core.resolver import FileResolver
from virus_scanner.engines.base import ScanEngine
from virus_scanner.sparql.client import StorageError

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(
    "virus_scanner.orchestrator",
    schema_url="https://opentelemetry.io/schemas/1.11.0",
)


class ScanOrchestrator:
    """Runs the resolve → scan → record sequence for a worklist of files.

    All collaborators are injected so tests can replace the store and the
    engine with mocks.

    Args:
        resolver: Logical → physical file lookup.
        engine: Malware scan engine.
        recorder: Writer for malware-analysis resources.
    """

    def __init__(
        self,
        *,
        resolver: FileResolver,
        engine: ScanEngine,
        recorder: AnalysisRecorder,
    ) -> None:
        self._resolver = resolver
        self._engine = engine
        self._recorder = recorder

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def run(self, worklist: Sequence[str]) -> list[ScanOutcome]:
        """Scan and record every file in *worklist*, one at a time.

        Returns:
            One :class:`ScanOutcome` per entry of *worklist*, same order.
            Files whose analysis could not be stored carry
            ``storage_error`` and no ``recording``.
        """
        outcomes: list[ScanOutcome] = []
        for file in worklist:
            outcome = await self.attempt(file)
            try:
                await self.record(outcome)
            except StorageError as exc:
                outcome.storage_error = f"{type(exc).__name__}: {exc}"
                logger.error(
                    "Skipping storage of analysis for %s: %s", file, exc
                )
            outcomes.append(outcome)
        return outcomes

    async def scan_one(self, file: str) -> ScanOutcome:
        """Scan and record a single *file*.

        Raises:
            StorageError: The analysis could not be written.
        """
        outcome = await self.attempt(file)
        await self.record(outcome)
        return outcome

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def attempt(self, file: str) -> ScanOutcome:
        """Resolve and scan *file*; never raises.

        ``started_at`` / ``ended_at`` bracket both steps, including when one
        of them fails.
        """
        outcome = ScanOutcome(file=file, started_at=utcnow())
        start_ms = int(time.monotonic() * 1000)

        with tracer.start_as_current_span(
            "virus_scanner.scan_file",
            kind=trace.SpanKind.INTERNAL,
        ) as span:
            span.set_attribute("scan.file", file)
            attempt = await self._resolve(outcome)
            if attempt is None:
                attempt = await self._scan(outcome)
            outcome.apply(attempt)
            outcome.ended_at = utcnow()

            elapsed_ms = int(time.monotonic() * 1000) - start_ms
            span.set_attribute("scan.verdict", outcome.verdict.value)
            span.set_attribute("scan.state", outcome.state.value)
            span.set_attribute("scan.duration_ms", elapsed_ms)
            if outcome.error:
                span.set_status(Status(StatusCode.ERROR, outcome.error))

        if outcome.error:
            logger.warning(
                "Scan of %s failed in state %s after %d ms: %s",
                file,
                outcome.state.value,
                elapsed_ms,
                outcome.error,
            )
        else:
            logger.info(
                "Scan of %s finished: verdict=%s threats=%s duration_ms=%d",
                file,
                outcome.verdict.value,
                list(outcome.threat_names),
                elapsed_ms,
            )
        return outcome

    async def record(self, outcome: ScanOutcome) -> RecordingResult:
        outcome.recording = await self._recorder.record(outcome.file, outcome)
        return outcome.recording

    async def _resolve(self, outcome: ScanOutcome) -> ScanAttempt | None:
        """Fill in the physical file and path; return a failed attempt on error."""
        outcome.state = ScanState.RESOLVING
        with tracer.start_as_current_span("virus_scanner.resolve") as span:
            try:
                outcome.physical_file = await self._resolver.resolve(outcome.file)
                outcome.resolved_physical_path = str(
                    self._resolver.local_path(outcome.physical_file)
                )
            except Exception as exc:  # noqa: BLE001
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                return ScanAttempt.failed(exc)
            span.set_attribute("scan.physical_file", outcome.physical_file)
        return None

    async def _scan(self, outcome: ScanOutcome) -> ScanAttempt:
        outcome.state = ScanState.SCANNING
        path = Path(outcome.resolved_physical_path or "")
        with tracer.start_as_current_span("virus_scanner.scan") as span:
            span.set_attribute("scan.path", str(path))
            try:
                report = await self._engine.scan(path)
            except Exception as exc:  # noqa: BLE001
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                return ScanAttempt.failed(exc)
        return ScanAttempt(report=report)
