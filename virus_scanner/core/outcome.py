"""Verdict vocabulary and the per-file scan outcome.

:class:`ScanOutcome` is created once per scan attempt by the
:class:`~virus_scanner.core.orchestrator.ScanOrchestrator` and carries the
result of resolution + scan into the
:class:`~virus_scanner.core.recorder.AnalysisRecorder`.  It is never persisted
itself; the malware-analysis record built from it is.

Usage::

    from virus_scanner.core.outcome import ScanOutcome, Verdict

    outcome = ScanOutcome(file="http://example.com/files/1")
    outcome.verdict = Verdict.BENIGN
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from virus_scanner.engines.base import EngineReport

if TYPE_CHECKING:
    from virus_scanner.core.recorder import RecordingResult


class Verdict(str, Enum):
    """STIX 2.1 ``malware-result-ov`` vocabulary.

    Declaration order is the reporting order.
    """

    BENIGN = "benign"
    SUSPICIOUS = "suspicious"
    MALICIOUS = "malicious"
    UNKNOWN = "unknown"


#: Fixed vocabulary in reporting order.
VERDICT_VOCABULARY: tuple[str, ...] = tuple(v.value for v in Verdict)


class ScanState(str, Enum):
    """Per-item progress through the scan pipeline."""

    PENDING = "pending"
    RESOLVING = "resolving"
    SCANNING = "scanning"
    DONE = "done"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class ScanAttempt:
    """Result of the scan step: an engine report or a captured diagnostic.

    Exactly one of *report* and *error* is set.
    """

    report: EngineReport | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.report is not None

    @classmethod
    def failed(cls, exc: BaseException) -> ScanAttempt:
        return cls(error=f"{type(exc).__name__}: {exc}")


def verdict_for(report: EngineReport) -> Verdict:
    return Verdict.MALICIOUS if report.infected else Verdict.BENIGN


@dataclass
class ScanOutcome:
    """Outcome of one scan attempt for one logical file.

    Attributes:
        file: The logical file IRI that was requested.
        verdict: Final verdict.  Starts as ``unknown`` and only changes once
            the engine has given a definitive answer.
        threat_names: Threats named by the engine, in report order.
        started_at: Start of the attempt (before resolution).
        ended_at: End of the attempt (after the scan, or after the failing
            step).  ``None`` while the attempt is in progress.
        error: Diagnostic text when ``verdict`` is ``unknown``.
        physical_file: The ``share://`` IRI the logical file resolved to.
        resolved_physical_path: Local filesystem path that was scanned.
        state: Last state reached, ``done`` or ``failed`` once finished.
        recording: Result of persisting the outcome, once recorded.
        storage_error: Diagnostic when the record could not be written.
    """

    file: str
    verdict: Verdict = Verdict.UNKNOWN
    threat_names: tuple[str, ...] = field(default_factory=tuple)
    started_at: datetime = field(default_factory=utcnow)
    ended_at: datetime | None = None
    error: str | None = None
    physical_file: str | None = None
    resolved_physical_path: str | None = None
    state: ScanState = ScanState.PENDING
    recording: RecordingResult | None = None
    storage_error: str | None = None

    @property
    def is_orphan(self) -> bool:
        """``True`` when the outcome was recorded into zero graphs."""
        return self.recording is not None and self.recording.is_orphan

    def apply(self, attempt: ScanAttempt) -> None:
        """Copy the verdict or the diagnostic of *attempt* onto this outcome."""
        if attempt.report is not None:
            self.verdict = verdict_for(attempt.report)
            self.threat_names = attempt.report.threat_names
            self.state = ScanState.DONE
        else:
            self.verdict = Verdict.UNKNOWN
            self.error = attempt.error
            self.state = ScanState.FAILED

    def as_log_dict(self) -> dict[str, object]:
        return {
            "file": self.file,
            "verdict": getattr(self.verdict, "value", self.verdict),
            "threat_names": list(self.threat_names),
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "error": self.error,
            "physical_file": self.physical_file,
            "physical_path": self.resolved_physical_path,
            "state": self.state.value,
            "graphs_written": (
                sorted(self.recording.graphs_written)
                if self.recording and self.recording.graphs_known
                else None
            ),
            "storage_error": self.storage_error,
        }
