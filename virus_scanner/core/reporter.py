"""Batch summaries of scan outcomes.

:func:`summarize` is a pure function over a finished batch.
:class:`ResultReporter` turns a summary into log lines and Prometheus
counter increments.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from prometheus_client import Counter

from virus_scanner.core.outcome import VERDICT_VOCABULARY, ScanOutcome

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------

#: Incremented once per scanned file.  Label ``result`` is the verdict.
malware_analyses_total = Counter(
    "malware_analyses_total",
    "Total number of malware analyses produced, by result",
    ["result"],
)

#: Incremented for every analysis that was stored in zero graphs.
malware_analysis_orphans_total = Counter(
    "malware_analysis_orphans_total",
    "Total number of malware analyses not added to any graph",
)

#: Incremented for every analysis whose insert could not be executed.
malware_analysis_storage_errors_total = Counter(
    "malware_analysis_storage_errors_total",
    "Total number of malware analyses that failed to be stored",
)


def _verdict_value(outcome: ScanOutcome) -> str:
    return str(getattr(outcome.verdict, "value", outcome.verdict))


@dataclass(frozen=True)
class BatchSummary:
    """Per-verdict grouping of a batch.

    Attributes:
        by_verdict: Verdict → files, in vocabulary order (empty groups
            included), followed by any verdicts outside the vocabulary.
        unexpected_verdicts: Verdicts outside the vocabulary, sorted.  Always
            empty unless something upstream is broken.
        orphans: Outcomes whose analysis was added to no graph.
        storage_failures: Outcomes whose analysis could not be written.
    """

    by_verdict: dict[str, list[str]]
    unexpected_verdicts: tuple[str, ...] = ()
    orphans: tuple[ScanOutcome, ...] = field(default_factory=tuple)
    storage_failures: tuple[ScanOutcome, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return sum(len(files) for files in self.by_verdict.values())


def summarize(outcomes: Sequence[ScanOutcome]) -> BatchSummary:
    """Group *outcomes* by verdict and pick out the ones needing attention."""
    observed = {_verdict_value(o) for o in outcomes}
    unexpected = tuple(sorted(observed - set(VERDICT_VOCABULARY)))

    by_verdict: dict[str, list[str]] = {v: [] for v in VERDICT_VOCABULARY + unexpected}
    for outcome in outcomes:
        by_verdict[_verdict_value(outcome)].append(outcome.file)

    return BatchSummary(
        by_verdict=by_verdict,
        unexpected_verdicts=unexpected,
        orphans=tuple(o for o in outcomes if o.is_orphan),
        storage_failures=tuple(o for o in outcomes if o.storage_error is not None),
    )


class ResultReporter:
    """Logs batch summaries and feeds the Prometheus counters."""

    def report(self, summary: BatchSummary) -> None:
        logger.info("Finished scanning %d file(s).", summary.total)
        logger.info(
            "Files per STIX Malware Analysis result:\n%s",
            "\n".join(
                f"- {verdict} : {json.dumps(files)}"
                for verdict, files in summary.by_verdict.items()
            ),
        )

        for verdict, files in summary.by_verdict.items():
            if files:
                malware_analyses_total.labels(result=verdict).inc(len(files))

        if summary.unexpected_verdicts:
            logger.error(
                "Verdicts outside the STIX malware-result vocabulary: %s",
                list(summary.unexpected_verdicts),
            )

        if summary.orphans:
            malware_analysis_orphans_total.inc(len(summary.orphans))
            logger.warning(
                "Files for which the malware analysis was not added to any graph:\n%s",
                json.dumps([o.as_log_dict() for o in summary.orphans], indent=2),
            )

        if summary.storage_failures:
            malware_analysis_storage_errors_total.inc(len(summary.storage_failures))
            logger.error(
                "Files for which the malware analysis could not be stored:\n%s",
                json.dumps([o.as_log_dict() for o in summary.storage_failures], indent=2),
            )
