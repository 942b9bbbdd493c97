"""Persistence of scan outcomes as STIX ``MalwareAnalysis`` resources.

An analysis is written into every graph in which the scanned file is
asserted as an ``nfo:FileDataObject``, so the analysis is visible to exactly
the users who can see the file.  The insert is conditional on that
assertion in one statement; there is no read-then-write window.

Each call creates a new resource with a fresh UUID.  Repeated scans of the
same file accumulate analyses; nothing is merged or updated.

If the file is asserted in no graph, the insert matches nothing and the
analysis is an *orphan*: it exists only in memory.
:attr:`RecordingResult.is_orphan` makes that explicit for callers.

Usage::

    recorder = AnalysisRecorder(sparql_client)
    result = await recorder.record(outcome.file, outcome)
    if result.is_orphan:
        logger.warning("analysis %s was not stored", result.record.uri)
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from opentelemetry import trace

from virus_scanner.core.outcome import ScanOutcome, utcnow
from virus_scanner.sparql.client import SparqlClient, StorageError
from virus_scanner.sparql.terms import (
    sparql_datetime,
    sparql_string,
    sparql_uri,
)

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("virus_scanner.recorder")

DEFAULT_ANALYSIS_BASE_IRI = "http://data.gift/virus-scanner/analysis/id/"

_PREFIXES = """
PREFIX stix: <http://docs.oasis-open.org/cti/ns/stix#>
PREFIX mu: <http://mu.semte.ch/vocabularies/core/>
PREFIX nfo: <http://www.semanticdesktop.org/ontologies/2007/03/22/nfo#>
"""


@dataclass(frozen=True)
class MalwareAnalysisRecord:
    """In-memory view of one ``stix:MalwareAnalysis`` resource.

    Attributes:
        id: Generated UUID, stored as ``mu:uuid``.
        uri: Resource IRI (base IRI + *id*).
        sample_ref: The scanned file IRI.
        result: Verdict string from the STIX result vocabulary.
        analysis_started: Start of the scan attempt.
        analysis_ended: End of the scan attempt.
        threat_names: Threats named by the engine.
    """

    id: str
    uri: str
    sample_ref: str
    result: str
    analysis_started: datetime
    analysis_ended: datetime
    threat_names: tuple[str, ...] = field(default_factory=tuple)

    @property
    def result_name(self) -> str | None:
        """Threat names as one opaque JSON string, or ``None`` if there are none."""
        if not self.threat_names:
            return None
        return json.dumps(list(self.threat_names))


@dataclass(frozen=True)
class RecordingResult:
    """What :meth:`AnalysisRecorder.record` built and where it was stored.

    Attributes:
        record: The analysis, returned even when it was stored nowhere.
        graphs_written: Graphs now holding the analysis.  Empty for an
            orphan.
        graphs_known: ``False`` when the analysis was written but the
            graphs holding it could not be looked up.
    """

    record: MalwareAnalysisRecord
    graphs_written: frozenset[str] = frozenset()
    graphs_known: bool = True

    @property
    def is_orphan(self) -> bool:
        return self.graphs_known and not self.graphs_written

    def to_resource(self) -> dict[str, Any]:
        """Render the analysis as a JSON:API ``malware-analyses`` resource object."""
        record = self.record
        return {
            "data": {
                "type": "malware-analyses",
                "id": record.id,
                "attributes": {
                    "uri": record.uri,
                    "analysis-started": record.analysis_started.isoformat(),
                    "analysis-ended": record.analysis_ended.isoformat(),
                    "result": record.result,
                    "result-name": record.result_name,
                    "sample-ref": record.sample_ref,
                },
            }
        }


def build_insert(record: MalwareAnalysisRecord) -> str:
    """Return the conditional INSERT statement for *record*."""
    result_name = (
        f"\n            stix:result_name {sparql_string(record.result_name)};"
        if record.result_name is not None
        else ""
    )
    return f"""{_PREFIXES}
    INSERT {{
      GRAPH ?g {{
        {sparql_uri(record.uri)}
            a stix:MalwareAnalysis;
            mu:uuid {sparql_string(record.id)};
            stix:analysis_started {sparql_datetime(record.analysis_started)};
            stix:analysis_ended {sparql_datetime(record.analysis_ended)};
            stix:result {sparql_string(record.result)};{result_name}
            stix:sample_ref {sparql_uri(record.sample_ref)} .
      }}
    }}
    WHERE {{
      GRAPH ?g {{
        {sparql_uri(record.sample_ref)} a nfo:FileDataObject .
      }}
    }}
    """


def build_graphs_query(record: MalwareAnalysisRecord) -> str:
    """Return the query listing the graphs that hold *record*."""
    return f"""{_PREFIXES}
    SELECT DISTINCT ?g
    WHERE {{
      GRAPH ?g {{
        {sparql_uri(record.uri)} a stix:MalwareAnalysis .
      }}
    }}
    """


class AnalysisRecorder:
    """Builds and stores malware-analysis resources.

    Args:
        sparql: Client used for the insert and the follow-up graph query.
        base_iri: Base IRI that generated UUIDs are appended to.
    """

    def __init__(
        self,
        sparql: SparqlClient,
        base_iri: str = DEFAULT_ANALYSIS_BASE_IRI,
    ) -> None:
        self._sparql = sparql
        self._base_iri = base_iri

    def build_record(self, file: str, outcome: ScanOutcome) -> MalwareAnalysisRecord:
        analysis_id = str(uuid.uuid4())
        return MalwareAnalysisRecord(
            id=analysis_id,
            uri=self._base_iri + analysis_id,
            sample_ref=file,
            result=getattr(outcome.verdict, "value", outcome.verdict),
            analysis_started=outcome.started_at,
            analysis_ended=outcome.ended_at or utcnow(),
            threat_names=outcome.threat_names,
        )

    async def record(self, file: str, outcome: ScanOutcome) -> RecordingResult:
        """Store a new analysis of *file* carrying *outcome*.

        Returns:
            The record and the graphs it landed in.  ``graphs_written`` is
            empty when *file* is not a file in any graph.  When the insert
            succeeded but the graph lookup after it failed,
            ``graphs_known`` is ``False``.

        Raises:
            StorageError: The insert could not be built or executed.
        """
        record = self.build_record(file, outcome)

        with tracer.start_as_current_span("virus_scanner.record") as span:
            span.set_attribute("analysis.id", record.id)
            span.set_attribute("analysis.result", record.result)
            try:
                try:
                    insert = build_insert(record)
                except ValueError as exc:
                    raise StorageError(
                        f"Cannot build malware analysis insert for <{file}>: {exc}"
                    ) from exc
                await self._sparql.update(insert)
            except StorageError as exc:
                logger.error(
                    "Failed to store malware analysis of <%s> in triplestore: %s",
                    file,
                    exc,
                )
                span.record_exception(exc)
                raise

            try:
                bindings = await self._sparql.query(build_graphs_query(record))
            except StorageError as exc:
                logger.warning(
                    "Stored malware analysis %s for <%s>, but could not look up "
                    "the graphs it was added to: %s",
                    record.uri,
                    file,
                    exc,
                )
                span.record_exception(exc)
                return RecordingResult(record=record, graphs_known=False)

            graphs = frozenset(b["g"]["value"] for b in bindings if "g" in b)
            span.set_attribute("analysis.graphs_written", len(graphs))

        result = RecordingResult(record=record, graphs_written=graphs)
        if result.is_orphan:
            logger.warning(
                "Malware analysis %s for <%s> was not added to any graph; "
                "the file is not a nfo:FileDataObject in any graph",
                record.uri,
                file,
            )
        else:
            logger.info(
                "Stored malware analysis %s result=%s for <%s> in graphs %s",
                record.uri,
                record.result,
                file,
                sorted(graphs),
            )
        return result
