"""Unit tests for virus_scanner/core/recorder.py.

The recorder runs against the in-memory rdflib triplestore from conftest, so
the generated INSERT and graph lookup are executed for real.

Coverage:
* Analysis written into exactly the graphs holding the file.
* Orphan analyses (file in no graph) are returned and flagged.
* Every call creates an independent resource with a fresh UUID.
* ``stix:result_name`` only when threats were named.
* Storage failures propagate as StorageError, including an insert that
  cannot be built from the file IRI.
* A failed graph lookup after a successful insert keeps the record with
  unknown graphs.
* JSON:API rendering of the record.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from rdflib import Literal, URIRef

from conftest import GRAPH_A, GRAPH_B, FakeTriplestore
from virus_scanner.core.outcome import ScanOutcome, Verdict
from virus_scanner.core.recorder import (
    AnalysisRecorder,
    MalwareAnalysisRecord,
    RecordingResult,
    build_insert,
)
from virus_scanner.sparql.client import StorageError
from virus_scanner.sparql.terms import MU, STIX

FILE = "http://example.com/files/1"
PHYSICAL = "share://uploads/1.pdf"
BASE_IRI = "http://data.gift/virus-scanner/analysis/id/"

STARTED = datetime(2026, 3, 1, 9, 30, 0, tzinfo=timezone.utc)
ENDED = datetime(2026, 3, 1, 9, 30, 5, tzinfo=timezone.utc)


def _outcome(
    verdict: Verdict = Verdict.BENIGN,
    threat_names: tuple[str, ...] = (),
) -> ScanOutcome:
    return ScanOutcome(
        file=FILE,
        verdict=verdict,
        threat_names=threat_names,
        started_at=STARTED,
        ended_at=ENDED,
    )


def _record(**overrides) -> MalwareAnalysisRecord:
    values = dict(
        id="0b7c7f44-5d46-4c3f-9bc7-2a1f0c1d2e3f",
        uri=BASE_IRI + "0b7c7f44-5d46-4c3f-9bc7-2a1f0c1d2e3f",
        sample_ref=FILE,
        result="malicious",
        analysis_started=STARTED,
        analysis_ended=ENDED,
        threat_names=("Eicar-Signature",),
    )
    values.update(overrides)
    return MalwareAnalysisRecord(**values)


# ---------------------------------------------------------------------------
# Graph placement
# ---------------------------------------------------------------------------


class TestGraphPlacement:
    async def test_written_into_the_file_graph(
        self, triplestore: FakeTriplestore, sparql
    ) -> None:
        triplestore.add_file(FILE, PHYSICAL, graphs=(GRAPH_A,))

        result = await AnalysisRecorder(sparql).record(FILE, _outcome())

        assert result.graphs_written == frozenset({GRAPH_A})
        assert result.is_orphan is False
        assert triplestore.analyses_in(GRAPH_A) == [result.record.uri]
        assert triplestore.analyses_in(GRAPH_B) == []

    async def test_written_into_every_graph_holding_the_file(
        self, triplestore: FakeTriplestore, sparql
    ) -> None:
        triplestore.add_file(FILE, PHYSICAL, graphs=(GRAPH_A, GRAPH_B))

        result = await AnalysisRecorder(sparql).record(FILE, _outcome())

        assert result.graphs_written == frozenset({GRAPH_A, GRAPH_B})
        assert triplestore.analyses_in(GRAPH_A) == [result.record.uri]
        assert triplestore.analyses_in(GRAPH_B) == [result.record.uri]

    async def test_file_in_no_graph_is_an_orphan(
        self, triplestore: FakeTriplestore, sparql, caplog
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="virus_scanner.core.recorder"):
            result = await AnalysisRecorder(sparql).record(FILE, _outcome())

        assert result.is_orphan is True
        assert result.graphs_written == frozenset()
        assert result.record.sample_ref == FILE
        assert triplestore.analyses_in(GRAPH_A) == []
        assert "was not added to any graph" in caplog.text

    async def test_other_file_in_store_does_not_count(
        self, triplestore: FakeTriplestore, sparql
    ) -> None:
        triplestore.add_file(FILE, PHYSICAL, graphs=(GRAPH_A,))

        result = await AnalysisRecorder(sparql).record(
            "http://example.com/files/other", _outcome()
        )
        assert result.is_orphan is True


# ---------------------------------------------------------------------------
# Stored triples
# ---------------------------------------------------------------------------


class TestStoredTriples:
    async def test_clean_analysis(self, triplestore: FakeTriplestore, sparql) -> None:
        triplestore.add_file(FILE, PHYSICAL)

        result = await AnalysisRecorder(sparql).record(FILE, _outcome())
        uri = result.record.uri

        assert uri == BASE_IRI + result.record.id
        assert uuid.UUID(result.record.id).version == 4
        assert triplestore.objects_in(GRAPH_A, uri, MU.uuid) == [Literal(result.record.id)]
        assert triplestore.objects_in(GRAPH_A, uri, STIX.result) == [Literal("benign")]
        assert triplestore.objects_in(GRAPH_A, uri, STIX.sample_ref) == [URIRef(FILE)]
        assert triplestore.objects_in(GRAPH_A, uri, STIX.result_name) == []

        (started,) = triplestore.objects_in(GRAPH_A, uri, STIX.analysis_started)
        (ended,) = triplestore.objects_in(GRAPH_A, uri, STIX.analysis_ended)
        assert started.toPython() == STARTED
        assert ended.toPython() == ENDED

    async def test_infected_analysis_stores_threat_names(
        self, triplestore: FakeTriplestore, sparql
    ) -> None:
        triplestore.add_file(FILE, PHYSICAL)
        outcome = _outcome(Verdict.MALICIOUS, ("Eicar-Signature", "Win.Test"))

        result = await AnalysisRecorder(sparql).record(FILE, outcome)
        uri = result.record.uri

        assert triplestore.objects_in(GRAPH_A, uri, STIX.result) == [Literal("malicious")]
        (result_name,) = triplestore.objects_in(GRAPH_A, uri, STIX.result_name)
        assert json.loads(str(result_name)) == ["Eicar-Signature", "Win.Test"]

    async def test_unknown_verdict_is_stored(
        self, triplestore: FakeTriplestore, sparql
    ) -> None:
        triplestore.add_file(FILE, PHYSICAL)
        result = await AnalysisRecorder(sparql).record(FILE, _outcome(Verdict.UNKNOWN))
        assert triplestore.objects_in(GRAPH_A, result.record.uri, STIX.result) == [
            Literal("unknown")
        ]

    async def test_repeated_records_accumulate(
        self, triplestore: FakeTriplestore, sparql
    ) -> None:
        triplestore.add_file(FILE, PHYSICAL)
        recorder = AnalysisRecorder(sparql)

        first = await recorder.record(FILE, _outcome())
        second = await recorder.record(FILE, _outcome(Verdict.UNKNOWN))

        assert first.record.id != second.record.id
        assert triplestore.analyses_in(GRAPH_A) == sorted(
            [first.record.uri, second.record.uri]
        )

    async def test_custom_base_iri(self, triplestore: FakeTriplestore, sparql) -> None:
        triplestore.add_file(FILE, PHYSICAL)
        recorder = AnalysisRecorder(sparql, base_iri="http://example.com/analyses/")

        result = await recorder.record(FILE, _outcome())

        assert result.record.uri.startswith("http://example.com/analyses/")
        assert triplestore.analyses_in(GRAPH_A) == [result.record.uri]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestStorageFailure:
    async def test_failed_insert_raises_storage_error(
        self, triplestore: FakeTriplestore, sparql, caplog
    ) -> None:
        triplestore.add_file(FILE, PHYSICAL)
        triplestore.fail_updates = True

        with caplog.at_level(logging.ERROR, logger="virus_scanner.core.recorder"):
            with pytest.raises(StorageError, match="HTTP 500"):
                await AnalysisRecorder(sparql).record(FILE, _outcome())

        assert "Failed to store malware analysis" in caplog.text
        assert triplestore.analyses_in(GRAPH_A) == []
        assert triplestore.queries == []


# ---------------------------------------------------------------------------
# Statement and resource rendering
# ---------------------------------------------------------------------------


class TestRendering:
    def test_insert_is_conditional_on_the_file_type(self) -> None:
        statement = build_insert(_record())
        assert "GRAPH ?g" in statement
        assert f"<{FILE}> a nfo:FileDataObject" in statement
        assert "stix:result_name" in statement

    def test_insert_omits_result_name_without_threats(self) -> None:
        statement = build_insert(_record(result="benign", threat_names=()))
        assert "stix:result_name" not in statement

    def test_to_resource(self) -> None:
        record = _record()
        resource = RecordingResult(record, frozenset({GRAPH_A})).to_resource()

        assert resource == {
            "data": {
                "type": "malware-analyses",
                "id": record.id,
                "attributes": {
                    "uri": record.uri,
                    "analysis-started": "2026-03-01T09:30:00+00:00",
                    "analysis-ended": "2026-03-01T09:30:05+00:00",
                    "result": "malicious",
                    "result-name": '["Eicar-Signature"]',
                    "sample-ref": FILE,
                },
            }
        }

    def test_result_name_is_none_without_threats(self) -> None:
        assert _record(threat_names=()).result_name is None


class TestStatementAndLookupFailures:
    async def test_unserialisable_file_iri_raises_storage_error(
        self, triplestore: FakeTriplestore, sparql
    ) -> None:
        with pytest.raises(StorageError, match="Cannot build malware analysis insert"):
            await AnalysisRecorder(sparql).record(
                "http://example.com/files/bad one", _outcome()
            )
        assert triplestore.updates == []

    async def test_failed_graph_lookup_keeps_the_written_record(
        self, triplestore: FakeTriplestore, sparql, caplog
    ) -> None:
        triplestore.add_file(FILE, PHYSICAL)
        sparql.query = AsyncMock(side_effect=StorageError("read timed out"))

        with caplog.at_level(logging.WARNING, logger="virus_scanner.core.recorder"):
            result = await AnalysisRecorder(sparql).record(FILE, _outcome())

        assert result.graphs_known is False
        assert result.is_orphan is False
        assert result.graphs_written == frozenset()
        assert triplestore.analyses_in(GRAPH_A) == [result.record.uri]
        assert "could not look up the graphs" in caplog.text
