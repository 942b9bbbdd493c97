"""Shared pytest configuration and fixtures for the virus scanner tests.

The triplestore is replaced by an in-memory :class:`rdflib.Dataset` served
through :class:`httpx.MockTransport`, so SPARQL statements built by the
service are really parsed and executed.  The scan engine is replaced by
:class:`FakeEngine`.  No clamd daemon or triplestore is needed.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
from rdflib import Dataset, URIRef
from rdflib.namespace import RDF

from virus_scanner.engines.base import EngineReport, ScanEngine
from virus_scanner.sparql.client import SparqlClient
from virus_scanner.sparql.terms import FILE_DATA_OBJECT, NIE

SPARQL_ENDPOINT = "http://triplestore.test/sparql"
GRAPH_A = "http://mu.semte.ch/graphs/organizations/a"
GRAPH_B = "http://mu.semte.ch/graphs/organizations/b"

_UPDATE_RE = re.compile(r"\b(INSERT|DELETE)\b", re.IGNORECASE)


class FakeTriplestore:
    """rdflib-backed SPARQL endpoint for :class:`httpx.MockTransport`."""

    def __init__(self) -> None:
        self.dataset = Dataset()
        self.requests: list[httpx.Request] = []
        self.updates: list[str] = []
        self.queries: list[str] = []
        self.fail_updates = False

    def add_file(
        self,
        logical: str,
        physical: str | None = None,
        graphs: tuple[str, ...] = (GRAPH_A,),
    ) -> None:
        """Store *logical* as a file in *graphs*, backed by *physical*."""
        for g in graphs:
            graph = self.dataset.graph(URIRef(g))
            graph.add((URIRef(logical), RDF.type, FILE_DATA_OBJECT))
            if physical is not None:
                graph.add((URIRef(physical), RDF.type, FILE_DATA_OBJECT))
                graph.add((URIRef(physical), NIE.dataSource, URIRef(logical)))

    def objects_in(self, graph: str, subject: str, predicate: str) -> list[Any]:
        g = self.dataset.graph(URIRef(graph))
        return list(g.objects(URIRef(subject), URIRef(predicate)))

    def analyses_in(self, graph: str) -> list[str]:
        g = self.dataset.graph(URIRef(graph))
        stix = URIRef("http://docs.oasis-open.org/cti/ns/stix#MalwareAnalysis")
        return sorted(str(s) for s in g.subjects(RDF.type, stix))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        statement = parse_qs(request.content.decode())["query"][0]
        if _UPDATE_RE.search(statement):
            self.updates.append(statement)
            if self.fail_updates:
                return httpx.Response(500, text="Virtuoso 42000 Error")
            self.dataset.update(statement)
            return httpx.Response(200, content=b"")
        self.queries.append(statement)
        result = self.dataset.query(statement)
        return httpx.Response(
            200,
            content=result.serialize(format="json"),
            headers={"Content-Type": "application/sparql-results+json"},
        )


class FakeEngine(ScanEngine):
    """Scan engine stub answering from a per-path table.

    Paths not in *results* are clean.  A value may be an
    :class:`EngineReport` or an exception instance to raise.
    """

    def __init__(self, results: dict[str, Any] | None = None, alive: bool = True) -> None:
        self.results = results or {}
        self.alive = alive
        self.scanned: list[Path] = []

    async def scan(self, file_path: Path) -> EngineReport:
        self.scanned.append(file_path)
        result = self.results.get(str(file_path), EngineReport(infected=False))
        if isinstance(result, BaseException):
            raise result
        return result

    async def ping(self) -> bool:
        return self.alive


@pytest.fixture
def triplestore() -> FakeTriplestore:
    return FakeTriplestore()


@pytest.fixture
async def sparql(triplestore: FakeTriplestore):
    transport = httpx.MockTransport(triplestore.handler)
    async with httpx.AsyncClient(transport=transport) as http_client:
        yield SparqlClient(SPARQL_ENDPOINT, http_client=http_client)


@pytest.fixture
def share_root(tmp_path: Path) -> Path:
    root = tmp_path / "share"
    (root / "uploads").mkdir(parents=True)
    return root


@pytest.fixture
def make_upload(share_root: Path):
    """Write an upload below the share; return its ``share://`` IRI."""

    def _make(name: str, content: bytes = b"%PDF-1.4 test") -> str:
        (share_root / "uploads" / name).write_bytes(content)
        return f"share://uploads/{name}"

    return _make


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()
