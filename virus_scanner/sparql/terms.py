"""Namespaces and SPARQL term escaping.

Values are escaped by serialising them as ``rdflib`` terms, so IRIs and
literals are written exactly as N-Triples would write them.
"""
from __future__ import annotations

from datetime import datetime

from rdflib import Literal, Namespace, URIRef
from rdflib.namespace import RDF, XSD

MU = Namespace("http://mu.semte.ch/vocabularies/core/")
NFO = Namespace("http://www.semanticdesktop.org/ontologies/2007/03/22/nfo#")
NIE = Namespace("http://www.semanticdesktop.org/ontologies/2007/01/19/nie#")
STIX = Namespace("http://docs.oasis-open.org/cti/ns/stix#")

FILE_DATA_OBJECT = NFO.FileDataObject
MALWARE_ANALYSIS = STIX.MalwareAnalysis

__all__ = [
    "FILE_DATA_OBJECT",
    "MALWARE_ANALYSIS",
    "MU",
    "NFO",
    "NIE",
    "RDF",
    "STIX",
    "sparql_datetime",
    "sparql_string",
    "sparql_uri",
]


def sparql_uri(value: str) -> str:
    """Return *value* as ``<iri>``.

    Raises:
        ValueError: If rdflib refuses to serialise *value* as an IRI
            (spaces, angle brackets, ...).
    """
    try:
        return URIRef(value).n3()
    except Exception as exc:  # rdflib raises a bare Exception here
        raise ValueError(f"not a valid IRI: {value!r}") from exc


def sparql_string(value: str) -> str:
    return Literal(value).n3()


def sparql_datetime(value: datetime) -> str:
    return Literal(value, datatype=XSD.dateTime).n3()
