"""Triplestore access: the SPARQL client and term helpers."""

from virus_scanner.sparql.client import SparqlClient, StorageError

__all__ = ["SparqlClient", "StorageError"]
