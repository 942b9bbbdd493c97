"""Selection of scan targets from a change delta."""

from __future__ import annotations

from rdflib import RDF, URIRef

from virus_scanner.core.resolver import is_physical_file
from virus_scanner.schemas.delta import ChangeDelta
from virus_scanner.sparql.terms import FILE_DATA_OBJECT


def has_inserts(delta: ChangeDelta) -> bool:
    return bool(delta.inserts)


def logical_files_in_delta(delta: ChangeDelta) -> list[str]:
    """Return the logical file IRIs newly typed ``nfo:FileDataObject`` in *delta*.

    Only insertions count.  Physical (``share://``) files are dropped: they
    are scanned through their logical file, never on their own.  The result
    is duplicate free and keeps first-encounter order, so a file inserted in
    several graphs or changesets is scanned once.

    An empty list means there is nothing to do.
    """
    files: dict[str, None] = {}
    for triple in delta.inserts:
        subject, predicate, obj = triple.to_rdflib()
        if predicate != RDF.type or obj != FILE_DATA_OBJECT:
            continue
        if not isinstance(subject, URIRef):
            continue
        iri = str(subject)
        if is_physical_file(iri):
            continue
        files.setdefault(iri, None)
    return list(files)
