"""Mapping from logical file IRIs to the bytes stored on the share.

Uploads follow the mu-file-service model: a *logical* file resource
describes the upload in the domain model, and a *physical* file resource,
whose IRI uses the ``share://`` scheme, points at the stored bytes through
``nie:dataSource``::

    <share://uploads/abc.pdf> nie:dataSource <http://example.com/files/abc> .

The ``share://`` IRI mirrors the file's location below the share mount, so
``share://uploads/abc.pdf`` lives at ``/share/uploads/abc.pdf``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from virus_scanner.sparql.client import SparqlClient
from virus_scanner.sparql.terms import sparql_uri

logger = logging.getLogger(__name__)

PHYSICAL_FILE_PREFIX = "share://"


class ResolutionError(LookupError):
    """Raised when a logical file has no physical file in the store."""

    def __init__(self, logical_file: str) -> None:
        super().__init__(f"No physical file IRI found for: {logical_file}")
        self.logical_file = logical_file


def is_physical_file(iri: str) -> bool:
    return iri.startswith(PHYSICAL_FILE_PREFIX)


def file_path_from_iri(physical_file: str, share_root: str = "/share/") -> Path:
    """Return the local path of a ``share://`` IRI below *share_root*.

    Raises:
        ValueError: If *physical_file* is not a ``share://`` IRI.
    """
    if not is_physical_file(physical_file):
        raise ValueError(f"not a physical file IRI: {physical_file!r}")
    root = share_root if share_root.endswith("/") else share_root + "/"
    return Path(root + physical_file[len(PHYSICAL_FILE_PREFIX):])


class FileResolver:
    """Looks up the physical file behind a logical file.

    Args:
        sparql: Client used for the lookup query.
        share_root: Local mount root of the share.
    """

    def __init__(self, sparql: SparqlClient, share_root: str = "/share/") -> None:
        self._sparql = sparql
        self._share_root = share_root

    async def resolve(self, logical_file: str) -> str:
        """Return the physical file IRI whose data source is *logical_file*.

        A physical IRI passed in is returned unchanged.

        The lookup assumes that a logical file has exactly one physical file,
        even when its triples are spread over several graphs.  That is not
        verified anywhere; when the store disagrees, the first binding wins
        and a warning is logged.

        Raises:
            ResolutionError: No physical file was found.
            StorageError: The lookup query failed.
        """
        if is_physical_file(logical_file):
            return logical_file

        bindings = await self._sparql.query(
            f"""
            PREFIX nie: <http://www.semanticdesktop.org/ontologies/2007/01/19/nie#>
            SELECT DISTINCT ?physicalFile
            WHERE {{
              GRAPH ?g {{
                ?physicalFile nie:dataSource {sparql_uri(logical_file)} .
              }}
            }}
            """
        )
        physical_files = [b["physicalFile"]["value"] for b in bindings if "physicalFile" in b]
        if not physical_files:
            raise ResolutionError(logical_file)

        if len(physical_files) > 1:
            logger.warning(
                "Logical file %s has %d physical files %s; assuming a single "
                "physical file and using %s",
                logical_file,
                len(physical_files),
                physical_files,
                physical_files[0],
            )
        return physical_files[0]

    def local_path(self, physical_file: str) -> Path:
        return file_path_from_iri(physical_file, self._share_root)
