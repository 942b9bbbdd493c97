"""Pydantic schemas for the direct ``/scan`` endpoint."""

from __future__ import annotations

from pydantic import BaseModel, StrictStr, field_validator

from virus_scanner.core.resolver import is_physical_file
from virus_scanner.sparql.terms import sparql_uri


class ScanRequest(BaseModel):
    """Request body for ``POST /scan``.

    Physical ``share://`` IRIs are accepted as-is so the endpoint can reject
    them as unprocessable; every other value must serialise as an IRI.
    """

    file: StrictStr

    @field_validator("file")
    @classmethod
    def validate_file(cls, v: str) -> str:
        if not v:
            raise ValueError("`file` not a non-empty String")
        if not is_physical_file(v):
            sparql_uri(v)
        return v
