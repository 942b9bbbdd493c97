"""Direct single-file scan endpoint.

POST /scan
    Body ``{"file": "<logical file IRI>"}``.  Scans the file, stores the
    malware analysis and returns it.

    * ``201``: the analysis as a JSON:API ``malware-analyses`` resource.
      A failed scan still answers 201 with result ``unknown``.  An analysis
      that was added to no graph (the file is not in the store) is returned
      as well and logged as an orphan.
    * ``400``: ``file`` missing, not a non-empty string, or not an IRI.
    * ``422``: ``file`` is a physical (``share://``) file IRI.
    * ``500``: the analysis could not be stored, or any other fault.
"""

from __future__ import annotations

import json
import logging

import pydantic
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from virus_scanner.core.resolver import is_physical_file
from virus_scanner.schemas.scan import ScanRequest
from virus_scanner.sparql.client import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scan"])


@router.post("/scan", status_code=201)
async def scan_file(request: Request) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body is not valid JSON")

    if request.app.state.settings.log_incoming_scan_requests:
        logger.info("Receiving scan request : %s", json.dumps(body))

    try:
        scan_request = ScanRequest.model_validate(body)
    except pydantic.ValidationError:
        raise HTTPException(status_code=400, detail="`file` not a non-empty String")

    if is_physical_file(scan_request.file):
        raise HTTPException(
            status_code=422,
            detail="`file` is a physical file IRI, should be a logical file IRI",
        )

    try:
        outcome = await request.app.state.scan_service.scan_file(scan_request.file)
    except StorageError as exc:
        logger.error("Storing the malware analysis of %s failed: %s", scan_request.file, exc)
        raise HTTPException(status_code=500, detail=f"Uncaught error in /scan: {exc}")

    recording = outcome.recording
    if recording.is_orphan:
        logger.warning(
            "Malware analysis %s of %s was not added to any graph",
            recording.record.uri,
            scan_request.file,
        )
    return JSONResponse(content=recording.to_resource(), status_code=201)
