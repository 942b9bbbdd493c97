"""Delta notification endpoint.

POST /delta
    Receives mu-delta-notifier changesets.  Newly inserted logical files are
    scanned in the background:

    * ``400``: the body is not a list of changesets.
    * ``204``: nothing to scan (no inserts, or no logical files inserted).
    * ``202``: a scan batch was started.  Results are only visible as
      stored malware analyses and in the logs.
"""

from __future__ import annotations

import json
import logging

import pydantic
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from virus_scanner.core.delta import has_inserts, logical_files_in_delta
from virus_scanner.schemas.delta import ChangeDelta

logger = logging.getLogger(__name__)

router = APIRouter(tags=["delta"])


@router.post("/delta", status_code=202)
async def receive_delta(request: Request) -> Response:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Delta body is not valid JSON")

    if request.app.state.settings.log_incoming_delta:
        logger.info("Receiving delta : %s", json.dumps(body))

    try:
        delta = ChangeDelta.model_validate(body)
    except pydantic.ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Delta body is not a list of changesets: {exc.error_count()} error(s)",
        )

    if not has_inserts(delta):
        logger.info("Delta does not contain any insertions. Nothing should happen.")
        return Response(status_code=204)

    files = logical_files_in_delta(delta)
    if not files:
        logger.info("No FileDataObject inserts for logical files. Nothing should happen.")
        return Response(status_code=204)

    request.app.state.background.submit(files)
    return Response(status_code=202)
