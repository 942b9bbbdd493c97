"""Async SPARQL client for the triplestore.

Wraps the two store capabilities the service needs, "execute a read query"
and "execute a write statement", behind :class:`SparqlClient`.  Both are sent
as form-encoded HTTP POSTs to the configured endpoint and both ask for
``application/sparql-results+json``.

When *sudo* is enabled the ``mu-auth-sudo: true`` header is added so the
statements bypass mu-authorization group filtering: the service must see, and
write into, every graph a file lives in.

Any transport failure or non-2xx answer is raised as :class:`StorageError`.
The client never retries.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_SPARQL_JSON = "application/sparql-results+json"


class StorageError(Exception):
    """Raised when a SPARQL statement could not be executed.

    Covers an unreachable store, a timeout, a rejected (malformed) statement
    and an unparseable response body.
    """


class SparqlClient:
    """Minimal async SPARQL 1.1 protocol client.

    Args:
        endpoint: URL of the SPARQL endpoint.
        sudo: Send the ``mu-auth-sudo`` header with every request.
        timeout: Per-request timeout in seconds.
        http_client: Optional shared :class:`httpx.AsyncClient`.  When
            ``None`` a client is created per request.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        sudo: bool = True,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._sudo = sudo
        self._timeout = timeout
        self._http_client = http_client

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def query(self, query: str) -> list[dict[str, Any]]:
        """Run a SELECT *query* and return ``results.bindings``."""
        body = await self._execute(query)
        try:
            return list(body["results"]["bindings"])
        except (KeyError, TypeError) as exc:
            raise StorageError(
                f"SPARQL endpoint returned no result bindings: {body!r}"
            ) from exc

    async def update(self, statement: str) -> dict[str, Any]:
        """Run an update *statement* and return the decoded response body."""
        return await self._execute(statement)

    async def _execute(self, statement: str) -> dict[str, Any]:
        logger.debug("Executing SPARQL statement:\n%s", statement)
        try:
            response = await self._post({"query": statement})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StorageError(
                f"SPARQL endpoint answered HTTP {exc.response.status_code}: "
                f"{exc.response.text[:500]}"
            ) from exc
        except httpx.RequestError as exc:
            raise StorageError(
                f"SPARQL endpoint {self._endpoint} unreachable: {exc!r}"
            ) from exc

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise StorageError("SPARQL endpoint returned a non-JSON body") from exc

    async def _post(self, data: dict[str, str]) -> httpx.Response:
        headers = {"Accept": _SPARQL_JSON}
        if self._sudo:
            headers["mu-auth-sudo"] = "true"

        if self._http_client is not None:
            return await self._http_client.post(
                self._endpoint, data=data, headers=headers, timeout=self._timeout
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._endpoint, data=data, headers=headers)
