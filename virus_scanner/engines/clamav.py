"""ClamAV engine adapter.

Connects to a running ``clamd`` daemon and delegates file scanning to it.
By default the adapter talks to clamd over its Unix domain socket
(``/var/run/clamav/clamd.ctl``), which is how clamd runs next to this service
in the stack; a TCP connection is used instead when a host is configured.

clamd reads the file directly from disk, so the daemon must see the same
``/share`` mount as this service.

**Async compatibility:** the ``clamd`` library is synchronous.  All blocking
calls are dispatched to :func:`asyncio.to_thread` so the event loop is never
blocked while clamd scans a large upload.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import clamd

from virus_scanner.engines.base import EngineReport, ScanEngine, ScanEngineError

logger = logging.getLogger(__name__)

_STATUS_OK = "OK"
_STATUS_FOUND = "FOUND"
_STATUS_ERROR = "ERROR"


def _parse_clamd_response(
    response: dict[str, tuple[str, str | None]] | None,
) -> EngineReport:
    """Turn a clamd ``SCAN`` response into an :class:`EngineReport`.

    clamd answers with a dict mapping each scanned path to a
    ``(status, detail)`` tuple:

    * ``("OK", None)``       – clean.
    * ``("FOUND", name)``    – threat *name* detected.
    * ``("ERROR", message)`` – clamd could not scan the item.

    Raises:
        ScanEngineError: For an empty response, an ``ERROR`` entry or an
            unrecognised status.  None of these may be read as clean.
    """
    if not response:
        raise ScanEngineError("clamd returned an empty response: unable to scan")

    threat_names: list[str] = []
    for path, (status, detail) in response.items():
        if status == _STATUS_FOUND:
            threat_names.append(detail or "UNKNOWN")
        elif status == _STATUS_ERROR:
            raise ScanEngineError(f"clamd could not scan {path}: {detail}")
        elif status != _STATUS_OK:
            raise ScanEngineError(
                f"Unexpected clamd status {status!r} for {path}"
            )

    return EngineReport(infected=bool(threat_names), threat_names=tuple(threat_names))


class ClamAVAdapter(ScanEngine):
    """Scan engine adapter for the ClamAV daemon (``clamd``).

    A new clamd client, and with it a new socket connection, is created for
    every call.  clamd does not multiplex requests on one connection and a
    fresh connection is cheap next to a file scan.

    Args:
        socket_path: Path of the clamd Unix socket.  Used when *host* is
            empty.
        host: Hostname of a clamd daemon listening on TCP.  When set, the
            Unix socket is ignored.
        port: clamd TCP port.
        timeout: Socket timeout in seconds, or ``None`` for no timeout.

    Example::

        adapter = ClamAVAdapter(socket_path="/var/run/clamav/clamd.ctl")
        report = await adapter.scan(Path("/share/uploads/report.pdf"))
        if report.infected:
            print(report.threat_names)
    """

    ENGINE_NAME = "clamav"

    def __init__(
        self,
        socket_path: str = "/var/run/clamav/clamd.ctl",
        host: str = "",
        port: int = 3310,
        timeout: float | None = None,
    ) -> None:
        self._socket_path = socket_path
        self._host = host
        self._port = port
        self._timeout = timeout

    @property
    def address(self) -> str:
        if self._host:
            return f"{self._host}:{self._port}"
        return self._socket_path

    # ------------------------------------------------------------------
    # ScanEngine interface
    # ------------------------------------------------------------------

    async def scan(self, file_path: Path) -> EngineReport:
        """Scan *file_path* with clamd's ``SCAN`` command.

        Raises:
            FileNotFoundError: If *file_path* does not exist locally.
            ScanEngineError: If clamd is unreachable or cannot give a verdict.
        """
        if not file_path.exists():
            raise FileNotFoundError(f"File not found on disk: {file_path}")

        logger.info("Running virus scan on file: %s", file_path)
        try:
            response = await asyncio.to_thread(self._sync_scan_path, str(file_path))
        except clamd.ConnectionError as exc:
            raise ScanEngineError(
                f"ClamAV daemon unreachable at {self.address}"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise ScanEngineError(f"ClamAV scan failed: {exc}") from exc

        report = _parse_clamd_response(response)
        logger.info(
            "ClamAV scan complete path=%s infected=%s threats=%s",
            file_path,
            report.infected,
            list(report.threat_names),
        )
        return report

    async def ping(self) -> bool:
        """Return ``True`` if clamd answers ``PONG``."""
        try:
            response = await asyncio.to_thread(self._sync_ping)
            return response == "PONG"
        except Exception as exc:  # noqa: BLE001
            logger.warning("ClamAV ping failed address=%s error=%r", self.address, exc)
            return False

    # ------------------------------------------------------------------
    # Synchronous helpers (run inside asyncio.to_thread)
    # ------------------------------------------------------------------

    def _get_client(self) -> Any:
        if self._host:
            return clamd.ClamdNetworkSocket(
                host=self._host,
                port=self._port,
                timeout=self._timeout,
            )
        return clamd.ClamdUnixSocket(path=self._socket_path, timeout=self._timeout)

    def _sync_scan_path(self, file_path: str) -> dict[str, tuple[str, Any]]:
        client = self._get_client()
        return client.scan(file_path)  # type: ignore[no-any-return]

    def _sync_ping(self) -> str:
        client = self._get_client()
        return client.ping()  # type: ignore[no-any-return]
