"""Abstract scan engine interface.

Every malware-scanning backend is wrapped in a :class:`ScanEngine`.  The
default implementation is :class:`~virus_scanner.engines.clamav.ClamAVAdapter`.

The contract is a point-in-time infection check against a path on shared
storage.  An engine holds no state across calls.

Usage::

    from virus_scanner.engines.base import EngineReport, ScanEngine

    class MyEngine(ScanEngine):
        async def scan(self, file_path: Path) -> EngineReport:
            ...

        async def ping(self) -> bool:
            ...
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class EngineReport:
    """Definitive answer from a scan engine for a single file.

    Attributes:
        infected: ``True`` when the engine detected at least one threat,
            ``False`` when the file is clean.  There is no third state: an
            engine that cannot decide raises :class:`ScanEngineError`.
        threat_names: Threat identifiers as reported by the engine, in
            report order (e.g. ``("Win.Test.EICAR_HDB-1",)``).  Empty when
            the file is clean.
    """

    infected: bool
    threat_names: tuple[str, ...] = field(default_factory=tuple)


class ScanEngineError(Exception):
    """Raised when the scan engine is unreachable or returns no usable verdict.

    An indeterminate result must never be reported as clean; callers map
    this exception to the ``unknown`` verdict.
    """


class ScanEngine(ABC):
    """Abstract interface for malware scan engine adapters.

    The orchestrator depends only on this interface, never on a concrete
    adapter class.

    Example (minimal stub for unit tests)::

        class FakeEngine(ScanEngine):
            async def scan(self, file_path: Path) -> EngineReport:
                return EngineReport(infected=False)

            async def ping(self) -> bool:
                return True
    """

    @abstractmethod
    async def scan(self, file_path: Path) -> EngineReport:
        """Scan *file_path* and return the engine's verdict.

        Args:
            file_path: Absolute path to the file to scan.  The engine
                process must be able to read it.

        Returns:
            An :class:`EngineReport`.

        Raises:
            ScanEngineError: If the engine is unreachable or its answer is
                indeterminate.
            FileNotFoundError: If *file_path* does not exist.
        """

    @abstractmethod
    async def ping(self) -> bool:
        """Return ``True`` if the engine is reachable and ready to scan.

        Must never raise.
        """
