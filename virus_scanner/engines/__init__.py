"""Scan engine adapters for the virus scanner service.

Public re-exports for the engines package.  Import adapters via this
module to avoid coupling to internal module layout::

    from virus_scanner.engines import ClamAVAdapter, EngineReport, ScanEngine
"""

from virus_scanner.engines.base import EngineReport, ScanEngine, ScanEngineError
from virus_scanner.engines.clamav import ClamAVAdapter

__all__ = [
    "ClamAVAdapter",
    "EngineReport",
    "ScanEngine",
    "ScanEngineError",
]
