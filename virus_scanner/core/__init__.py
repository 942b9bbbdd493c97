"""Core scanning pipeline components.

Delta filtering, logical → physical file resolution, the per-file scan
orchestrator, persistence of malware analyses and batch reporting.
"""
