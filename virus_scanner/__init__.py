"""Virus scanner service: ClamAV scans of uploaded files, stored as STIX malware analyses."""

__version__ = "1.0.0"
