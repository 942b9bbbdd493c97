"""Application configuration via Pydantic Settings.

All configuration is driven by environment variables.  Every setting has a
default that matches the standard semantic.works deployment (triplestore at
``http://database:8890/sparql``, clamd on its Unix socket, uploads mounted on
``/share/``), so the service starts without any environment in a stock
docker-compose stack.

Usage::

    from virus_scanner.config import get_settings

    settings = get_settings()
    print(settings.sparql_endpoint)

The ``get_settings`` function is cached with ``functools.lru_cache``.  The
settings object is read once at startup by
:func:`~virus_scanner.main.create_app` and handed to each component; no
component reads the environment on its own.  To override settings in tests,
construct ``Settings(...)`` directly and pass it to ``create_app``.
"""
from __future__ import annotations

import functools
import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Virus scanner service settings.

    Environment variables are read case-insensitively.  A ``.env`` file in the
    working directory is loaded automatically when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Triplestore
    sparql_endpoint: str = Field(
        default="http://database:8890/sparql",
        description="SPARQL endpoint used for both queries and updates",
    )
    sparql_sudo: bool = Field(
        default=True,
        description="Send the mu-auth-sudo header so queries bypass mu-authorization",
    )
    sparql_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout for a single SPARQL request",
    )

    # ClamAV
    clamd_socket: str = Field(
        default="/var/run/clamav/clamd.ctl",
        description="Path of the clamd Unix domain socket",
    )
    clamd_host: str = Field(
        default="",
        description="clamd TCP host; when empty the Unix socket is used instead",
    )
    clamd_port: int = Field(default=3310, ge=1, le=65535)
    clamd_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Socket timeout for clamd; None leaves the library default (no timeout)",
    )

    # Files and resources
    share_root: str = Field(
        default="/share/",
        description="Local mount root that replaces the share:// prefix of physical file IRIs",
    )
    analysis_base_iri: str = Field(
        default="http://data.gift/virus-scanner/analysis/id/",
        description="Base IRI that generated malware-analysis identifiers are appended to",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_incoming_delta: bool = Field(
        default=False,
        description="Log the full body of every incoming delta notification",
    )
    log_incoming_scan_requests: bool = Field(
        default=False,
        description="Log the full body of every incoming /scan request",
    )

    environment: str = Field(
        default="production",
        description="Deployment environment: development, staging, or production",
    )

    @field_validator("sparql_endpoint")
    @classmethod
    def validate_sparql_endpoint(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("sparql_endpoint must be an http(s) URL")
        return v

    @field_validator("share_root")
    @classmethod
    def validate_share_root(cls, v: str) -> str:
        return v if v.endswith("/") else v + "/"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    The first call reads environment variables (and ``.env``).  Subsequent
    calls return the cached instance.  Clear the cache with
    ``get_settings.cache_clear()`` between tests.
    """
    return Settings()
