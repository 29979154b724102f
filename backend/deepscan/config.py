# deepscan/config.py
"""
Scan settings.

Defaults live in DEFAULT_CONFIG; every value can be overridden from the
environment (DEEPSCAN_*), and callers can derive modified copies with
ScanSettings.with_overrides().

Each port in a chunk holds at most one socket at a time, so chunk_size
must stay below the process file-descriptor limit (commonly 1024).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict

from deepscan.errors import InvalidSettingsError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "chunk_size": 500,              # Ports per fan-out/fan-in sweep
    "max_concurrency": 500,         # Upper bound on simultaneous port pipelines
    "connect_timeout": 1.0,         # Fast-scan connect (seconds)
    "banner_timeout": 1.0,          # Banner connect + first read (seconds)
    "tls_timeout": 1.4,             # TLS handshakes take more round trips
    "forensic_timeout": 1.5,        # Per round of a forensic dialog (seconds)
    "inter_chunk_delay": 0.015,     # Recovery pause between chunks (seconds)
    "forensics_enabled": True,
}

_ENV_PREFIX = "DEEPSCAN_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class ScanSettings:
    chunk_size: int = DEFAULT_CONFIG["chunk_size"]
    max_concurrency: int = DEFAULT_CONFIG["max_concurrency"]
    connect_timeout: float = DEFAULT_CONFIG["connect_timeout"]
    banner_timeout: float = DEFAULT_CONFIG["banner_timeout"]
    tls_timeout: float = DEFAULT_CONFIG["tls_timeout"]
    forensic_timeout: float = DEFAULT_CONFIG["forensic_timeout"]
    inter_chunk_delay: float = DEFAULT_CONFIG["inter_chunk_delay"]
    forensics_enabled: bool = DEFAULT_CONFIG["forensics_enabled"]

    def __post_init__(self):
        self.validate()

    @classmethod
    def from_env(cls, environ=None) -> "ScanSettings":
        """
        Build settings from DEEPSCAN_* environment variables.
        Unset variables fall back to DEFAULT_CONFIG.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for f in fields(cls):
            raw = environ.get(_ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            default = DEFAULT_CONFIG[f.name]
            try:
                if isinstance(default, bool):
                    values[f.name] = _env_bool(raw)
                elif isinstance(default, int):
                    values[f.name] = int(raw)
                else:
                    values[f.name] = float(raw)
            except ValueError as e:
                raise InvalidSettingsError(
                    f"{_ENV_PREFIX}{f.name.upper()}={raw!r} is not a valid value"
                ) from e

        if values:
            logger.debug("Scan settings overridden from environment: %s", values)
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "ScanSettings":
        """Return a copy with the given fields replaced. None values are ignored."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def validate(self) -> None:
        if self.chunk_size < 1:
            raise InvalidSettingsError("chunk_size must be >= 1")
        if self.max_concurrency < 1:
            raise InvalidSettingsError("max_concurrency must be >= 1")
        # timeouts must stay positive; every port waits on them
        for name in ("connect_timeout", "banner_timeout", "tls_timeout", "forensic_timeout"):
            if getattr(self, name) <= 0:
                raise InvalidSettingsError(f"{name} must be > 0")
        if self.inter_chunk_delay < 0:
            raise InvalidSettingsError("inter_chunk_delay must be >= 0")

    @property
    def concurrency_limit(self) -> int:
        """Simultaneous port pipelines within one chunk."""
        return min(self.max_concurrency, self.chunk_size)
