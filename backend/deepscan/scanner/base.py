# deepscan/scanner/base.py
"""
Shared data structures for the deep scan pipeline.

Architecture:
    Every port flows through:  Engines → Analyzer → Forensic probes → PortFinding

Engines:          Collect raw facts from a live port (banner bytes, TLS certificate).
                  Engines NEVER classify; they only gather facts.

Analyzer:         The service classifier. Pure function over engine output,
                  produces an Identification. It NEVER touches the network.

Forensic probes:  Interactive follow-up checks against services the analyzer
                  flagged (FTP, HTTP/TLS). Each probe returns a ForensicResult,
                  never raises.

The orchestrator stitches these together per port and fans out across the
port range. Everything here is plain data with no I/O.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535

# Raw banners are truncated to this many characters before leaving the core
RAW_BANNER_LIMIT = 100


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_utc() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Severity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class ForensicOutcome(str, enum.Enum):
    """
    Result of an interactive follow-up check.

    INCONCLUSIVE means the dialog did not complete as expected. Callers must
    not treat it as NOT_VULNERABLE.
    """
    VULNERABLE = "vulnerable"
    NOT_VULNERABLE = "not_vulnerable"
    INCONCLUSIVE = "inconclusive"

    def __str__(self) -> str:
        return self.value


class ScanStatus(str, enum.Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"       # another scan of the same IP was already running

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Data structures that flow through the entire pipeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanTarget:
    """
    One host to deep-scan. Created at scan start, never mutated.

    The IP is validated by the caller (host discovery, CLI); this core
    does not parse it.
    """
    ip: str
    port_range: Tuple[int, int] = (MIN_PORT, MAX_PORT)

    def __post_init__(self):
        start, end = self.port_range
        if start < MIN_PORT or end > MAX_PORT or start > end:
            raise ValueError(f"Invalid port range: {start}-{end}")

    @property
    def first_port(self) -> int:
        return self.port_range[0]

    @property
    def last_port(self) -> int:
        return self.port_range[1]

    @property
    def port_count(self) -> int:
        return self.last_port - self.first_port + 1


@dataclass(frozen=True)
class CertInfo:
    """
    Peer certificate facts extracted by the TLS engine.

    valid_from / valid_to are ISO-8601 strings when produced by the engine,
    but the classifier also accepts OpenSSL-style dates.
    """
    subject: str = "Unknown"
    issuer: str = "Unknown"
    valid_from: Optional[str] = None
    valid_to: Optional[str] = None


@dataclass(frozen=True)
class Identification:
    """Output of the service classifier for one port."""
    service_name: str
    details: str
    vulnerable: bool = False
    severity: Severity = Severity.INFO


@dataclass
class ForensicResult:
    """
    Standardized output from any forensic probe run.

    Fields:
        probe_name:       Which probe produced this (e.g., "ftp_anonymous")
        outcome:          vulnerable / not_vulnerable / inconclusive
        details:          Human-readable summary, appended to the finding
        evidence:         Probe-specific facts (e.g., exposed paths, last reply)
        duration_seconds: Wall-clock time the probe took
    """
    probe_name: str
    outcome: ForensicOutcome = ForensicOutcome.INCONCLUSIVE
    details: str = ""
    evidence: Dict[str, Any] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def vulnerable(self) -> bool:
        return self.outcome is ForensicOutcome.VULNERABLE

    @property
    def inconclusive(self) -> bool:
        return self.outcome is ForensicOutcome.INCONCLUSIVE


@dataclass(frozen=True)
class PortFinding:
    """
    Final structured result for one port, handed to the caller's callback.
    Immutable once emitted.
    """
    port: int
    service_name: str
    details: str
    vulnerable: bool = False
    severity: Severity = Severity.INFO
    raw_banner: Optional[str] = None

    def __post_init__(self):
        if not MIN_PORT <= self.port <= MAX_PORT:
            raise ValueError(f"Port out of range: {self.port}")
        if self.raw_banner is not None and len(self.raw_banner) > RAW_BANNER_LIMIT:
            object.__setattr__(self, "raw_banner", self.raw_banner[:RAW_BANNER_LIMIT])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "port": self.port,
            "service_name": self.service_name,
            "details": self.details,
            "vulnerable": self.vulnerable,
            "severity": self.severity.value,
            "raw_banner": self.raw_banner,
        }


@dataclass(frozen=True)
class ScanProgress:
    ip: str
    percent: int


@dataclass
class ScanSummary:
    """
    What a deep scan's handle resolves to: the terminal completion event.

    Always returned, even for cancelled or rejected scans.
    """
    ip: str
    status: ScanStatus
    findings: List[PortFinding] = field(default_factory=list)
    ports_scanned: int = 0
    chunks_completed: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    @property
    def vulnerable_findings(self) -> List[PortFinding]:
        return [f for f in self.findings if f.vulnerable]


class CancelToken:
    """
    Cooperative cancellation flag for one scan.

    Backed by threading.Event so cancel() may be called from any thread
    (UI thread, signal handler) while the scan runs on the event loop.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
