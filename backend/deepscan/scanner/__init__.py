# deepscan/scanner/__init__.py
"""
Deep scan engine.

Usage:
    from deepscan.scanner import ScanManager

    manager = ScanManager()
    summary = await manager.run_deep_scan("192.168.1.20", on_port_found=print)

Architecture:
    ScanManager            - caller-owned registry of active scans, cancel(ip)
    └── DeepScanOrchestrator - chunked fan-out over the port range
        ├── Engines (collect raw facts)
        │   ├── banner_engine  - first bytes from a raw TCP connection
        │   └── tls_engine     - peer certificate, trust checks disabled
        ├── Analyzers (interpret facts)
        │   └── service_classifier - ordered rule list → Identification
        └── Forensics (interactive follow-ups)
            ├── ftp_anonymous   - anonymous FTP login dialog
            └── sensitive_files - exposed .env / .git / config backups
    HostBatch              - several hosts, a few at a time
"""

from deepscan.scanner.base import (
    CertInfo,
    ForensicOutcome,
    ForensicResult,
    Identification,
    PortFinding,
    ScanProgress,
    ScanStatus,
    ScanSummary,
    ScanTarget,
    Severity,
)
from deepscan.scanner.batch import HostBatch, scan_hosts
from deepscan.scanner.orchestrator import DeepScanOrchestrator
from deepscan.scanner.session import ScanManager

__all__ = [
    "ScanManager", "DeepScanOrchestrator", "HostBatch", "scan_hosts",
    "CertInfo", "ForensicOutcome", "ForensicResult", "Identification",
    "PortFinding", "ScanProgress", "ScanStatus", "ScanSummary",
    "ScanTarget", "Severity",
]
