# deepscan/scanner/analyzers/service_classifier.py
"""
Service Classifier.

Turns raw engine output (banner text, certificate facts) plus the port
number into an Identification. Pure and deterministic, no I/O.

Classification order (first matching rule wins):
    1. Certificate present        → TLS/SSL Service
    2. Banner present             → HTTP / SSH / SMTP / FTP / web fallback / custom
    3. Nothing received           → port-number heuristics (PORT_GUESS_TABLE)

Rules are plain functions in CLASSIFICATION_RULES. Each returns an
Identification or None to pass to the next rule, so priority is the list
order and nothing else.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional

from deepscan.scanner.base import CertInfo, Identification, Severity

logger = logging.getLogger(__name__)

Rule = Callable[[int, Optional[str], Optional[CertInfo]], Optional[Identification]]


# ---------------------------------------------------------------------------
# Port guess table
#
# Used only when a port accepted a connection but sent nothing and spoke no
# TLS. Each entry is the service we assume from the port number alone.
#
# Fields:
#   label:      Service name reported to the caller
#   severity:   info, or critical for services that should never be
#               reachable from the subnet
#   details:    Explanation shown next to the finding
# ---------------------------------------------------------------------------

NO_BANNER_DETAILS = "No banner replied"

PORT_GUESS_TABLE: Dict[int, Dict[str, str]] = {
    22: {"label": "SSH (Guessed)", "severity": "info", "details": NO_BANNER_DETAILS},
    23: {
        "label": "Telnet (Guessed)",
        "severity": "critical",
        "details": (
            "No banner replied. Telnet sends credentials in cleartext; "
            "an open telnet port is high-risk even without interaction."
        ),
    },
    53: {"label": "DNS (Guessed)", "severity": "info", "details": NO_BANNER_DETAILS},
    3389: {"label": "RDP (Guessed)", "severity": "info", "details": NO_BANNER_DETAILS},

    # Databases and caches
    3306: {"label": "MySQL Database", "severity": "critical",
           "details": "MySQL port exposed to local subnet."},
    1433: {"label": "MSSQL Database", "severity": "critical",
           "details": "Microsoft SQL Server port exposed to local subnet."},
    27017: {"label": "MongoDB Database", "severity": "critical",
            "details": "MongoDB port exposed to local subnet."},
    6379: {"label": "Redis Cache", "severity": "critical",
           "details": "Redis port exposed to local subnet (no auth by default)."},
    5432: {"label": "PostgreSQL Database", "severity": "critical",
           "details": "PostgreSQL port exposed to local subnet."},
}

UNKNOWN_SERVICE = "Unknown TCP Service"
UNKNOWN_DETAILS = "Port is open, but dropped connection before sending data."


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SERVER_HEADER = re.compile(r"Server:\s*(.+)", re.IGNORECASE)
_FTP_MARKER = re.compile(r"FTP|vsFTPd|ProFTPD", re.IGNORECASE)
_LOCATION_HEADER = re.compile(r"Location:\s*(\S+)", re.IGNORECASE)
_HTTP_STATUS = re.compile(r"HTTP/\d(?:\.\d)?\s+(\d{3})")

_CERT_DATE_FORMATS = [
    "%b %d %H:%M:%S %Y GMT",
    "%b  %d %H:%M:%S %Y GMT",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d",
]


def parse_cert_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse certificate date strings (ISO-8601 or OpenSSL style)."""
    if not date_str:
        return None
    text = date_str.strip()
    for fmt in _CERT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def first_line(banner: str) -> str:
    lines = banner.splitlines()
    return lines[0].strip() if lines else banner


def _identified(label: str, details: str, severity: str = "info") -> Identification:
    sev = Severity(severity)
    return Identification(
        service_name=label,
        details=details,
        vulnerable=sev is Severity.CRITICAL,
        severity=sev,
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _rule_tls_certificate(port, banner, cert) -> Optional[Identification]:
    if cert is None:
        return None
    expires = ""
    expiry = parse_cert_date(cert.valid_to)
    if expiry is not None:
        expires = f" | Expiration: {expiry.date().isoformat()}"
    return _identified(
        "TLS/SSL Service",
        f"Cert Subject: {cert.subject} | Issuer: {cert.issuer}{expires}",
    )


def _rule_http_server_header(port, banner, cert) -> Optional[Identification]:
    if not banner:
        return None
    match = _SERVER_HEADER.search(banner)
    if not match:
        return None
    return _identified("HTTP Web Server", f"Server Header: {match.group(1).strip()}")


def _rule_ssh(port, banner, cert) -> Optional[Identification]:
    if not banner or not banner.startswith("SSH-"):
        return None
    return _identified("SSH Server", first_line(banner))


def _rule_smtp(port, banner, cert) -> Optional[Identification]:
    # FTP servers greet with 220 too; leave those to the FTP rule
    if not banner or not banner.startswith("220 ") or _FTP_MARKER.search(banner):
        return None
    return _identified("SMTP Mail Server", first_line(banner))


def _rule_ftp(port, banner, cert) -> Optional[Identification]:
    if not banner or not _FTP_MARKER.search(banner):
        return None
    return _identified("FTP Server", first_line(banner))


def _rule_banner_fallback(port, banner, cert) -> Optional[Identification]:
    if not banner:
        return None

    head = re.sub(r"[\r\n]+", " ", banner[:100])
    if "<html" in head.lower() or "HTTP/" in head:
        location = _LOCATION_HEADER.search(banner)
        if location:
            details = f"Redirects to: {location.group(1)}"
        else:
            status = _HTTP_STATUS.search(banner)
            details = f"HTTP Status: {status.group(1)}" if status else "HTTP Status: unknown"
        return _identified("Web Service (Unrecognized)", details)

    snippet = re.sub(r"[\r\n]", " ", banner[:40])
    return _identified("Custom Service", f"Banner: {snippet}...")


def _rule_port_guess(port, banner, cert) -> Optional[Identification]:
    entry = PORT_GUESS_TABLE.get(port)
    if entry is None:
        return _identified(UNKNOWN_SERVICE, UNKNOWN_DETAILS)
    return _identified(entry["label"], entry["details"], entry["severity"])


# ORDER MATTERS: the first rule returning an Identification wins.
CLASSIFICATION_RULES: List[Rule] = [
    _rule_tls_certificate,
    _rule_http_server_header,
    _rule_ssh,
    _rule_smtp,
    _rule_ftp,
    _rule_banner_fallback,
    _rule_port_guess,          # always last, matches everything
]


def classify(
    port: int,
    banner: Optional[str] = None,
    cert: Optional[CertInfo] = None,
) -> Identification:
    """Identify the service on `port` from whatever the engines collected."""
    for rule in CLASSIFICATION_RULES:
        identification = rule(port, banner, cert)
        if identification is not None:
            return identification
    # Unreachable while _rule_port_guess is last, kept for custom rule lists
    return _identified(UNKNOWN_SERVICE, UNKNOWN_DETAILS)


# ---------------------------------------------------------------------------
# Follow-up routing
# ---------------------------------------------------------------------------

def is_ftp_service(identification: Identification) -> bool:
    return "FTP" in identification.service_name


def is_web_service(identification: Identification) -> bool:
    name = identification.service_name
    return "HTTP" in name or "TLS" in name or name.startswith("Web Service")
