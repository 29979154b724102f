# deepscan/scanner/forensics/__init__.py
"""
Forensic probes.
Interactive follow-up checks run only against services the classifier
already flagged as candidates (FTP, HTTP/TLS).
"""
from deepscan.scanner.forensics.base import BaseForensicProbe
from deepscan.scanner.forensics.ftp_anonymous import AnonymousFtpProbe, check_anonymous_ftp
from deepscan.scanner.forensics.sensitive_files import (
    SENSITIVE_PATHS,
    SensitiveFileProbe,
    check_sensitive_files,
)

__all__ = [
    "BaseForensicProbe",
    "AnonymousFtpProbe", "check_anonymous_ftp",
    "SensitiveFileProbe", "check_sensitive_files", "SENSITIVE_PATHS",
]
