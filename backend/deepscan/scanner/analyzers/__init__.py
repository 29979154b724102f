# deepscan/scanner/analyzers/__init__.py
"""
Service analyzers.
Analyzers read engine output and produce an Identification.
Analyzers do NOT collect data; they only interpret it.
"""
from deepscan.scanner.analyzers.service_classifier import (
    CLASSIFICATION_RULES,
    PORT_GUESS_TABLE,
    classify,
    is_ftp_service,
    is_web_service,
)

__all__ = [
    "classify", "is_ftp_service", "is_web_service",
    "CLASSIFICATION_RULES", "PORT_GUESS_TABLE",
]
