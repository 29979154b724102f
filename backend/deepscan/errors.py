# deepscan/errors.py
"""
Exceptions raised by deepscan.

Network failures are never raised; they become "no finding" or an
inconclusive ForensicResult. These are reserved for configuration and
programming errors.
"""

from __future__ import annotations


class DeepScanError(Exception):
    """Base class for all deepscan errors."""


class InvalidSettingsError(DeepScanError, ValueError):
    """A ScanSettings value is out of range (e.g. a disabled timeout)."""
