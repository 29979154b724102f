# deepscan/scanner/engines/tls_engine.py
"""
TLS certificate inspection engine.

Opens a TLS session to ip:port with trust validation disabled and extracts
the peer certificate. Targets on a local subnet are mostly self-signed
appliances; this is reconnaissance, not a trust decision.

With verify_mode = CERT_NONE the ssl module's getpeercert() returns an
empty dict, so the DER form is parsed with the cryptography package.

What this engine collects:
    - Subject CN and issuer CN ("Unknown" when the name has no CN)
    - Validity window (not_before / not_after) as ISO-8601 strings

What this engine does NOT do:
    - Judge expiry, self-signed status or hostname match

Output: CertInfo, or None when no certificate was presented, the handshake
failed, or it timed out.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from datetime import datetime, timezone
from typing import Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

from deepscan.scanner.base import CertInfo
from deepscan.utils.net import close_stream, open_stream

logger = logging.getLogger(__name__)

# Ports where a TLS handshake is attempted even when a banner came back
TLS_PORTS = frozenset({443, 8443})


def build_insecure_context() -> ssl.SSLContext:
    """SSL context that accepts any certificate: we want to see it, not trust it."""
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _common_name(name: x509.Name) -> str:
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return "Unknown"
    value = attrs[0].value
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return value or "Unknown"


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_der_certificate(cert_der: bytes) -> Optional[CertInfo]:
    """
    Parse a DER-encoded certificate into CertInfo. None if it can't be parsed.

    cryptography decodes names and validity lazily, so a malformed field
    only raises when it is read; all reads stay inside the try.
    """
    try:
        cert = x509.load_der_x509_certificate(cert_der)

        # cryptography >= 42 exposes tz-aware properties; older releases only the naive ones
        if hasattr(cert, "not_valid_before_utc"):
            not_before = cert.not_valid_before_utc
            not_after = cert.not_valid_after_utc
        else:
            not_before = _as_utc(cert.not_valid_before)
            not_after = _as_utc(cert.not_valid_after)

        return CertInfo(
            subject=_common_name(cert.subject),
            issuer=_common_name(cert.issuer),
            valid_from=not_before.strftime("%Y-%m-%dT%H:%M:%S"),
            valid_to=not_after.strftime("%Y-%m-%dT%H:%M:%S"),
        )
    except ValueError as e:
        logger.debug("Failed to parse DER cert: %s", e)
        return None


async def _inspect(ip: str, port: int, timeout: float) -> Optional[CertInfo]:
    writer = None
    try:
        _reader, writer = await open_stream(ip, port, timeout, ssl_context=build_insecure_context())
        ssl_object = writer.get_extra_info("ssl_object")
        if ssl_object is None:
            return None

        cert_der = ssl_object.getpeercert(binary_form=True)
        if not cert_der:
            logger.debug("TLS peer %s:%d presented no certificate", ip, port)
            return None

        return parse_der_certificate(cert_der)
    except (asyncio.TimeoutError, OSError, ssl.SSLError) as e:
        # ssl.SSLError is an OSError subclass
        logger.debug("TLS inspection failed for %s:%d: %s", ip, port, e)
        return None
    finally:
        await close_stream(writer)


async def probe_tls_cert(ip: str, port: int, timeout: float = 1.4) -> Optional[CertInfo]:
    """
    Handshake with ip:port and return the peer certificate facts.

    Never raises for network or TLS conditions.
    """
    try:
        return await asyncio.wait_for(_inspect(ip, port, timeout), timeout=timeout * 2)
    except asyncio.TimeoutError:
        logger.debug("TLS inspection for %s:%d hit the hard ceiling", ip, port)
        return None
