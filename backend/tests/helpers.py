"""Shared test doubles: fast settings, a silent server handler, a network-free orchestrator."""

from __future__ import annotations

import asyncio
import ssl
from datetime import datetime, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from deepscan.config import ScanSettings
from deepscan.scanner.base import PortFinding
from deepscan.scanner.orchestrator import DeepScanOrchestrator


FAST_SETTINGS = ScanSettings(
    chunk_size=10,
    max_concurrency=10,
    connect_timeout=0.5,
    banner_timeout=0.3,
    tls_timeout=0.5,
    forensic_timeout=0.5,
    inter_chunk_delay=0,
)


def build_self_signed(common_name: str = "printer.lan",
                      not_after: datetime = datetime(2030, 6, 30, 23, 59, 59, tzinfo=timezone.utc)):
    """(private_key, certificate) for a throw-away self-signed certificate."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(datetime(2024, 1, 1, tzinfo=timezone.utc))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return key, cert


async def drain_until_eof(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Server handler that never speaks and hangs up when the client does."""
    try:
        await reader.read()
    except (ConnectionError, ssl.SSLError):
        pass
    finally:
        writer.close()


class FakeOrchestrator(DeepScanOrchestrator):
    """
    Orchestrator with the network stubbed out.

    Ports in `open_ports` are "open" and inspect to a fixed finding;
    every fast-connect attempt is recorded in `probed`.
    """

    def __init__(self, settings=None, open_ports=(), yield_on_connect=False):
        super().__init__(settings or FAST_SETTINGS)
        self.open_ports = set(open_ports)
        self.yield_on_connect = yield_on_connect
        self.probed = []
        self.on_probe = None

    async def is_port_open(self, ip, port):
        self.probed.append(port)
        if self.on_probe is not None:
            self.on_probe(ip, port)
        if self.yield_on_connect:
            await asyncio.sleep(0)
        return port in self.open_ports

    async def inspect_port(self, ip, port):
        return PortFinding(port=port, service_name="Test Service", details=f"{ip}:{port}")
