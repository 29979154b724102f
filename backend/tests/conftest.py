from __future__ import annotations

import asyncio
import contextlib
import socket
import ssl

import pytest
from cryptography.hazmat.primitives import serialization

from deepscan.config import ScanSettings
from tests.helpers import FAST_SETTINGS, build_self_signed


@pytest.fixture
def fast_settings() -> ScanSettings:
    return FAST_SETTINGS


@pytest.fixture
def tcp_server():
    """
    Factory for throw-away loopback servers:

        async with tcp_server(handler) as port:
            ...
    """

    @contextlib.asynccontextmanager
    async def _serve(handler, ssl_context=None):
        server = await asyncio.start_server(handler, "127.0.0.1", 0, ssl=ssl_context)
        port = server.sockets[0].getsockname()[1]
        try:
            yield port
        finally:
            server.close()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(server.wait_closed(), timeout=2)

    return _serve


@pytest.fixture
def closed_port() -> int:
    """A loopback port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture(scope="session")
def self_signed_cert(tmp_path_factory):
    """(cert_path, key_path) for a self-signed 'printer.lan' certificate valid until 2030-06-30."""
    key, cert = build_self_signed("printer.lan")

    d = tmp_path_factory.mktemp("tls")
    cert_path = d / "cert.pem"
    key_path = d / "key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ))
    return cert_path, key_path


@pytest.fixture
def server_ssl_context(self_signed_cert) -> ssl.SSLContext:
    cert_path, key_path = self_signed_cert
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ctx.load_cert_chain(str(cert_path), str(key_path))
    return ctx
