import pytest
from cryptography.hazmat.primitives import serialization
from cryptography import x509

from deepscan.scanner.engines import banner_engine
from deepscan.scanner.engines import probe_banner, probe_tls_cert
from deepscan.scanner.engines.banner_engine import build_http_nudge
from deepscan.scanner.engines.tls_engine import parse_der_certificate

from tests.helpers import build_self_signed, drain_until_eof


def speaks_first(greeting: bytes):
    async def handler(reader, writer):
        writer.write(greeting)
        await writer.drain()
        await drain_until_eof(reader, writer)
    return handler


# ---------------------------------------------------------------------------
# Banner engine
# ---------------------------------------------------------------------------

class TestBannerEngine:

    @pytest.mark.asyncio
    async def test_reads_greeting(self, tcp_server):
        async with tcp_server(speaks_first(b"SSH-2.0-OpenSSH_9.6\r\n")) as port:
            banner = await probe_banner("127.0.0.1", port, timeout=1.0)
        assert banner == "SSH-2.0-OpenSSH_9.6"

    @pytest.mark.asyncio
    async def test_silent_service_returns_none(self, tcp_server):
        async with tcp_server(drain_until_eof) as port:
            banner = await probe_banner("127.0.0.1", port, timeout=0.2)
        assert banner is None

    @pytest.mark.asyncio
    async def test_refused_returns_none(self, closed_port):
        assert await probe_banner("127.0.0.1", closed_port, timeout=0.5) is None

    @pytest.mark.asyncio
    async def test_binary_bytes_are_replaced(self, tcp_server):
        async with tcp_server(speaks_first(b"\xff\xfe\x15\x03binary")) as port:
            banner = await probe_banner("127.0.0.1", port, timeout=1.0)
        assert banner is not None
        assert "\ufffd" in banner
        assert banner.endswith("binary")

    @pytest.mark.asyncio
    async def test_web_ports_are_nudged(self, tcp_server, monkeypatch):
        received = []

        async def http_server(reader, writer):
            request_line = await reader.readline()
            received.append(request_line)
            writer.write(b"HTTP/1.0 200 OK\r\nServer: lighttpd/1.4\r\n\r\n")
            await writer.drain()
            writer.close()

        async with tcp_server(http_server) as port:
            monkeypatch.setattr(banner_engine, "HTTP_NUDGE_PORTS", frozenset({port}))
            banner = await probe_banner("127.0.0.1", port, timeout=1.0)

        assert received == [b"GET / HTTP/1.0\r\n"]
        assert banner.startswith("HTTP/1.0 200 OK")
        assert "Server: lighttpd/1.4" in banner


def test_http_nudge_bytes():
    assert build_http_nudge("10.0.0.4") == b"GET / HTTP/1.0\r\nHost: 10.0.0.4\r\n\r\n"


# ---------------------------------------------------------------------------
# TLS engine
# ---------------------------------------------------------------------------

class TestTlsEngine:

    @pytest.mark.asyncio
    async def test_reads_self_signed_certificate(self, tcp_server, server_ssl_context):
        async with tcp_server(drain_until_eof, ssl_context=server_ssl_context) as port:
            cert = await probe_tls_cert("127.0.0.1", port, timeout=1.0)

        assert cert is not None
        assert cert.subject == "printer.lan"
        assert cert.issuer == "printer.lan"
        assert cert.valid_from.startswith("2024-01-01")
        assert cert.valid_to == "2030-06-30T23:59:59"

    @pytest.mark.asyncio
    async def test_plain_tcp_service_returns_none(self, tcp_server):
        async with tcp_server(drain_until_eof) as port:
            cert = await probe_tls_cert("127.0.0.1", port, timeout=0.3)
        assert cert is None

    @pytest.mark.asyncio
    async def test_non_tls_reply_returns_none(self, tcp_server):
        async with tcp_server(speaks_first(b"220 not tls at all\r\n")) as port:
            cert = await probe_tls_cert("127.0.0.1", port, timeout=0.5)
        assert cert is None

    @pytest.mark.asyncio
    async def test_refused_returns_none(self, closed_port):
        assert await probe_tls_cert("127.0.0.1", closed_port, timeout=0.5) is None


def test_parse_der_certificate(self_signed_cert):
    cert_path, _key_path = self_signed_cert
    pem = x509.load_pem_x509_certificate(cert_path.read_bytes())
    info = parse_der_certificate(pem.public_bytes(serialization.Encoding.DER))

    assert info.subject == "printer.lan"
    assert info.valid_to == "2030-06-30T23:59:59"


def test_parse_der_certificate_garbage():
    assert parse_der_certificate(b"\x30\x03not a cert") is None


def test_parse_der_certificate_with_malformed_name():
    _key, cert = build_self_signed("corrupt-me")
    der = cert.public_bytes(serialization.Encoding.DER)
    # Same length, invalid UTF-8 inside the CN of both subject and issuer
    broken = der.replace(b"corrupt-me", b"\xff\xfe\xfd\xfcupt-me")
    assert broken != der

    assert parse_der_certificate(broken) is None


def test_http_nudge_brackets_ipv6():
    assert build_http_nudge("fe80::1") == b"GET / HTTP/1.0\r\nHost: [fe80::1]\r\n\r\n"
