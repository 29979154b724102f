# File: deepscan/utils/net.py
# =============================================================================
# Stream helpers shared by the engines and forensic probes
# =============================================================================
# Every connection this package opens goes through open_stream() so the
# connect phase is always bounded, and is released through close_stream()
# on every exit path.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


async def open_stream(
    host: str,
    port: int,
    timeout: float,
    ssl_context: Optional[ssl.SSLContext] = None,
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """
    Open a TCP (or TLS) stream with a bounded connect + handshake.

    Raises asyncio.TimeoutError / OSError / ssl.SSLError; callers decide
    what a failure means.
    """
    kwargs = {}
    if ssl_context is not None:
        kwargs["ssl"] = ssl_context
        kwargs["ssl_handshake_timeout"] = timeout
    return await asyncio.wait_for(
        asyncio.open_connection(host=host, port=port, **kwargs),
        timeout=timeout,
    )


async def close_stream(writer: Optional[asyncio.StreamWriter], timeout: float = 0.5) -> None:
    """Close a stream without ever raising. Waits at most `timeout` for the close."""
    if writer is None:
        return
    try:
        writer.close()
        await asyncio.wait_for(writer.wait_closed(), timeout=timeout)
    except (asyncio.TimeoutError, OSError, ssl.SSLError):
        # Peer already gone or unclean TLS shutdown; socket is released either way
        pass


async def read_first_chunk(
    reader: asyncio.StreamReader,
    timeout: float,
    max_bytes: int = 4096,
) -> bytes:
    """Wait for the first inbound data chunk. Returns b"" on timeout or EOF."""
    try:
        return await asyncio.wait_for(reader.read(max_bytes), timeout=timeout)
    except (asyncio.TimeoutError, OSError):
        return b""


def decode_text(data: bytes) -> str:
    """Decode raw bytes as UTF-8, replacing undecodable bytes, and trim."""
    return data.decode("utf-8", errors="replace").strip()


def format_host(ip: str) -> str:
    """Host part for a URL or Host header: IPv6 literals are bracketed."""
    if ":" in ip and not ip.startswith("["):
        return f"[{ip}]"
    return ip
