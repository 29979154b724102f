# deepscan/scanner/engines/banner_engine.py
"""
Banner grabbing engine.

Opens one raw TCP connection to ip:port and returns the first chunk of
data the service sends. Servers that wait for the client to speak first
(HTTP) are nudged with a minimal GET on well-known web ports.

What this engine collects:
    - The first inbound data chunk, decoded as text and trimmed

What this engine does NOT do:
    - Classify the service (that's the service classifier's job)
    - Retry (a failed probe is final for that port in this pass)

Timeouts:
    timeout bounds connect and first read separately; a hard ceiling of
    timeout + FALLBACK_GRACE wraps the whole attempt in case neither the
    read timeout nor an error ever fires.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from deepscan.utils.net import close_stream, decode_text, format_host, open_stream, read_first_chunk

logger = logging.getLogger(__name__)

# Ports where the client has to speak first
HTTP_NUDGE_PORTS = frozenset({80, 443, 8080, 8443, 8000, 5000})

FALLBACK_GRACE = 0.2

MAX_BANNER_BYTES = 4096


def build_http_nudge(ip: str) -> bytes:
    return f"GET / HTTP/1.0\r\nHost: {format_host(ip)}\r\n\r\n".encode("ascii", errors="ignore")


async def _grab(ip: str, port: int, timeout: float) -> Optional[str]:
    writer = None
    try:
        reader, writer = await open_stream(ip, port, timeout)

        if port in HTTP_NUDGE_PORTS:
            writer.write(build_http_nudge(ip))
            await asyncio.wait_for(writer.drain(), timeout=timeout)

        data = await read_first_chunk(reader, timeout, MAX_BANNER_BYTES)
        banner = decode_text(data)
        return banner or None
    except (asyncio.TimeoutError, OSError) as e:
        logger.debug("Banner grab failed for %s:%d: %s", ip, port, e)
        return None
    finally:
        await close_stream(writer)


async def probe_banner(ip: str, port: int, timeout: float = 1.0) -> Optional[str]:
    """
    Grab the first text the service at ip:port sends.

    Returns the banner text, or None on refusal, timeout, error, or silence.
    Never raises for network conditions.
    """
    try:
        return await asyncio.wait_for(_grab(ip, port, timeout), timeout=timeout + FALLBACK_GRACE)
    except asyncio.TimeoutError:
        logger.debug("Banner grab for %s:%d hit the hard ceiling", ip, port)
        return None
