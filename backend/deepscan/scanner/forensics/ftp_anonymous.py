# deepscan/scanner/forensics/ftp_anonymous.py
"""
Anonymous FTP login check.

Walks one TCP connection through the login dialog:

    AWAIT_BANNER (220)
        → USER anonymous
    AWAIT_USER_REPLY (331 or 230)
        → PASS anonymous@domain.com
    AWAIT_PASS_REPLY
        230          → VULNERABLE
        anything else → NOT_VULNERABLE

An unexpected reply before the final stage, a connection error, EOF or a
timeout makes the result INCONCLUSIVE, which is distinct from NOT_VULNERABLE.

Multi-line replies ("220-Welcome" ... "220 Ready") are read up to their
final "NNN " line. Each round is bounded by the probe timeout.

This probe is read-only: it never lists directories or transfers files.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from typing import Tuple

from deepscan.scanner.base import ForensicOutcome, ForensicResult
from deepscan.scanner.forensics.base import BaseForensicProbe
from deepscan.utils.net import close_stream, open_stream

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"
ANONYMOUS_PASS = "anonymous@domain.com"

# Stop reading a multi-line reply after this many lines
MAX_REPLY_LINES = 50

_FINAL_LINE = re.compile(r"^(\d{3})(?: |$)")


class FtpState(enum.Enum):
    AWAIT_BANNER = "await_banner"
    AWAIT_USER_REPLY = "await_user_reply"
    AWAIT_PASS_REPLY = "await_pass_reply"


class FtpDialogError(Exception):
    """The server closed the connection or sent something that isn't an FTP reply."""


class AnonymousFtpProbe(BaseForensicProbe):

    # connect, greeting, USER send + reply, PASS send + reply
    rounds = 6

    @property
    def name(self) -> str:
        return "ftp_anonymous"

    async def _read_reply(self, reader: asyncio.StreamReader) -> Tuple[str, str]:
        """Read one (possibly multi-line) reply. Returns (code, full text)."""
        lines = []
        for _ in range(MAX_REPLY_LINES):
            raw = await asyncio.wait_for(reader.readline(), timeout=self.timeout)
            if not raw:
                raise FtpDialogError("connection closed by server")
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            lines.append(line)
            match = _FINAL_LINE.match(line)
            if match:
                return match.group(1), "\n".join(lines).strip()
        raise FtpDialogError("reply too long")

    async def _send(self, writer: asyncio.StreamWriter, command: str) -> None:
        writer.write(f"{command}\r\n".encode("ascii"))
        await asyncio.wait_for(writer.drain(), timeout=self.timeout)

    def _inconclusive(self, state: FtpState, reason: str) -> ForensicResult:
        return self.result(
            ForensicOutcome.INCONCLUSIVE,
            "Anonymous FTP check inconclusive.",
            state=state.value,
            reason=reason,
        )

    async def execute(self, ip: str, port: int, **kwargs) -> ForensicResult:
        state = FtpState.AWAIT_BANNER
        writer = None
        try:
            reader, writer = await open_stream(ip, port, self.timeout)

            code, reply = await self._read_reply(reader)
            if code != "220":
                return self._inconclusive(state, f"unexpected greeting: {reply[:80]}")

            await self._send(writer, f"USER {ANONYMOUS_USER}")
            state = FtpState.AWAIT_USER_REPLY
            code, reply = await self._read_reply(reader)
            if code not in ("331", "230"):
                return self._inconclusive(state, f"unexpected USER reply: {reply[:80]}")

            await self._send(writer, f"PASS {ANONYMOUS_PASS}")
            state = FtpState.AWAIT_PASS_REPLY
            code, reply = await self._read_reply(reader)

            if code == "230":
                logger.warning("Anonymous FTP login accepted on %s:%d", ip, port)
                return self.result(
                    ForensicOutcome.VULNERABLE,
                    "CRITICAL: Anonymous FTP Login Allowed. File system is exposed.",
                    final_reply=reply[:100],
                )
            return self.result(
                ForensicOutcome.NOT_VULNERABLE,
                "Anonymous FTP Login Rejected.",
                final_reply=reply[:100],
            )

        except asyncio.TimeoutError:
            return self._inconclusive(state, "timeout")
        except (OSError, ValueError, FtpDialogError) as e:
            # ValueError: StreamReader line limit overrun
            logger.debug("Anonymous FTP dialog with %s:%d broke off in %s: %s", ip, port, state.value, e)
            return self._inconclusive(state, str(e) or type(e).__name__)
        finally:
            await close_stream(writer)


async def check_anonymous_ftp(ip: str, port: int, timeout: float = 1.5) -> ForensicResult:
    """Convenience wrapper: run the anonymous FTP probe once."""
    return await AnonymousFtpProbe(timeout=timeout).run(ip, port)
