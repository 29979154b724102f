# deepscan/scanner/forensics/sensitive_files.py
"""
Sensitive web file check.

Requests a short, fixed list of files that should never be served
(environment files, VCS metadata, config backups) from a web service
already identified on the port. A 200 on any path marks it exposed.

Paths are fetched one after another, never concurrently, so the check does
not look like a burst to the target. A request error or timeout counts as
"not exposed" for that path only.

Only the status line and headers are read. Response bodies are never
consumed, and the whole check is bounded by BaseForensicProbe.budget.

HTTPS requests skip certificate verification, matching the TLS engine.

Requires: httpx (async HTTP client)
"""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from deepscan.scanner.base import ForensicOutcome, ForensicResult
from deepscan.scanner.forensics.base import BaseForensicProbe
from deepscan.utils.net import format_host

logger = logging.getLogger(__name__)

SENSITIVE_PATHS: List[str] = [
    "/.env",
    "/.git/config",
    "/wp-config.php.bak",
]

USER_AGENT = "Mozilla/5.0 (compatible; deepscan)"


def build_base_url(ip: str, port: int, use_tls: bool) -> str:
    scheme = "https" if use_tls else "http"
    return f"{scheme}://{format_host(ip)}:{port}"


class SensitiveFileProbe(BaseForensicProbe):
    """
    Args:
        timeout:    per-request timeout in seconds
        paths:      override the default path list
        transport:  optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        timeout: float = 1.5,
        paths: Optional[List[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout)
        self.paths = list(paths) if paths is not None else list(SENSITIVE_PATHS)
        self.transport = transport

    @property
    def name(self) -> str:
        return "sensitive_files"

    @property
    def rounds(self) -> int:
        # connect, send, response head per path
        return 3 * max(1, len(self.paths))

    async def _is_exposed(self, client: httpx.AsyncClient, path: str) -> bool:
        try:
            # Status line and headers only; the body is never read
            async with client.stream("GET", path) as resp:
                return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.debug("Sensitive file request %s%s failed: %s", client.base_url, path, e)
            return False

    async def execute(self, ip: str, port: int, use_tls: bool = False, **kwargs) -> ForensicResult:
        base_url = build_base_url(ip, port, use_tls)
        exposed: List[str] = []

        async with httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=False,
            verify=False,
            trust_env=False,
            transport=self.transport,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            for path in self.paths:
                if await self._is_exposed(client, path):
                    exposed.append(path)

        if exposed:
            logger.warning("Exposed sensitive files on %s: %s", base_url, ", ".join(exposed))
            return self.result(
                ForensicOutcome.VULNERABLE,
                f"CRITICAL: Exposed sensitive web files found: {', '.join(exposed)}",
                exposed_paths=exposed,
                base_url=base_url,
            )

        return self.result(
            ForensicOutcome.NOT_VULNERABLE,
            "No common sensitive web files detected.",
            exposed_paths=[],
            base_url=base_url,
        )


async def check_sensitive_files(
    ip: str,
    port: int,
    use_tls: bool = False,
    timeout: float = 1.5,
) -> ForensicResult:
    """Convenience wrapper: run the sensitive file probe once."""
    return await SensitiveFileProbe(timeout=timeout).run(ip, port, use_tls=use_tls)
