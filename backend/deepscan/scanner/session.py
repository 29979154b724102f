# deepscan/scanner/session.py
"""
Scan manager: the caller-owned registry of active deep scans.

Each ScanManager keeps its own map of active IPs to cancellation tokens,
so independent managers (tests, several UI windows) never see each other's
scans. The map is the only shared mutable state in the scanner; it is
guarded by a lock because cancel() may be called from a thread other than
the one running the event loop.

Usage:
    manager = ScanManager()
    summary = await manager.run_deep_scan("192.168.1.20", on_port_found=print)

    # from anywhere, any number of times:
    manager.cancel("192.168.1.20")
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

from deepscan.config import ScanSettings
from deepscan.scanner.base import (
    MAX_PORT,
    MIN_PORT,
    CancelToken,
    ScanStatus,
    ScanSummary,
    ScanTarget,
    now_utc,
)
from deepscan.scanner.orchestrator import (
    DeepScanOrchestrator,
    PortFoundCallback,
    ProgressCallback,
)

logger = logging.getLogger(__name__)


class ScanManager:

    def __init__(
        self,
        settings: Optional[ScanSettings] = None,
        orchestrator: Optional[DeepScanOrchestrator] = None,
    ):
        self.settings = settings or ScanSettings.from_env()
        self.orchestrator = orchestrator or DeepScanOrchestrator(self.settings)
        self._active: Dict[str, CancelToken] = {}
        self._lock = threading.Lock()

    # -------------------------------------------------------------------
    # Active set
    # -------------------------------------------------------------------

    def _register(self, ip: str) -> Optional[CancelToken]:
        """Atomically claim `ip`. Returns None if a scan of it is already running."""
        with self._lock:
            if ip in self._active:
                return None
            token = CancelToken()
            self._active[ip] = token
            return token

    def _release(self, ip: str, token: CancelToken) -> None:
        with self._lock:
            # Only drop our own entry
            if self._active.get(ip) is token:
                del self._active[ip]

    def is_active(self, ip: str) -> bool:
        with self._lock:
            return ip in self._active

    def active_ips(self) -> List[str]:
        with self._lock:
            return list(self._active)

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------

    def cancel(self, ip: str) -> None:
        """
        Ask the scan of `ip` to stop at its next chunk boundary.

        Idempotent; a no-op for unknown or already finished IPs.
        """
        with self._lock:
            token = self._active.get(ip)
        if token is None:
            logger.debug("Cancel requested for %s but no scan is active", ip)
            return
        if not token.cancelled:
            logger.info("Cancellation requested for deep scan of %s", ip)
        token.cancel()

    def cancel_all(self) -> None:
        for ip in self.active_ips():
            self.cancel(ip)

    async def run_deep_scan(
        self,
        ip: str,
        on_port_found: Optional[PortFoundCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        port_range: Tuple[int, int] = (MIN_PORT, MAX_PORT),
    ) -> ScanSummary:
        """
        Deep-scan `ip` and resolve with its ScanSummary.

        A second scan of an IP that is already being scanned by this manager
        is rejected immediately (status REJECTED) rather than run alongside.
        """
        target = ScanTarget(ip=ip, port_range=port_range)

        token = self._register(ip)
        if token is None:
            logger.warning("Deep scan of %s rejected: a scan of this host is already running", ip)
            now = now_utc()
            return ScanSummary(ip=ip, status=ScanStatus.REJECTED, started_at=now, finished_at=now)

        try:
            return await self.orchestrator.run(target, token, on_port_found, on_progress)
        finally:
            self._release(ip, token)
