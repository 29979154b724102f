# deepscan/scanner/batch.py
"""
Multi-host deep scans.

Deep-scans a list of hosts with a small number in flight at once (3 by
default). Each host is itself a full chunked scan, so this multiplies the
socket budget, so keep `concurrency` low.

Callbacks receive the host IP alongside the value, because findings from
different hosts interleave.

Usage:
    batch = HostBatch(manager, ["10.0.0.5", "10.0.0.9"], on_host_done=print)
    summaries = await batch.run()

    # elsewhere: stop launching queued hosts and cancel the running ones
    batch.cancel()
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Iterable, List, Optional, Tuple

from deepscan.scanner.base import MAX_PORT, MIN_PORT, PortFinding, ScanProgress, ScanSummary
from deepscan.scanner.session import ScanManager

logger = logging.getLogger(__name__)

DEFAULT_HOST_CONCURRENCY = 3

HostFindingCallback = Callable[[str, PortFinding], None]
HostDoneCallback = Callable[[ScanSummary], None]


def _unique(ips: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for ip in ips:
        if ip in seen:
            continue
        seen.add(ip)
        ordered.append(ip)
    return ordered


class HostBatch:

    def __init__(
        self,
        manager: ScanManager,
        ips: Iterable[str],
        concurrency: int = DEFAULT_HOST_CONCURRENCY,
        on_port_found: Optional[HostFindingCallback] = None,
        on_progress: Optional[Callable[[ScanProgress], None]] = None,
        on_host_done: Optional[HostDoneCallback] = None,
        port_range: Tuple[int, int] = (MIN_PORT, MAX_PORT),
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.manager = manager
        self.hosts = _unique(ips)
        self.concurrency = concurrency
        self.on_port_found = on_port_found
        self.on_progress = on_progress
        self.on_host_done = on_host_done
        self.port_range = port_range
        self._stopped = threading.Event()
        self._running: List[str] = []
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def cancel(self) -> None:
        """Stop launching queued hosts and cancel the ones in flight. Idempotent."""
        self._stopped.set()
        with self._lock:
            running = list(self._running)
        for ip in running:
            self.manager.cancel(ip)

    async def _scan_one(self, sem: asyncio.Semaphore, ip: str) -> Optional[ScanSummary]:
        async with sem:
            if self._stopped.is_set():
                return None

            def _found(finding: PortFinding) -> None:
                if self.on_port_found is not None:
                    self.on_port_found(ip, finding)

            with self._lock:
                self._running.append(ip)
            try:
                summary = await self.manager.run_deep_scan(
                    ip,
                    on_port_found=_found,
                    on_progress=self.on_progress,
                    port_range=self.port_range,
                )
            finally:
                with self._lock:
                    self._running.remove(ip)

        if self.on_host_done is not None:
            try:
                self.on_host_done(summary)
            except Exception:
                logger.exception("Host done callback raised for %s", ip)
        return summary

    async def run(self) -> List[ScanSummary]:
        """
        Deep-scan every host, at most `concurrency` at a time.

        Returns a ScanSummary per host that was started, in input order.
        Hosts still queued when cancel() is called are left out.
        """
        sem = asyncio.Semaphore(self.concurrency)
        logger.info("Batch deep scan of %d host(s), %d at a time", len(self.hosts), self.concurrency)

        results = await asyncio.gather(*(self._scan_one(sem, ip) for ip in self.hosts))
        summaries = [s for s in results if s is not None]

        logger.info("Batch deep scan finished: %d of %d host(s) scanned", len(summaries), len(self.hosts))
        return summaries


async def scan_hosts(manager: ScanManager, ips: Iterable[str], **kwargs) -> List[ScanSummary]:
    """Convenience wrapper: build a HostBatch and run it."""
    return await HostBatch(manager, ips, **kwargs).run()
