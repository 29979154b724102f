# deepscan/scanner/orchestrator.py
"""
Deep Scan Orchestrator: drives the per-port pipeline across a host's
whole port range.

Per scan:

    RUNNING ──(chunk loop)──▶ COMPLETED
                         └──▶ CANCELLED   (token observed at a chunk boundary)

Per chunk (fan-out / fan-in):
    Every port in the chunk runs concurrently, gated by a semaphore of
    settings.concurrency_limit, and the chunk is joined with
    asyncio.gather before the next one starts. One port holds at most one
    socket at a time, so a scan never has more than one chunk's width of
    connections open.

Per port:
    1. Fast connect (connect_timeout); failure means no finding
    2. Banner grab (banner engine)
    3. TLS inspection if there was no banner, the banner is binary, or the
       port is a well-known TLS port
    4. Classify (service classifier)
    5. Forensic follow-up for FTP and HTTP/TLS services; a vulnerable
       result escalates the finding, a failure never aborts it
    6. Emit one PortFinding

Cancellation is cooperative: the token is checked at chunk boundaries and
before each port's fast connect. Probes already in flight finish normally,
so a short tail of findings can still arrive after cancel().
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterator, List, Optional, Tuple

from deepscan.config import ScanSettings
from deepscan.scanner.analyzers import classify, is_ftp_service, is_web_service
from deepscan.scanner.base import (
    CancelToken,
    CertInfo,
    ForensicResult,
    Identification,
    PortFinding,
    RAW_BANNER_LIMIT,
    ScanProgress,
    ScanStatus,
    ScanSummary,
    ScanTarget,
    Severity,
    now_utc,
)
from deepscan.scanner.engines import TLS_PORTS, probe_banner, probe_tls_cert
from deepscan.scanner.forensics import AnonymousFtpProbe, SensitiveFileProbe
from deepscan.utils.net import close_stream, open_stream

logger = logging.getLogger(__name__)

PortFoundCallback = Callable[[PortFinding], None]
ProgressCallback = Callable[[ScanProgress], None]

# U+FFFD, shows up when a TLS alert is decoded as text
_BINARY_MARKER = "\ufffd"


def iter_chunks(target: ScanTarget, chunk_size: int) -> Iterator[Tuple[int, int]]:
    """Yield inclusive (start, end) port ranges covering the target range in order."""
    start = target.first_port
    while start <= target.last_port:
        end = min(start + chunk_size - 1, target.last_port)
        yield start, end
        start = end + 1


def progress_percent(target: ScanTarget, chunk_end: int) -> int:
    """Share of the target range covered up to chunk_end, 0..100."""
    covered = chunk_end - target.first_port + 1
    return round(covered / target.port_count * 100)


def _emit(callback, value, what: str) -> None:
    if callback is None:
        return
    try:
        callback(value)
    except Exception:
        # consumer errors are logged, never propagated
        logger.exception("%s callback raised", what)


def escalate(identification: Identification, forensic: ForensicResult) -> Identification:
    """Fold a forensic result into the classifier's identification."""
    if forensic.vulnerable:
        return Identification(
            service_name=identification.service_name,
            details=f"{identification.details} | {forensic.details}",
            vulnerable=True,
            severity=Severity.CRITICAL,
        )
    if forensic.inconclusive:
        return Identification(
            service_name=identification.service_name,
            details=f"{identification.details} | {forensic.details}",
            vulnerable=identification.vulnerable,
            severity=identification.severity,
        )
    return identification


class DeepScanOrchestrator:
    """
    Runs one deep scan at a time per call to run(). Stateless between
    runs, so one instance can serve several concurrent scans.

    Probes can be swapped (e.g. a SensitiveFileProbe with a mock transport)
    by passing them in.
    """

    def __init__(
        self,
        settings: Optional[ScanSettings] = None,
        ftp_probe: Optional[AnonymousFtpProbe] = None,
        web_probe: Optional[SensitiveFileProbe] = None,
    ):
        self.settings = settings or ScanSettings()
        self.ftp_probe = ftp_probe or AnonymousFtpProbe(timeout=self.settings.forensic_timeout)
        self.web_probe = web_probe or SensitiveFileProbe(timeout=self.settings.forensic_timeout)

    # -------------------------------------------------------------------
    # Scan loop
    # -------------------------------------------------------------------

    async def run(
        self,
        target: ScanTarget,
        token: CancelToken,
        on_port_found: Optional[PortFoundCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ScanSummary:
        summary = ScanSummary(ip=target.ip, status=ScanStatus.COMPLETED, started_at=now_utc())
        start = time.monotonic()
        sem = asyncio.Semaphore(self.settings.concurrency_limit)

        logger.info(
            "Starting deep scan on %s (ports %d-%d, chunk size %d)",
            target.ip, target.first_port, target.last_port, self.settings.chunk_size,
        )

        for chunk_start, chunk_end in iter_chunks(target, self.settings.chunk_size):
            if token.cancelled:
                summary.status = ScanStatus.CANCELLED
                logger.info("Deep scan cancelled for %s before port %d", target.ip, chunk_start)
                break

            findings = await self._scan_chunk(target.ip, chunk_start, chunk_end, token, sem, on_port_found)
            summary.findings.extend(findings)
            summary.ports_scanned += chunk_end - chunk_start + 1
            summary.chunks_completed += 1

            _emit(on_progress, ScanProgress(ip=target.ip, percent=progress_percent(target, chunk_end)), "Progress")

            if chunk_end < target.last_port and self.settings.inter_chunk_delay > 0:
                await asyncio.sleep(self.settings.inter_chunk_delay)

        summary.finished_at = now_utc()
        summary.duration_seconds = round(time.monotonic() - start, 2)
        logger.info(
            "Deep scan %s for %s: %d finding(s), %d port(s) in %.2fs",
            summary.status.value, target.ip, len(summary.findings),
            summary.ports_scanned, summary.duration_seconds,
        )
        return summary

    async def _scan_chunk(
        self,
        ip: str,
        chunk_start: int,
        chunk_end: int,
        token: CancelToken,
        sem: asyncio.Semaphore,
        on_port_found: Optional[PortFoundCallback],
    ) -> List[PortFinding]:
        tasks = [
            self._scan_port(ip, port, token, sem, on_port_found)
            for port in range(chunk_start, chunk_end + 1)
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        findings: List[PortFinding] = []
        for port, r in zip(range(chunk_start, chunk_end + 1), results):
            if isinstance(r, asyncio.CancelledError):
                raise r
            if isinstance(r, BaseException):
                logger.error("Port pipeline for %s:%d crashed: %r", ip, port, r)
                continue
            if r is not None:
                findings.append(r)
        return findings

    async def _scan_port(
        self,
        ip: str,
        port: int,
        token: CancelToken,
        sem: asyncio.Semaphore,
        on_port_found: Optional[PortFoundCallback],
    ) -> Optional[PortFinding]:
        async with sem:
            if token.cancelled:
                return None
            if not await self.is_port_open(ip, port):
                return None
            finding = await self.inspect_port(ip, port)

        _emit(on_port_found, finding, "Port found")
        return finding

    # -------------------------------------------------------------------
    # Per-port pipeline
    # -------------------------------------------------------------------

    async def is_port_open(self, ip: str, port: int) -> bool:
        """Fast connect check. The socket is released before banner grabbing starts."""
        writer = None
        try:
            _reader, writer = await open_stream(ip, port, self.settings.connect_timeout)
            return True
        except (asyncio.TimeoutError, OSError):
            return False
        finally:
            await close_stream(writer)

    async def inspect_port(self, ip: str, port: int) -> PortFinding:
        """Banner → TLS → classify → forensics for one open port."""
        banner = await probe_banner(ip, port, self.settings.banner_timeout)

        cert: Optional[CertInfo] = None
        if not banner or _BINARY_MARKER in banner or port in TLS_PORTS:
            cert = await probe_tls_cert(ip, port, self.settings.tls_timeout)

        identification = classify(port, banner, cert)

        if self.settings.forensics_enabled:
            identification = await self.run_forensics(ip, port, identification, cert)

        return PortFinding(
            port=port,
            service_name=identification.service_name,
            details=identification.details,
            vulnerable=identification.vulnerable,
            severity=identification.severity,
            raw_banner=banner[:RAW_BANNER_LIMIT] if banner else None,
        )

    async def run_forensics(
        self,
        ip: str,
        port: int,
        identification: Identification,
        cert: Optional[CertInfo],
    ) -> Identification:
        if is_ftp_service(identification):
            probe, kwargs = self.ftp_probe, {}
        elif is_web_service(identification):
            use_tls = cert is not None or port in TLS_PORTS
            probe, kwargs = self.web_probe, {"use_tls": use_tls}
        else:
            return identification

        try:
            forensic = await probe.run(ip, port, **kwargs)
        except Exception:
            logger.exception("Forensic probe '%s' crashed for %s:%d", probe.name, ip, port)
            return identification

        logger.debug(
            "Forensic probe '%s' on %s:%d → %s (%.2fs)",
            forensic.probe_name, ip, port, forensic.outcome.value, forensic.duration_seconds,
        )
        return escalate(identification, forensic)
