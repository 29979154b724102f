# deepscan/cli.py
"""
Command-line entry point.

    deepscan 192.168.1.20
    deepscan 192.168.1.20 192.168.1.21 --ports 1-1024 --json
    deepscan 10.0.0.7 --chunk-size 250 --timeout 0.5 --no-forensics -v

One target runs a single deep scan; several run as a batch, three hosts
at a time. Ctrl-C asks every running scan to stop at its next chunk
boundary and waits for in-flight probes to finish.

Exit codes: 0 completed, 130 cancelled, 2 bad arguments.
"""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import json
import logging
import signal
import sys
from typing import List, Optional, Tuple

from deepscan import __version__
from deepscan.config import ScanSettings
from deepscan.errors import InvalidSettingsError
from deepscan.scanner.base import MAX_PORT, MIN_PORT, PortFinding, ScanProgress, ScanStatus, ScanSummary
from deepscan.scanner.batch import DEFAULT_HOST_CONCURRENCY, HostBatch
from deepscan.scanner.session import ScanManager

logger = logging.getLogger("deepscan.cli")

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def configure_logging(verbose: bool = False) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    # Quieten noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def parse_port_range(spec: str) -> Tuple[int, int]:
    """Parse "80", "1-1024" into an inclusive (start, end) range."""
    spec = spec.strip()
    try:
        if "-" in spec:
            left, right = spec.split("-", 1)
            start, end = int(left), int(right)
        else:
            start = end = int(spec)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port range: {spec!r}")
    if start < MIN_PORT or end > MAX_PORT or start > end:
        raise argparse.ArgumentTypeError(f"port range must be within {MIN_PORT}-{MAX_PORT}: {spec!r}")
    return start, end


def parse_target(value: str) -> str:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an IP address: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="deepscan",
        description="Deep port scan and service fingerprinting for hosts you control.",
    )
    p.add_argument("targets", nargs="+", type=parse_target, metavar="IP", help="Host(s) to deep-scan")
    p.add_argument("--ports", type=parse_port_range, default=(MIN_PORT, MAX_PORT),
                   help="Port range, e.g. 1-1024 (default: 1-65535)")
    p.add_argument("--chunk-size", type=int, help="Ports per concurrent sweep")
    p.add_argument("--concurrency", type=int, help="Max simultaneous port probes within a chunk")
    p.add_argument("--timeout", type=float, help="Connect and banner timeout in seconds")
    p.add_argument("--hosts-at-once", type=int, default=DEFAULT_HOST_CONCURRENCY,
                   help=f"Hosts scanned at the same time in batch mode (default: {DEFAULT_HOST_CONCURRENCY})")
    p.add_argument("--no-forensics", action="store_true", help="Skip FTP / sensitive file checks")
    p.add_argument("--json", action="store_true", help="Print findings as JSON lines")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def build_settings(args: argparse.Namespace) -> ScanSettings:
    settings = ScanSettings.from_env().with_overrides(
        chunk_size=args.chunk_size,
        max_concurrency=args.concurrency,
        connect_timeout=args.timeout,
        banner_timeout=args.timeout,
    )
    if args.no_forensics:
        settings = settings.with_overrides(forensics_enabled=False)
    return settings


def format_finding(ip: str, finding: PortFinding, as_json: bool) -> str:
    if as_json:
        return json.dumps({"ip": ip, **finding.to_dict()})
    flag = "VULNERABLE" if finding.vulnerable else "ok"
    return (
        f"{ip:<15} {finding.port:>5}/tcp  {finding.service_name:<28} "
        f"[{finding.severity.value:<8}] {flag:<10} {finding.details}"
    )


def _install_interrupt_handler(cancel, loop=None) -> None:
    """
    First Ctrl-C cancels cooperatively. The handler then removes itself,
    which restores the default SIGINT behaviour, so a second Ctrl-C raises
    KeyboardInterrupt and exits immediately.
    """
    loop = loop or asyncio.get_running_loop()

    def _first_interrupt() -> None:
        loop.remove_signal_handler(signal.SIGINT)
        cancel()

    try:
        loop.add_signal_handler(signal.SIGINT, _first_interrupt)
    except (NotImplementedError, RuntimeError):
        # Windows event loops: fall back to KeyboardInterrupt
        pass


async def _run(args: argparse.Namespace, settings: ScanSettings) -> List[ScanSummary]:
    manager = ScanManager(settings=settings)

    def on_found(ip: str, finding: PortFinding) -> None:
        print(format_finding(ip, finding, args.json), flush=True)

    def on_progress(progress: ScanProgress) -> None:
        logger.info("%s: %d%%", progress.ip, progress.percent)

    batch = HostBatch(
        manager,
        args.targets,
        concurrency=args.hosts_at_once,
        on_port_found=on_found,
        on_progress=on_progress,
        port_range=args.ports,
    )

    def cancel() -> None:
        logger.warning("Interrupted, stopping after the current chunk (Ctrl-C again to force quit)")
        batch.cancel()

    _install_interrupt_handler(cancel)
    return await batch.run()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = build_settings(args)
    except InvalidSettingsError as e:
        parser.print_usage(sys.stderr)
        print(f"deepscan: error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        summaries = asyncio.run(_run(args, settings))
    except KeyboardInterrupt:
        return EXIT_CANCELLED

    for s in summaries:
        logger.info(
            "%s: %s, %d finding(s), %d vulnerable, %.1fs",
            s.ip, s.status.value, len(s.findings), len(s.vulnerable_findings), s.duration_seconds,
        )

    if len(summaries) < len(set(args.targets)) or any(s.status is ScanStatus.CANCELLED for s in summaries):
        return EXIT_CANCELLED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
