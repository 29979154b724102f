# deepscan/scanner/forensics/base.py
"""
Base class for forensic probes.

To create a new probe:
    1. Subclass BaseForensicProbe
    2. Set the `name` property (e.g., "ftp_anonymous")
    3. Implement `async execute(ip, port, **kwargs) -> ForensicResult`
    4. Optionally raise `rounds` if the dialog has more network waits

The base class handles automatically:
    - Timing (duration_seconds is set automatically)
    - Error catching (exceptions become an INCONCLUSIVE result)
    - Overall budget (execute() is cancelled after `budget` seconds and the
      result is INCONCLUSIVE)
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from deepscan.scanner.base import ForensicOutcome, ForensicResult

logger = logging.getLogger(__name__)


class BaseForensicProbe(ABC):

    # Network waits in one execute() call, each bounded by `timeout`
    rounds: int = 4

    def __init__(self, timeout: float = 1.5):
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique probe identifier. Used as ForensicResult.probe_name."""
        ...

    @property
    def budget(self) -> float:
        """Hard ceiling on one run(), in seconds."""
        return self.timeout * self.rounds

    def result(self, outcome: ForensicOutcome, details: str = "", **evidence: Any) -> ForensicResult:
        return ForensicResult(
            probe_name=self.name,
            outcome=outcome,
            details=details,
            evidence=evidence,
        )

    async def run(self, ip: str, port: int, **kwargs: Any) -> ForensicResult:
        """
        Execute the probe with automatic timing, budget and error handling.

        DO NOT OVERRIDE THIS METHOD. Override `execute()` instead.

        Returns ForensicResult, always, even on failure.
        """
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(self.execute(ip, port, **kwargs), timeout=self.budget)
        except asyncio.TimeoutError:
            logger.debug("Forensic probe '%s' exceeded %.1fs budget for %s:%d", self.name, self.budget, ip, port)
            result = self.result(
                ForensicOutcome.INCONCLUSIVE,
                f"{self.name} check inconclusive (timed out)",
                reason="budget exceeded",
            )
        except Exception as e:
            logger.exception("Forensic probe '%s' failed for %s:%d", self.name, ip, port)
            result = self.result(
                ForensicOutcome.INCONCLUSIVE,
                f"{self.name} check inconclusive",
                error=f"{type(e).__name__}: {e}",
            )
        result.duration_seconds = round(time.monotonic() - start, 2)
        return result

    @abstractmethod
    async def execute(self, ip: str, port: int, **kwargs: Any) -> ForensicResult:
        """Perform the protocol dialog. Override this in subclasses."""
        ...
