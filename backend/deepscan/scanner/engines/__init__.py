# deepscan/scanner/engines/__init__.py
"""
Data collection engines.
Each engine gathers raw facts from one live port.
Engines do NOT classify services; they only gather facts.
"""
from deepscan.scanner.engines.banner_engine import HTTP_NUDGE_PORTS, probe_banner
from deepscan.scanner.engines.tls_engine import TLS_PORTS, probe_tls_cert

__all__ = [
    "probe_banner", "probe_tls_cert",
    "HTTP_NUDGE_PORTS", "TLS_PORTS",
]
