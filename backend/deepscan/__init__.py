# deepscan/__init__.py
"""
deepscan: deep port scanner and service fingerprinting for hosts on a
local network.

Given a host that discovery already found alive, deepscan connects to
every TCP port in bounded chunks, grabs banners, inspects TLS
certificates, classifies the service, and runs two narrow forensic checks
(anonymous FTP login, exposed sensitive web files) on flagged services.
"""

from deepscan.config import ScanSettings
from deepscan.errors import DeepScanError, InvalidSettingsError
from deepscan.scanner import ScanManager

__version__ = "0.3.0"

__all__ = ["ScanManager", "ScanSettings", "DeepScanError", "InvalidSettingsError", "__version__"]
