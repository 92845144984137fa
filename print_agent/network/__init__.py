"""Local-network printer discovery."""

from .scanner import NetworkScanner, detect_local_ip, probe, scan

__all__ = ["NetworkScanner", "detect_local_ip", "probe", "scan"]
