"""
Exceptions raised by the print agent.

Hierarchy:
    PrintAgentError
    ├── ConfigError          - config missing or invalid (fatal at startup)
    ├── RegistryError        - printer registry unreadable/unwritable (fatal at startup)
    ├── LocalAddressError    - no non-loopback IPv4 address (aborts discovery only)
    ├── RegistrationError    - backend refused or mangled a registration (printer skipped)
    ├── MessageDecodeError   - malformed session frame (ends the connection)
    └── DispatchError        - a print job could not be delivered (reported as print_failed)
        ├── JobValidationError  - rejected before any I/O
        ├── RenderError         - renderer could not produce an artifact
        ├── TransmissionError   - raw socket connect/write failed
        └── SpoolerError        - OS print command failed
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PrintAgentError(Exception):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(PrintAgentError):
    pass


class RegistryError(PrintAgentError):
    pass


class LocalAddressError(PrintAgentError):
    """No non-loopback IPv4 address could be determined; the subnet is unknown."""


class RegistrationError(PrintAgentError):
    pass


class MessageDecodeError(PrintAgentError):
    pass


class DispatchError(PrintAgentError):
    pass


class JobValidationError(DispatchError):
    pass


class RenderError(DispatchError):
    pass


class TransmissionError(DispatchError):
    pass


class SpoolerError(DispatchError):
    pass


__all__ = [
    "ConfigError",
    "DispatchError",
    "JobValidationError",
    "LocalAddressError",
    "MessageDecodeError",
    "PrintAgentError",
    "RegistrationError",
    "RegistryError",
    "RenderError",
    "SpoolerError",
    "TransmissionError",
]
