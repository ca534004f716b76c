"""Dump flash memory through a CFE boot loader console over a serial tty."""

from __future__ import annotations

from .config import DumpConfig, config_from_mapping
from .coordinator import CancellationCoordinator, DumpCoordinator, DumpResult, HandshakeResult, run_dump
from .errors import ConfigError, FdumpError, OutputSinkError, TransportConfigError, TransportError, TransportOpenError
from .transport import FlowControl, LineSettings, ParityMode, SerialTransport, Transport

__version__ = "0.2.0"

__all__ = [
    "CancellationCoordinator",
    "ConfigError",
    "DumpConfig",
    "DumpCoordinator",
    "DumpResult",
    "FdumpError",
    "FlowControl",
    "HandshakeResult",
    "LineSettings",
    "OutputSinkError",
    "ParityMode",
    "SerialTransport",
    "Transport",
    "TransportConfigError",
    "TransportError",
    "TransportOpenError",
    "config_from_mapping",
    "run_dump",
]
