"""Exceptions raised by the CFE flash dump tool."""

from __future__ import annotations


class FdumpError(Exception):
    """Base class for all tool errors."""


class ConfigError(FdumpError):
    """Dump configuration is invalid."""


class TransportError(FdumpError):
    """Byte channel failure."""


class TransportOpenError(TransportError):
    """Serial port could not be opened."""


class TransportConfigError(TransportError):
    """Line settings were rejected by the port."""


class OutputSinkError(FdumpError):
    """Output image could not be created or written."""
