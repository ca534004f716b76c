"""Byte channel used to talk to the CFE console.

The core only needs open/configure/read/write/close. ``SerialTransport``
backs that with pyserial; the port identifier picks the backend, so
``/dev/ttyUSB0``, ``COM4``, ``loop://`` and ``socket://host:port`` all go
through the same class.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
import logging

import serial

from .const import (
    DEFAULT_BAUDRATE,
    DEFAULT_DATA_BITS,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_STOP_BITS,
    DEFAULT_WRITE_TIMEOUT,
)
from .errors import TransportConfigError, TransportError, TransportOpenError

_LOGGER = logging.getLogger(__name__)


class FlowControl(Enum):
    NONE = "none"
    XON_XOFF = "xonxoff"
    RTS_CTS = "rtscts"
    DSR_DTR = "dsrdtr"


class ParityMode(Enum):
    EVEN = "even"
    ODD = "odd"


PARITY_MAP = {
    ParityMode.EVEN: serial.PARITY_EVEN,
    ParityMode.ODD: serial.PARITY_ODD,
}

STOPBITS_MAP = {
    1: serial.STOPBITS_ONE,
    2: serial.STOPBITS_TWO,
}

BYTESIZE_MAP = {
    5: serial.FIVEBITS,
    6: serial.SIXBITS,
    7: serial.SEVENBITS,
    8: serial.EIGHTBITS,
}


@dataclass(frozen=True)
class LineSettings:
    """Line parameters applied by ``Transport.configure``."""

    baudrate: int = DEFAULT_BAUDRATE
    parity: bool = False
    parity_mode: ParityMode = ParityMode.EVEN
    stop_bits: int = DEFAULT_STOP_BITS
    data_bits: int = DEFAULT_DATA_BITS
    flow_control: FlowControl = FlowControl.NONE
    read_timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT

    def describe(self) -> str:
        parity = self.parity_mode.name[0] if self.parity else "N"
        return f"{self.baudrate} {self.data_bits}/{parity}/{self.stop_bits} flow={self.flow_control.value}"


class Transport(ABC):
    """Abstract byte channel. No retries happen at this level."""

    @abstractmethod
    def open(self, port: str) -> None:
        """Open ``port`` or raise ``TransportOpenError``."""

    @abstractmethod
    def configure(self, settings: LineSettings) -> None:
        """Apply line settings or raise ``TransportConfigError``."""

    @abstractmethod
    def read(self, max_bytes: int = 1) -> bytes:
        """Return up to ``max_bytes``; ``b""`` once the read timeout expires."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write raw bytes and return how many were accepted."""

    @abstractmethod
    def close(self) -> None:
        """Release the channel. Safe to call more than once."""


class SerialTransport(Transport):
    """pyserial implementation of ``Transport``."""

    def __init__(self) -> None:
        self._serial: serial.SerialBase | None = None
        self.port: str | None = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self, port: str) -> None:
        try:
            self._serial = serial.serial_for_url(port, timeout=DEFAULT_READ_TIMEOUT)
        except (serial.SerialException, OSError, ValueError) as err:
            raise TransportOpenError(
                f"Unable to open '{port}': {err}. Check --port and that your user is in the dialout group."
            ) from err
        self.port = port
        _LOGGER.info("Opened %s", port)
        _LOGGER.info("Make sure no other program is using %s", port)

    def configure(self, settings: LineSettings) -> None:
        ser = self._require_open()
        if settings.read_timeout is None or settings.read_timeout < 0:
            raise TransportConfigError(f"Read timeout must be >= 0 seconds, got {settings.read_timeout!r}")
        if settings.stop_bits not in STOPBITS_MAP:
            raise TransportConfigError(f"Unsupported stop bits: {settings.stop_bits}")
        if settings.data_bits not in BYTESIZE_MAP:
            raise TransportConfigError(f"Unsupported data bits: {settings.data_bits}")

        try:
            ser.baudrate = settings.baudrate
            ser.bytesize = BYTESIZE_MAP[settings.data_bits]
            ser.parity = PARITY_MAP[settings.parity_mode] if settings.parity else serial.PARITY_NONE
            ser.stopbits = STOPBITS_MAP[settings.stop_bits]
            ser.xonxoff = settings.flow_control is FlowControl.XON_XOFF
            ser.rtscts = settings.flow_control is FlowControl.RTS_CTS
            ser.dsrdtr = settings.flow_control is FlowControl.DSR_DTR
            ser.timeout = settings.read_timeout
            ser.write_timeout = settings.write_timeout
        except (serial.SerialException, OSError, ValueError) as err:
            raise TransportConfigError(f"Settings not applied to '{self.port}': {err}") from err

        _LOGGER.info("Configured %s: %s", self.port, settings.describe())

    def read(self, max_bytes: int = 1) -> bytes:
        ser = self._require_open()
        try:
            return ser.read(max_bytes)
        except serial.SerialException as err:
            raise TransportError(f"Read from '{self.port}' failed: {err}") from err

    def write(self, data: bytes) -> int:
        ser = self._require_open()
        try:
            written = ser.write(data)
        except serial.SerialException as err:
            raise TransportError(f"Write to '{self.port}' failed: {err}") from err
        return len(data) if written is None else written

    def close(self) -> None:
        if self._serial is None:
            return
        _LOGGER.info("Closing handle to %s", self.port)
        try:
            self._serial.close()
        finally:
            self._serial = None

    def _require_open(self) -> serial.SerialBase:
        if self._serial is None or not self._serial.is_open:
            raise TransportError("Transport is not open")
        return self._serial
