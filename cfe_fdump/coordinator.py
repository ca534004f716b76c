"""Drives a full flash dump over the CFE console."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
import logging
import signal
from typing import Callable, Iterator

from .config import DumpConfig
from .const import BYTES_PER_LINE, CANCEL_ACK_BYTES, ETX
from .errors import OutputSinkError, TransportError
from .protocol import build_help_command, build_show_devices_command, format_listing_line
from .reader import BlockReader, ListingCallback
from .session import CancellationToken, ReadRequest, SessionCounters
from .sink import FileSink, NullSink, create_sink
from .transport import SerialTransport, Transport

_LOGGER = logging.getLogger(__name__)

CANCEL_SIGNALS = tuple(
    sig for sig in (getattr(signal, name, None) for name in ("SIGINT", "SIGTERM", "SIGABRT")) if sig is not None
)


class HandshakeResult(Enum):
    ACCEPTED = "accepted"
    BUSY = "busy"


@dataclass(frozen=True)
class DumpResult:
    total_bytes_read: int
    blocks_issued: int
    blocks_to_copy: int
    unread_tail: int
    cancelled: bool
    handshake: HandshakeResult | None = None


class CancellationCoordinator:
    """Turns interrupts into a cancelled token and does the ETX handshake."""

    def __init__(self, token: CancellationToken | None = None) -> None:
        self.token = token or CancellationToken()

    def _handle_signal(self, signum, frame) -> None:
        # Runs inside the interrupt; only flip the flag.
        self.token.cancel()

    @contextmanager
    def installed(self) -> Iterator[CancellationToken]:
        """Route SIGINT/SIGTERM/SIGABRT to the token for the duration."""
        previous = {}
        try:
            for sig in CANCEL_SIGNALS:
                previous[sig] = signal.signal(sig, self._handle_signal)
        except ValueError:
            # Not on the main thread; callers can still cancel the token directly.
            _LOGGER.debug("Signal handlers not installed outside the main thread")
        try:
            yield self.token
        finally:
            for sig, handler in previous.items():
                # None means the old handler was not set from Python; it cannot be put back
                if handler is not None:
                    signal.signal(sig, handler)

    def handshake(self, transport: Transport) -> HandshakeResult:
        """Send one ETX and classify the first byte that comes back.

        Advisory only: the outcome is logged and returned, never retried.
        """
        try:
            transport.write(bytes((ETX,)))
            reply = transport.read(1)
        except TransportError as err:
            _LOGGER.warning("Cancel handshake failed: %s", err)
            return HandshakeResult.BUSY

        if reply and reply[0] in CANCEL_ACK_BYTES:
            _LOGGER.info("CFE appears to have accepted the ctrl-c")
            return HandshakeResult.ACCEPTED

        if reply:
            _LOGGER.info("Last read after ctrl-c: %r", reply)
        _LOGGER.warning("CFE is busy; it may keep running fdump until it finishes")
        return HandshakeResult.BUSY


class DumpCoordinator:
    """Issues one ``fdump`` per block and collects the decoded bytes."""

    def __init__(
        self,
        transport: Transport,
        config: DumpConfig,
        token: CancellationToken | None = None,
        sink: FileSink | NullSink | None = None,
        on_data: ListingCallback | None = None,
    ) -> None:
        self.transport = transport
        self.config = config
        self.token = token or CancellationToken()
        self.sink = sink or NullSink()
        self.counters = SessionCounters(current_offset=config.offset)
        self.reader = BlockReader(
            transport,
            self.counters,
            self.token,
            sink=self.sink,
            on_data=on_data,
            bytes_per_line=BYTES_PER_LINE,
        )

    def run_prelude(self) -> None:
        """Send ``help`` and ``show devices`` and log whatever comes back."""
        for command in (build_help_command(), build_show_devices_command()):
            if self.token.cancelled:
                return
            self.transport.write(command)
            response = self._drain()
            _LOGGER.debug("%s ->\n%s", command.decode("ascii").strip(), response)

    def _drain(self) -> str:
        chunks = bytearray()
        while not self.token.cancelled:
            chunk = self.transport.read(1)
            if not chunk:
                break
            chunks.extend(chunk)
        return chunks.decode("ascii", errors="replace")

    def copy(self) -> int:
        """Copy ``blocks_to_copy`` blocks starting at the configured offset."""
        config = self.config
        if not config.block_size_aligned:
            _LOGGER.warning(
                "Block size %d is not a multiple of %d; line parsing may misalign",
                config.block_size,
                BYTES_PER_LINE,
            )
        if config.unread_tail:
            _LOGGER.warning(
                "Size %d is not a multiple of block size %d; last %d bytes will not be read",
                config.size,
                config.block_size,
                config.unread_tail,
            )

        for block_index in range(1, config.blocks_to_copy + 1):
            if self.token.cancelled:
                break
            request = ReadRequest(config.device, self.counters.current_offset, config.block_size)
            _LOGGER.debug("Block %d/%d: %s", block_index, config.blocks_to_copy, request.command().strip())
            self.transport.write(request.command())
            self.counters.blocks_issued += 1

            got = self.reader.read_block(request)
            if got != config.block_size and not self.token.cancelled:
                _LOGGER.info("Block at offset %d returned %d of %d bytes", request.offset, got, config.block_size)

            self.counters.current_offset += config.block_size

        return self.counters.total_bytes_read

    def result(self, handshake: HandshakeResult | None = None) -> DumpResult:
        return DumpResult(
            total_bytes_read=self.counters.total_bytes_read,
            blocks_issued=self.counters.blocks_issued,
            blocks_to_copy=self.config.blocks_to_copy,
            unread_tail=self.config.unread_tail,
            cancelled=self.token.cancelled,
            handshake=handshake,
        )


def run_dump(
    config: DumpConfig,
    transport: Transport | None = None,
    on_data: ListingCallback | None = None,
    cancellation: CancellationCoordinator | None = None,
) -> DumpResult:
    """Open, configure, copy, cancel if needed, and release everything.

    Transport and output file are closed on every exit path.
    """
    transport = transport or SerialTransport()
    cancellation = cancellation or CancellationCoordinator()
    sink = create_sink(config.output)

    try:
        transport.open(config.port)
        transport.configure(config.line)
        _LOGGER.info("Serial tty is configured and ready")

        with cancellation.installed() as token:
            coordinator = DumpCoordinator(transport, config, token=token, sink=sink, on_data=on_data)
            if config.prelude:
                coordinator.run_prelude()

            sink.open()
            try:
                _LOGGER.info("Reading device %s", config.device)
                coordinator.copy()
            except BaseException:
                _close_after_error(sink)
                raise
            sink.close()

            handshake = None
            if token.cancelled:
                _LOGGER.info("Broke out of read loop; data retrieved is likely incomplete")
                handshake = cancellation.handshake(transport)
            return coordinator.result(handshake)
    finally:
        transport.close()


def _close_after_error(sink: FileSink | NullSink) -> None:
    try:
        sink.close()
    except OutputSinkError as err:
        _LOGGER.warning("%s", err)


def listing_printer(write: Callable[[str], None] = print) -> ListingCallback:
    """Build an ``on_data`` callback that prints hexdump style lines."""
    def _print(address: int, payload: str, data: bytes) -> None:
        write(format_listing_line(address, payload, data))

    return _print
