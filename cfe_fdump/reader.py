"""Reads the console response to one ``fdump`` command."""

from __future__ import annotations

from enum import Enum
import logging
from typing import Callable, Protocol

from .const import BYTES_PER_LINE
from .protocol import LineAssembler, LineKind, decode_payload, parse_line
from .session import CancellationToken, ReadRequest, SessionCounters
from .transport import Transport

_LOGGER = logging.getLogger(__name__)

ListingCallback = Callable[[int, str, bytes], None]


class DataSink(Protocol):
    def write(self, data: bytes) -> None: ...


class ReaderState(Enum):
    AWAITING_BYTE = "awaiting_byte"
    LINE_COMPLETE = "line_complete"
    DONE = "done"


class BlockReader:
    """Consumes bytes until the console goes quiet or the run is cancelled.

    There is no end-of-block marker: a read that times out ends the block.
    The read timeout therefore has to be longer than the gap between lines
    at the configured baud rate, or blocks end early.
    """

    def __init__(
        self,
        transport: Transport,
        counters: SessionCounters,
        token: CancellationToken,
        sink: DataSink | None = None,
        on_data: ListingCallback | None = None,
        bytes_per_line: int = BYTES_PER_LINE,
    ) -> None:
        self.transport = transport
        self.counters = counters
        self.token = token
        self.sink = sink
        self.on_data = on_data
        self.bytes_per_line = bytes_per_line
        self.state = ReaderState.DONE
        self.block_bytes = 0

    def read_block(self, request: ReadRequest) -> int:
        """Parse the response to ``request`` and return the bytes it produced."""
        assembler = LineAssembler()
        self.counters.start_block()
        self.block_bytes = 0
        self.state = ReaderState.AWAITING_BYTE

        while self.state is not ReaderState.DONE:
            if self.token.cancelled:
                _LOGGER.debug("Cancelled while reading block at offset %s", request.offset)
                self.state = ReaderState.DONE
                break

            chunk = self.transport.read(1)
            if not chunk:
                self.state = ReaderState.DONE
                break

            line = assembler.feed(chunk[0])
            if line is None:
                continue

            self.state = ReaderState.LINE_COMPLETE
            self._handle_line(line, request)
            self.state = ReaderState.AWAITING_BYTE

        if assembler.pending:
            _LOGGER.debug("Dropping unterminated tail %r", assembler.discard())
        return self.block_bytes

    def _handle_line(self, line: str, request: ReadRequest) -> None:
        kind, extracted = parse_line(line, self.bytes_per_line)
        if kind is not LineKind.DATA:
            _LOGGER.debug("Skipping %s line: %s", kind.value, line.strip())
            self.counters.line_parsed(0)
            return
        if extracted is None or not extracted.payload:
            _LOGGER.debug("No hex data in line: %r", line)
            self.counters.line_parsed(0)
            return

        data = decode_payload(extracted.payload)
        address = request.offset + self.block_bytes
        if len(data) < self.bytes_per_line:
            _LOGGER.debug("Short line at %s (seq %s): %d bytes", address, extracted.seq_id, len(data))

        if self.on_data is not None:
            self.on_data(address, extracted.payload, data)
        if self.sink is not None:
            self.sink.write(data)

        self.block_bytes += len(data)
        self.counters.line_parsed(len(data))
