"""Per-run state shared by the reader and the coordinator."""

from __future__ import annotations

from dataclasses import dataclass
import threading

from .protocol import build_read_command


@dataclass(frozen=True)
class ReadRequest:
    device: str
    offset: int
    block_size: int

    def command(self) -> bytes:
        return build_read_command(self.device, self.offset, self.block_size)


@dataclass
class SessionCounters:
    """Counters for one process run.

    ``block_id`` counts lines parsed in the current block and is reset per
    request; ``total_bytes_read`` only ever grows.
    """

    current_offset: int = 0
    block_id: int = 0
    total_bytes_read: int = 0
    blocks_issued: int = 0

    def start_block(self) -> None:
        self.block_id = 0

    def line_parsed(self, byte_count: int) -> None:
        self.block_id += 1
        self.total_bytes_read += byte_count


class CancellationToken:
    """One-shot flag set from a signal handler and polled by the loops."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
