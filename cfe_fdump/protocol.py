"""Text protocol helpers for the CFE ``fdump`` console command."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re

from .const import (
    BYTES_PER_LINE,
    COMMAND_TERMINATOR,
    HELP_COMMAND,
    LINE_TERMINATORS,
    READ_ARG_OFFSET,
    READ_ARG_SIZE,
    READ_COMMAND,
    SHOW_DEVICES_COMMAND,
    STATUS_BANNER_PREFIX,
    WHITESPACE,
)

SEQ_ID_RE = re.compile(r"^([0-9A-Fa-f]+)")
HEX_TOKEN_RE = re.compile(r"\b[0-9A-Fa-f]{2}\b")


class LineKind(Enum):
    COMMAND_ECHO = "echo"
    STATUS_BANNER = "status"
    DATA = "data"


@dataclass(frozen=True)
class ExtractedLine:
    """Hex payload pulled out of one console line."""

    seq_id: str
    payload: str

    @property
    def byte_count(self) -> int:
        return len(self.payload) // 2


def build_read_command(device: str, offset: int, size: int) -> bytes:
    command = f"{READ_COMMAND} {READ_ARG_OFFSET}{int(offset)} {READ_ARG_SIZE}{int(size)} {device}"
    return (command + COMMAND_TERMINATOR).encode("ascii")


def build_help_command() -> bytes:
    return (HELP_COMMAND + COMMAND_TERMINATOR).encode("ascii")


def build_show_devices_command() -> bytes:
    return (SHOW_DEVICES_COMMAND + COMMAND_TERMINATOR).encode("ascii")


class LineAssembler:
    """Accumulates single bytes into CR/LF delimited lines.

    ``feed`` returns the completed line when a terminator arrives with a
    non-empty buffer, otherwise ``None``. Empty lines (such as the LF half
    of CRLF) are never emitted.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> bool:
        return bool(self._buffer)

    def feed(self, byte: int) -> str | None:
        if byte in LINE_TERMINATORS:
            if not self._buffer:
                return None
            line = self._buffer.decode("ascii", errors="replace")
            self._buffer.clear()
            return line
        self._buffer.append(byte)
        return None

    def discard(self) -> str:
        """Drop the unterminated tail and return it for logging."""
        tail = self._buffer.decode("ascii", errors="replace")
        self._buffer.clear()
        return tail


def trim(line: str) -> str:
    return line.strip(WHITESPACE)


def classify_line(line: str) -> LineKind:
    """Classify an already trimmed console line."""
    if line.startswith(READ_COMMAND + " "):
        return LineKind.COMMAND_ECHO
    if line.startswith(STATUS_BANNER_PREFIX):
        return LineKind.STATUS_BANNER
    return LineKind.DATA


def extract_hex(line: str, bytes_per_line: int = BYTES_PER_LINE) -> ExtractedLine:
    """Collect every standalone two digit hex token in ``line``.

    The leading hex run, if any, is kept as the sequence id for diagnostics.
    Anything beyond ``bytes_per_line`` bytes is dropped; it is usually the
    ASCII column or prompt text that happens to look like hex.
    """
    match = SEQ_ID_RE.match(line)
    seq_id = match.group(1) if match else ""
    payload = "".join(HEX_TOKEN_RE.findall(line))
    max_chars = 2 * bytes_per_line
    if len(payload) > max_chars:
        payload = payload[:max_chars]
    return ExtractedLine(seq_id=seq_id, payload=payload)


def parse_line(line: str, bytes_per_line: int = BYTES_PER_LINE) -> tuple[LineKind, ExtractedLine | None]:
    """Trim, classify and extract one raw line."""
    line = trim(line)
    kind = classify_line(line)
    if kind is not LineKind.DATA or not line:
        return kind, None
    return kind, extract_hex(line, bytes_per_line)


def decode_payload(payload: str) -> bytes:
    """Pair hex characters into bytes.

    The extractor only ever produces an even number of hex digits, so a
    ``ValueError`` here means the extractor is broken.
    """
    if len(payload) % 2:
        raise ValueError(f"Hex payload has odd length {len(payload)}: {payload!r}")
    return bytes.fromhex(payload)


def printable(data: bytes) -> str:
    return "".join(chr(b) if 0x20 <= b < 0x7F else "." for b in data)


def format_listing_line(address: int, payload: str, data: bytes) -> str:
    return f"{address:010d} {payload} {printable(data)}"
