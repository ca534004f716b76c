"""Constants for the CFE flash dump tool."""

from __future__ import annotations

READ_COMMAND = "fdump"
READ_ARG_OFFSET = "-offset="
READ_ARG_SIZE = "-size="
HELP_COMMAND = "help"
SHOW_DEVICES_COMMAND = "show devices"
COMMAND_TERMINATOR = "\r"

STATUS_BANNER_PREFIX = "*** command status ="
LINE_TERMINATORS = frozenset(b"\r\n")
WHITESPACE = " \n\r\t\f\v"

# fdump prints 16 bytes of data per line.
BYTES_PER_LINE = 16

ETX = 0x03
CANCEL_ACK_BYTES = frozenset((ETX, ord("C")))

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_DEVICE = "flash0.nvram"
DEFAULT_FILE_EXT = ".out.bin"

DEFAULT_BAUDRATE = 115200
DEFAULT_DATA_BITS = 8
DEFAULT_STOP_BITS = 1
DEFAULT_WRITE_TIMEOUT = 1.0

# Same as termios VTIME 1 and 10 deciseconds.
READ_TIMEOUT_FAST = 0.1
READ_TIMEOUT_SLOW = 1.0
DEFAULT_READ_TIMEOUT = READ_TIMEOUT_FAST
