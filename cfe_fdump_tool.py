#!/usr/bin/env python3
"""Clone flash memory from a CFE console using fdump commands over a serial tty.

Boot the target into CFE with another terminal program, quit it once you
have a ``CFE>`` prompt, then run this tool on the same port. It works a bit
like dd:

  python cfe_fdump_tool.py --if flash0.nvram --bs 64 --size 640 -l
  python cfe_fdump_tool.py --tty /dev/ttyS0 --if flash0.nvram --of f0.nvram.bin --bs 65536 --size 65536 -v

Block size should be a multiple of 16 (CFE prints 16 bytes per line). Large
block sizes mean fewer round trips and much faster dumps.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from cfe_fdump.config import (
    CONF_BAUDRATE,
    CONF_BLOCK_SIZE,
    CONF_DATA_BITS,
    CONF_DEVICE,
    CONF_FLOW_CONTROL,
    CONF_OFFSET,
    CONF_OUTPUT,
    CONF_PARITY,
    CONF_PORT,
    CONF_PRELUDE,
    CONF_PRINT_DATA,
    CONF_READ_TIMEOUT,
    CONF_SIZE,
    CONF_STOP_BITS,
    DumpConfig,
    config_from_mapping,
    load_config_file,
)
from cfe_fdump.const import DEFAULT_PORT, READ_TIMEOUT_SLOW
from cfe_fdump.coordinator import DumpResult, listing_printer, run_dump
from cfe_fdump.errors import ConfigError, OutputSinkError, TransportError
from cfe_fdump.transport import FlowControl


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dump flash memory through CFE using a tty serial interface.",
    )
    parser.add_argument("--port", "--tty", dest="port", help=f"Serial port, e.g. /dev/ttyUSB0 or COM4 (default {DEFAULT_PORT})")
    parser.add_argument("--device", "--if", dest="device", help="Flash device name, e.g. flash0.boot or flash0.nvram")
    parser.add_argument(
        "--output",
        "--of",
        dest="output",
        nargs="?",
        const="",
        help="Output image path; with no value uses <device>.out.bin",
    )
    parser.add_argument("--offset", "--skip", dest="offset", type=int, help="Byte offset into the device (default 0)")
    parser.add_argument("--block-size", "--bs", dest="block_size", type=int, help="Bytes per fdump command")
    parser.add_argument("--size", "--count", dest="size", type=int, help="Total bytes to copy")
    parser.add_argument("--baudrate", type=int)
    parser.add_argument("--bytesize", dest="data_bits", type=int, choices=[5, 6, 7, 8])
    parser.add_argument("--parity", choices=["N", "E", "O"])
    parser.add_argument("--stopbits", dest="stop_bits", type=int, choices=[1, 2])
    parser.add_argument("--flow-control", dest="flow_control", choices=[fc.value for fc in FlowControl])
    parser.add_argument("--timeout", dest="read_timeout", type=float, help="Serial read timeout in seconds")
    parser.add_argument(
        "--slow",
        action="store_true",
        help=f"Use a {READ_TIMEOUT_SLOW:.0f}s read timeout for slow links",
    )
    parser.add_argument("-l", "--list", dest="print_data", action="store_true", default=None, help="Print the data like hexdump")
    parser.add_argument(
        "--prelude",
        action="store_true",
        default=None,
        help="Send 'help' and 'show devices' before dumping (implied by -vv)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug")
    parser.add_argument("--config", help="JSON file with default option values")
    return parser


def _collect_options(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = load_config_file(args.config) if args.config else {}

    overrides = {
        CONF_PORT: args.port,
        CONF_DEVICE: args.device,
        CONF_OUTPUT: args.output,
        CONF_OFFSET: args.offset,
        CONF_BLOCK_SIZE: args.block_size,
        CONF_SIZE: args.size,
        CONF_BAUDRATE: args.baudrate,
        CONF_DATA_BITS: args.data_bits,
        CONF_PARITY: args.parity,
        CONF_STOP_BITS: args.stop_bits,
        CONF_FLOW_CONTROL: args.flow_control,
        CONF_READ_TIMEOUT: READ_TIMEOUT_SLOW if args.slow and args.read_timeout is None else args.read_timeout,
        CONF_PRINT_DATA: args.print_data,
        CONF_PRELUDE: True if args.verbose >= 2 else args.prelude,
    }
    options.update({key: value for key, value in overrides.items() if value is not None})
    return options


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _print_summary(config: DumpConfig, result: DumpResult) -> None:
    print("Done.")
    print(f"Device: {config.device}")
    print(f"Size in bytes read: {result.total_bytes_read}")
    print(f"Blocks issued: {result.blocks_issued}/{result.blocks_to_copy}")
    if result.unread_tail:
        print(f"Not requested (below one block): {result.unread_tail} bytes")
    if config.output is not None:
        print(f"Image saved to {config.output}")
    if result.cancelled:
        print("Cancelled; data retrieved is likely incomplete.")
        if result.handshake is not None:
            print(f"CFE cancel handshake: {result.handshake.value}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        options = _collect_options(args)
        missing = [name for name in (CONF_DEVICE, CONF_BLOCK_SIZE, CONF_SIZE) if name not in options]
        if missing:
            parser.error("missing required option(s): " + ", ".join("--" + name.replace("_", "-") for name in missing))
        config = config_from_mapping(options)
    except ConfigError as exc:
        parser.error(str(exc))

    print(f"Reading device {config.device} from {config.port} ({config.line.describe()})")
    on_data = listing_printer() if config.print_data else None
    try:
        result = run_dump(config, on_data=on_data)
    except (TransportError, OutputSinkError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    _print_summary(config, result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
