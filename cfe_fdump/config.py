"""Dump configuration and its validation schema."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any

import voluptuous as vol

from .const import (
    BYTES_PER_LINE,
    DEFAULT_BAUDRATE,
    DEFAULT_DATA_BITS,
    DEFAULT_DEVICE,
    DEFAULT_FILE_EXT,
    DEFAULT_PORT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_STOP_BITS,
)
from .errors import ConfigError
from .transport import FlowControl, LineSettings, ParityMode

CONF_PORT = "port"
CONF_DEVICE = "device"
CONF_OUTPUT = "output"
CONF_OFFSET = "offset"
CONF_BLOCK_SIZE = "block_size"
CONF_SIZE = "size"
CONF_PRINT_DATA = "print_data"
CONF_PRELUDE = "prelude"
CONF_BAUDRATE = "baudrate"
CONF_PARITY = "parity"
CONF_STOP_BITS = "stop_bits"
CONF_DATA_BITS = "data_bits"
CONF_FLOW_CONTROL = "flow_control"
CONF_READ_TIMEOUT = "read_timeout"

PARITY_CHOICES = {"N": None, "E": ParityMode.EVEN, "O": ParityMode.ODD}

DUMP_CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): str,
        vol.Optional(CONF_DEVICE, default=DEFAULT_DEVICE): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_OUTPUT, default=None): vol.Any(None, str),
        vol.Optional(CONF_OFFSET, default=0): vol.All(int, vol.Range(min=0)),
        vol.Required(CONF_BLOCK_SIZE): vol.All(int, vol.Range(min=1)),
        vol.Required(CONF_SIZE): vol.All(int, vol.Range(min=0)),
        vol.Optional(CONF_PRINT_DATA, default=False): bool,
        vol.Optional(CONF_PRELUDE, default=False): bool,
        vol.Optional(CONF_BAUDRATE, default=DEFAULT_BAUDRATE): vol.All(int, vol.Range(min=1)),
        vol.Optional(CONF_PARITY, default="N"): vol.All(vol.Upper, vol.In(PARITY_CHOICES)),
        vol.Optional(CONF_STOP_BITS, default=DEFAULT_STOP_BITS): vol.In([1, 2]),
        vol.Optional(CONF_DATA_BITS, default=DEFAULT_DATA_BITS): vol.All(int, vol.Range(min=5, max=8)),
        vol.Optional(CONF_FLOW_CONTROL, default=FlowControl.NONE.value): vol.All(
            vol.Lower, vol.In([fc.value for fc in FlowControl])
        ),
        vol.Optional(CONF_READ_TIMEOUT, default=DEFAULT_READ_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
    }
)


@dataclass(frozen=True)
class DumpConfig:
    device: str
    block_size: int
    size: int
    offset: int = 0
    port: str = DEFAULT_PORT
    output: Path | None = None
    print_data: bool = False
    prelude: bool = False
    line: LineSettings = field(default_factory=LineSettings)

    @property
    def blocks_to_copy(self) -> int:
        return self.size // self.block_size

    @property
    def unread_tail(self) -> int:
        return self.size - self.blocks_to_copy * self.block_size

    @property
    def block_size_aligned(self) -> bool:
        return self.block_size % BYTES_PER_LINE == 0


def default_output_name(device: str) -> str:
    return device + DEFAULT_FILE_EXT


def config_from_mapping(data: dict[str, Any]) -> DumpConfig:
    """Validate ``data`` against the schema and build a ``DumpConfig``."""
    try:
        conf = DUMP_CONFIG_SCHEMA(dict(data))
    except vol.Invalid as err:
        raise ConfigError(str(err)) from err

    parity_mode = PARITY_CHOICES[conf[CONF_PARITY]]
    line = LineSettings(
        baudrate=conf[CONF_BAUDRATE],
        parity=parity_mode is not None,
        parity_mode=parity_mode or ParityMode.EVEN,
        stop_bits=conf[CONF_STOP_BITS],
        data_bits=conf[CONF_DATA_BITS],
        flow_control=FlowControl(conf[CONF_FLOW_CONTROL]),
        read_timeout=conf[CONF_READ_TIMEOUT],
    )

    output = conf[CONF_OUTPUT]
    if output == "":
        output = default_output_name(conf[CONF_DEVICE])

    return DumpConfig(
        device=conf[CONF_DEVICE],
        block_size=conf[CONF_BLOCK_SIZE],
        size=conf[CONF_SIZE],
        offset=conf[CONF_OFFSET],
        port=conf[CONF_PORT],
        output=Path(output) if output is not None else None,
        print_data=conf[CONF_PRINT_DATA],
        prelude=conf[CONF_PRELUDE],
        line=line,
    )


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a JSON object of config keys. Validation happens later."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as err:
        raise ConfigError(f"Cannot read config file '{path}': {err}") from err
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a JSON object")
    return data
