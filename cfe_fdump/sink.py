"""Where decoded flash bytes end up."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO

from .errors import OutputSinkError

_LOGGER = logging.getLogger(__name__)


class NullSink:
    """Discards data; used when only listing to the terminal."""

    path: Path | None = None

    def open(self) -> None:
        pass

    def write(self, data: bytes) -> None:
        pass

    def close(self) -> None:
        pass


class FileSink:
    """Binary image opened in overwrite mode and appended in block order."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._handle: BinaryIO | None = None

    def open(self) -> None:
        try:
            self._handle = self.path.open("wb")
        except OSError as err:
            raise OutputSinkError(f"Cannot create output file '{self.path}': {err}") from err
        _LOGGER.info("Writing image to %s", self.path)

    def write(self, data: bytes) -> None:
        if self._handle is None:
            raise OutputSinkError(f"Output file '{self.path}' is not open")
        try:
            self._handle.write(data)
        except OSError as err:
            raise OutputSinkError(f"Write to '{self.path}' failed: {err}") from err

    def close(self) -> None:
        if self._handle is None:
            return
        _LOGGER.info("Closing handle to file %s", self.path)
        try:
            self._handle.close()
        except OSError as err:
            raise OutputSinkError(f"Closing '{self.path}' failed: {err}") from err
        finally:
            self._handle = None


def create_sink(path: str | Path | None) -> FileSink | NullSink:
    return NullSink() if path is None else FileSink(path)
