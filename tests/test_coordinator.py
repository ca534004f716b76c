import signal
from pathlib import Path

import pytest

from console_stubs import FakeCfeConsole, ScriptedTransport

from cfe_fdump.config import DumpConfig
from cfe_fdump.coordinator import CANCEL_SIGNALS, CancellationCoordinator, DumpCoordinator, HandshakeResult, run_dump
from cfe_fdump.errors import OutputSinkError, TransportConfigError, TransportError, TransportOpenError
from cfe_fdump.session import CancellationToken
from cfe_fdump.sink import FileSink


def _config(tmp_path: Path | None = None, **kwargs) -> DumpConfig:
    values = {"device": "flash0.nvram", "block_size": 16, "size": 32, "port": "/dev/ttyFAKE"}
    if tmp_path is not None:
        values["output"] = tmp_path / "image.bin"
    values.update(kwargs)
    return DumpConfig(**values)


def test_two_blocks_of_sixteen(tmp_path: Path, console: FakeCfeConsole, memory: bytes) -> None:
    config = _config(tmp_path)

    result = run_dump(config, transport=console)

    assert console.requests == [(0, 16, "flash0.nvram"), (16, 16, "flash0.nvram")]
    assert console.writes == [
        b"fdump -offset=0 -size=16 flash0.nvram\r",
        b"fdump -offset=16 -size=16 flash0.nvram\r",
    ]
    assert config.output.read_bytes() == memory[:32]
    assert result.total_bytes_read == 32
    assert result.blocks_issued == 2
    assert not result.cancelled
    assert result.handshake is None
    assert console.close_calls == 1


def test_remainder_below_one_block_is_never_requested(tmp_path: Path, console: FakeCfeConsole, memory: bytes) -> None:
    config = _config(tmp_path, block_size=32, size=100)

    result = run_dump(config, transport=console)

    assert [offset for offset, _, _ in console.requests] == [0, 32, 64]
    assert result.total_bytes_read == 96
    assert result.unread_tail == 4
    assert config.output.read_bytes() == memory[:96]


def test_dump_starts_at_offset(tmp_path: Path, console: FakeCfeConsole, memory: bytes) -> None:
    config = _config(tmp_path, offset=128, block_size=64, size=128)

    run_dump(config, transport=console)

    assert [offset for offset, _, _ in console.requests] == [128, 192]
    assert config.output.read_bytes() == memory[128:256]


def test_output_is_overwritten(tmp_path: Path, console: FakeCfeConsole, memory: bytes) -> None:
    config = _config(tmp_path)
    config.output.write_bytes(b"x" * 100)

    run_dump(config, transport=console)

    assert config.output.read_bytes() == memory[:32]


def test_listing_only_writes_no_file(tmp_path: Path, console: FakeCfeConsole) -> None:
    lines = []
    result = run_dump(_config(), transport=console, on_data=lambda a, p, d: lines.append(a))

    assert lines == [0, 16]
    assert result.total_bytes_read == 32
    assert list(tmp_path.iterdir()) == []


def test_prelude_runs_before_first_read(console: FakeCfeConsole) -> None:
    result = run_dump(_config(prelude=True), transport=console)

    assert console.writes[:2] == [b"help\r", b"show devices\r"]
    assert console.writes[2].startswith(b"fdump ")
    assert result.total_bytes_read == 32


def _cancel_on_read(token: CancellationToken, at: int):
    def _hook(count: int) -> None:
        if count == at:
            token.cancel()

    return _hook


def test_cancel_stops_further_requests_and_handshake_accepted(tmp_path: Path, memory: bytes) -> None:
    console = FakeCfeConsole(memory)
    cancellation = CancellationCoordinator()
    console.on_read = _cancel_on_read(cancellation.token, 450)

    result = run_dump(_config(tmp_path, block_size=64, size=256), transport=console, cancellation=cancellation)

    assert result.cancelled
    assert result.blocks_issued == 2
    assert len(console.requests) == 2
    assert console.writes[-1] == b"\x03"
    assert result.handshake is HandshakeResult.ACCEPTED
    # cancelled partway through the first line of the second block
    assert result.total_bytes_read == 64
    assert console.close_calls == 1


def test_handshake_busy_when_console_keeps_dumping(memory: bytes) -> None:
    console = FakeCfeConsole(memory, busy_on_cancel=True)
    cancellation = CancellationCoordinator()
    console.on_read = _cancel_on_read(cancellation.token, 20)

    result = run_dump(_config(block_size=64, size=64), transport=console, cancellation=cancellation)

    assert result.cancelled
    assert result.handshake is HandshakeResult.BUSY


def test_handshake_busy_on_silence() -> None:
    transport = ScriptedTransport()
    transport.open("test")

    assert CancellationCoordinator().handshake(transport) is HandshakeResult.BUSY
    assert transport.writes == [b"\x03"]


def test_handshake_accepts_etx_echo() -> None:
    transport = ScriptedTransport(b"\x03CFE> ")
    transport.open("test")

    assert CancellationCoordinator().handshake(transport) is HandshakeResult.ACCEPTED


def test_handshake_swallows_transport_errors() -> None:
    transport = ScriptedTransport()

    assert CancellationCoordinator().handshake(transport) is HandshakeResult.BUSY


def test_cancel_before_start_issues_nothing(console: FakeCfeConsole) -> None:
    token = CancellationToken()
    token.cancel()
    console.open("test")
    coordinator = DumpCoordinator(console, _config(), token=token)

    assert coordinator.copy() == 0
    assert console.writes == []


def test_open_failure_touches_nothing(tmp_path: Path, console: FakeCfeConsole) -> None:
    console.fail_open = True
    config = _config(tmp_path)

    with pytest.raises(TransportOpenError):
        run_dump(config, transport=console)

    assert not config.output.exists()
    assert console.writes == []


def test_config_failure_closes_port(tmp_path: Path, console: FakeCfeConsole) -> None:
    console.fail_configure = True
    config = _config(tmp_path)

    with pytest.raises(TransportConfigError):
        run_dump(config, transport=console)

    assert not config.output.exists()
    assert console.writes == []
    assert console.close_calls == 1


def test_unwritable_output_is_fatal(tmp_path: Path, console: FakeCfeConsole) -> None:
    config = _config(output=tmp_path / "missing" / "image.bin")

    with pytest.raises(OutputSinkError):
        run_dump(config, transport=console)

    assert console.writes == []
    assert console.close_calls == 1


def test_transport_error_mid_copy_closes_everything(tmp_path: Path, console: FakeCfeConsole) -> None:
    def _unplug(count: int) -> None:
        if count == 10:
            raise TransportError("device unplugged")

    console.on_read = _unplug
    config = _config(tmp_path)

    with pytest.raises(TransportError):
        run_dump(config, transport=console)

    assert console.close_calls == 1
    assert config.output.exists()


def _failing_close(self) -> None:
    self._handle.close()
    self._handle = None
    raise OutputSinkError(f"Closing '{self.path}' failed: disk full")


def test_sink_close_failure_does_not_hide_transport_error(
    tmp_path: Path, console: FakeCfeConsole, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _unplug(count: int) -> None:
        if count == 10:
            raise TransportError("device unplugged")

    console.on_read = _unplug
    monkeypatch.setattr(FileSink, "close", _failing_close)

    with pytest.raises(TransportError, match="unplugged"):
        run_dump(_config(tmp_path), transport=console)

    assert console.close_calls == 1


def test_sink_close_failure_is_fatal_after_clean_copy(
    tmp_path: Path, console: FakeCfeConsole, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(FileSink, "close", _failing_close)

    with pytest.raises(OutputSinkError, match="disk full"):
        run_dump(_config(tmp_path), transport=console)

    assert console.close_calls == 1


def test_handlers_not_set_from_python_are_left_alone(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def _signal(sig, handler):
        calls.append((sig, handler))
        return None

    monkeypatch.setattr(signal, "signal", _signal)
    cancellation = CancellationCoordinator()

    with cancellation.installed():
        pass

    # installed once per signal, never restored with None
    assert [sig for sig, _ in calls] == list(CANCEL_SIGNALS)
    assert all(handler is not None for _, handler in calls)


@pytest.mark.skipif(not hasattr(signal, "raise_signal"), reason="needs signal.raise_signal")
def test_sigint_sets_token_and_handler_is_restored() -> None:
    before = signal.getsignal(signal.SIGINT)
    cancellation = CancellationCoordinator()

    with cancellation.installed() as token:
        signal.raise_signal(signal.SIGINT)
        assert token.cancelled

    assert signal.getsignal(signal.SIGINT) == before
