import json
import runpy
import sys
from pathlib import Path

import pytest

from blefile.cli import main
from blefile.link.base import ChunkSourceBase, ConnectOutcome


def _write_spec(tmp_path: Path, **framing: object) -> Path:
    data = {
        "receiver_id": "cli_test",
        "link": {"address": "AA:BB:CC:DD:EE:FF"},
        "framing": {"max_buffer_bytes": 4096, **framing},
        "storage": {"out_dir": str(tmp_path / "files"), "name_suffix": ".bin"},
        "logging": {"out_dir": str(tmp_path / "logs")},
    }
    path = tmp_path / "receiver.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class _FakeLink(ChunkSourceBase):
    script: list[bytes] = []
    outcome = ConnectOutcome("CONNECTED", "Peer")
    created: list["_FakeLink"] = []

    def __init__(self, address: str, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__()
        self.address = address
        self.kwargs = kwargs
        self.disconnects = 0
        self._pending = list(type(self).script)
        type(self).created.append(self)

    async def connect(self) -> ConnectOutcome:
        return type(self).outcome

    @property
    def connected(self) -> bool:
        for chunk in self._pending:
            self._deliver(chunk)
        self._pending = []
        self._finish("peer disconnected")
        return not self.ended

    def disconnect(self) -> None:
        self.disconnects += 1
        self._finish("disconnected")

    async def wait_closed(self) -> None:
        return None


@pytest.fixture()
def fake_link(monkeypatch: pytest.MonkeyPatch) -> type[_FakeLink]:
    import blefile.cli as cli_mod

    _FakeLink.script = []
    _FakeLink.outcome = ConnectOutcome("CONNECTED", "Peer")
    _FakeLink.created = []
    monkeypatch.setattr(cli_mod, "BleLink", _FakeLink)
    return _FakeLink


def test_frame_then_replay_then_metrics(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    spec = _write_spec(tmp_path)
    source = tmp_path / "doc.bin"
    source.write_bytes(b"payload " * 30)
    capture = tmp_path / "doc.jsonl"

    argv = ["frame", "--spec", str(spec), "--in", str(source), "--out", str(capture), "--mtu", "8"]
    assert main(argv) == 0
    lines = capture.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["hex"].startswith("02")
    assert json.loads(lines[1])["ts_ms"] == 10

    assert main(["rx", "--spec", str(spec), "--link", "replay", "--capture", str(capture)]) == 0
    out = capsys.readouterr().out
    assert "file_saved" in out
    files = list((tmp_path / "files").iterdir())
    assert len(files) == 1
    assert files[0].suffix == ".bin"
    assert files[0].read_bytes() == b"\x02" + b"payload " * 30 + b"\x03"

    report_path = tmp_path / "report.json"
    log_path = tmp_path / "logs" / "cli_test_rx.jsonl"
    assert main(["metrics", "--log", str(log_path), "--out", str(report_path)]) == 0
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["cli_test"]["files_saved"] == 1

    assert main(["metrics", "--log", str(log_path)]) == 0
    assert '"cli_test"' in capsys.readouterr().out


def test_replay_out_dir_override_and_truncated_capture(tmp_path: Path) -> None:
    spec = _write_spec(tmp_path)
    capture = tmp_path / "cut.jsonl"
    capture.write_text('{"ts_ms": 0, "hex": "024142"}\n', encoding="utf-8")
    out_dir = tmp_path / "override"
    assert (
        main(
            [
                "rx",
                "--spec",
                str(spec),
                "--link",
                "replay",
                "--capture",
                str(capture),
                "--out-dir",
                str(out_dir),
            ]
        )
        == 0
    )
    assert not out_dir.exists()
    log = (tmp_path / "logs" / "cli_test_rx.jsonl").read_text(encoding="utf-8")
    assert "link_terminated" in log


def test_replay_requires_capture(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="--capture is required"):
        main(["rx", "--spec", str(_write_spec(tmp_path)), "--link", "replay"])


def test_rx_ble_receives_until_peer_disconnects(
    tmp_path: Path, fake_link: type[_FakeLink]
) -> None:
    fake_link.script = [b"\x02hel", b"lo\x03", b"\x02partial"]
    spec = _write_spec(tmp_path)
    assert main(["rx", "--spec", str(spec), "--step-ms", "0"]) == 0
    link = fake_link.created[0]
    assert link.address == "AA:BB:CC:DD:EE:FF"
    assert link.kwargs["char_uuid"] == "0000ffe1-0000-1000-8000-00805f9b34fb"
    files = list((tmp_path / "files").iterdir())
    assert [f.read_bytes() for f in files] == [b"\x02hello\x03"]
    log = (tmp_path / "logs" / "cli_test_rx.jsonl").read_text(encoding="utf-8")
    assert "link_connected" in log
    assert "link_terminated" in log


def test_rx_ble_address_override(tmp_path: Path, fake_link: type[_FakeLink]) -> None:
    spec = _write_spec(tmp_path)
    assert main(["rx", "--spec", str(spec), "--address", "11:22", "--step-ms", "0"]) == 0
    assert fake_link.created[0].address == "11:22"


def test_rx_ble_connect_failure_returns_2(
    tmp_path: Path, fake_link: type[_FakeLink], capsys: pytest.CaptureFixture[str]
) -> None:
    fake_link.outcome = ConnectOutcome("SERVICE_NOT_FOUND", "service 0000ffe0 not found")
    assert main(["rx", "--spec", str(_write_spec(tmp_path))]) == 2
    assert "SERVICE_NOT_FOUND" in capsys.readouterr().out
    log = (tmp_path / "logs" / "cli_test_rx.jsonl").read_text(encoding="utf-8")
    assert "link_failed" in log


def test_rx_ble_requires_address(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValueError, match="--address"):
        main(["rx"])


def test_capture_records_chunks(tmp_path: Path, fake_link: type[_FakeLink]) -> None:
    fake_link.script = [b"\x02a", b"b\x03"]
    out = tmp_path / "cap" / "live.jsonl"
    spec = _write_spec(tmp_path)
    assert main(["capture", "--spec", str(spec), "--out", str(out), "--step-ms", "0"]) == 0
    records = [json.loads(line) for line in out.read_text(encoding="utf-8").splitlines()]
    assert [r["hex"] for r in records] == ["0261", "6203"]
    assert fake_link.created[0].disconnects == 1


def test_capture_connect_failure(tmp_path: Path, fake_link: type[_FakeLink]) -> None:
    fake_link.outcome = ConnectOutcome("DEVICE_NOT_FOUND", "nope")
    out = tmp_path / "live.jsonl"
    assert main(["capture", "--spec", str(_write_spec(tmp_path)), "--out", str(out)]) == 2


def test_cli_main_module_entrypoint_executes(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    log_path = tmp_path / "log.jsonl"
    line = json.dumps({"event": "rx_chunk", "chunk_bytes": 3})
    log_path.write_text(line + "\n", encoding="utf-8")
    monkeypatch.delitem(sys.modules, "blefile.cli", raising=False)
    monkeypatch.setattr(sys, "argv", ["blefile.cli", "metrics", "--log", str(log_path)])
    with pytest.raises(SystemExit) as exc:
        runpy.run_module("blefile.cli", run_name="__main__")
    assert exc.value.code == 0


def test_frame_binary_payload_replays_as_one_file(tmp_path: Path) -> None:
    spec = _write_spec(tmp_path)
    payload = bytes(range(256)) * 8
    source = tmp_path / "blob.bin"
    source.write_bytes(payload)
    capture = tmp_path / "blob.jsonl"
    assert main(["frame", "--spec", str(spec), "--in", str(source), "--out", str(capture)]) == 0
    assert main(["rx", "--spec", str(spec), "--link", "replay", "--capture", str(capture)]) == 0
    files = list((tmp_path / "files").iterdir())
    assert len(files) == 1
    assert files[0].read_bytes() == b"\x02" + payload + b"\x03"
