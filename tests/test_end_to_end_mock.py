from pathlib import Path

from blefile.config.receiverspec import ReceiverSpec
from blefile.link.mock import MockChunkSource, MockPeer
from blefile.protocol.framing import timestamp_name
from blefile.protocol.reassembler import FrameReassembler
from blefile.runtime.logging import JsonlLogger
from blefile.runtime.metrics import compute_metrics, load_events
from blefile.runtime.receiver import ReceiverNode
from blefile.runtime.scheduler import FakeClock
from blefile.storage.directory import DirectoryFileStore


def _make_spec(tmp_path: Path) -> ReceiverSpec:
    data = {
        "receiver_id": "e2e",
        "framing": {"max_buffer_bytes": 2048, "session_timeout_ms": 500},
        "storage": {"out_dir": str(tmp_path / "files"), "name_prefix": "rx_"},
        "logging": {"out_dir": str(tmp_path / "logs")},
    }
    spec = ReceiverSpec.from_dict(data)
    spec.validate()
    return spec


def test_end_to_end_mock(tmp_path: Path) -> None:
    spec = _make_spec(tmp_path)
    clock = FakeClock()
    stamps = iter(range(1000, 2000))
    reassembler = FrameReassembler(
        spec.framing.to_config(),
        clock=clock,
        name_factory=lambda: timestamp_name(
            spec.storage.name_prefix, spec.storage.name_suffix, next(stamps)
        ),
    )
    logger = JsonlLogger(spec.logging.out_dir, spec.receiver_id, "mock", clock=clock)
    logger.log_rx_start(spec.as_dict())
    node = ReceiverNode(
        reassembler,
        DirectoryFileStore(spec.storage.out_dir),
        logger,
        session_timeout_ms=spec.framing.session_timeout_ms,
    )
    source = MockChunkSource()
    node.attach(source)
    peer = MockPeer(source, mtu=20, seed=11)

    report = b"%PDF-1.4 fake report body " * 20
    peer.send_file(report)
    clock.sleep_ms(10)

    oversized = b"z" * 4096
    peer.send_file(oversized)

    source.push(b"\x02stalled")
    clock.sleep_ms(600)
    node.check_timeout()

    peer.send_file(b"short note")
    source.push(b"\x02cut off")
    source.end("peer disconnected")
    node.teardown()
    logger.close()

    files = sorted((tmp_path / "files").iterdir())
    assert [p.name for p in files] == ["rx_1000.pdf", "rx_1001.pdf"]
    assert files[0].read_bytes() == b"\x02" + report + b"\x03"
    assert files[1].read_bytes() == b"\x02short note\x03"

    events = load_events(tmp_path / "logs" / "e2e_rx.jsonl")
    metrics = compute_metrics(events)
    assert metrics["files_saved"] == 2
    assert metrics["aborted"] == {"timeout": 1}
    assert metrics["errors"] == {"buffer_overflow": 1, "link_terminated": 1}
    assert metrics["transfers_started"] == 5
    assert node.stats()["files_saved"] == 2
