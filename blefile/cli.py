from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from blefile.config import LoggingSpec, ReceiverSpec, load_receiverspec
from blefile.link.ble import BleLink
from blefile.link.mock import split_chunks
from blefile.link.replay import CaptureWriter, ReplayChunkSource
from blefile.protocol.events import TransferEvent, event_fields, event_name
from blefile.protocol.framing import frame_payload, timestamp_name
from blefile.protocol.reassembler import FrameReassembler
from blefile.runtime.logging import JsonlLogger
from blefile.runtime.metrics import compute_metrics, load_events
from blefile.runtime.receiver import ReceiverNode
from blefile.runtime.scheduler import Clock, RealClock
from blefile.storage.directory import DirectoryFileStore


def _load_spec(args: argparse.Namespace) -> ReceiverSpec:
    if args.spec:
        return load_receiverspec(args.spec)
    spec = ReceiverSpec(receiver_id="blefile", logging=LoggingSpec(out_dir="logs"))
    spec.validate()
    return spec


def _build_receiver(
    spec: ReceiverSpec,
    logger: JsonlLogger,
    clock: Clock,
    out_dir: str | None = None,
) -> ReceiverNode:
    prefix = spec.storage.name_prefix
    suffix = spec.storage.name_suffix
    reassembler = FrameReassembler(
        spec.framing.to_config(),
        clock=clock,
        name_factory=lambda: timestamp_name(prefix, suffix),
    )
    store = DirectoryFileStore(out_dir or spec.storage.out_dir)
    return ReceiverNode(
        reassembler,
        store,
        logger,
        session_timeout_ms=spec.framing.session_timeout_ms,
    )


def _print_event(event: TransferEvent) -> None:
    print(f"{event_name(event)} {json.dumps(event_fields(event))}")


def _resolve_address(args: argparse.Namespace, spec: ReceiverSpec) -> str:
    address = args.address or spec.link.address
    if not address:
        raise ValueError("--address (or link.address in the spec) is required for BLE")
    return address


def _make_link(spec: ReceiverSpec, address: str) -> BleLink:
    return BleLink(
        address,
        service_uuid=spec.link.service_uuid,
        char_uuid=spec.link.char_uuid,
        connect_timeout_s=spec.link.connect_timeout_s,
    )


async def _receive_ble(
    link: BleLink,
    receiver: ReceiverNode,
    logger: JsonlLogger,
    *,
    step_ms: int,
    max_files: int | None,
    max_seconds: float | None,
) -> int:
    outcome = await link.connect()
    if not outcome.ok:
        logger.log_event("link_failed", {"status": outcome.status, "detail": outcome.detail})
        print(f"connect failed: {outcome.status}: {outcome.detail}")
        return 2
    logger.log_event("link_connected", {"address": link.address, "detail": outcome.detail})
    receiver.attach(link)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max_seconds if max_seconds is not None else None
    try:
        while link.connected:
            if max_files is not None and len(receiver.saved) >= max_files:
                break
            if deadline is not None and loop.time() >= deadline:
                break
            receiver.check_timeout()
            await asyncio.sleep(step_ms / 1000.0)
    finally:
        receiver.teardown()
        await link.wait_closed()
    return 0


def _run_rx(args: argparse.Namespace) -> int:
    spec = _load_spec(args)
    clock = RealClock()
    logger = JsonlLogger(spec.logging.out_dir, spec.receiver_id, args.link, clock=clock)
    logger.log_rx_start(spec.as_dict())
    receiver = _build_receiver(spec, logger, clock, out_dir=args.out_dir)
    receiver.add_listener(_print_event)
    code = 0
    try:
        if args.link == "replay":
            if not args.capture:
                raise ValueError("--capture is required for --link replay")
            source = ReplayChunkSource.from_file(args.capture)
            receiver.attach(source)
            source.play(clock, realtime=args.realtime, on_tick=receiver.check_timeout)
            receiver.teardown()
        else:
            link = _make_link(spec, _resolve_address(args, spec))
            code = asyncio.run(
                _receive_ble(
                    link,
                    receiver,
                    logger,
                    step_ms=args.step_ms,
                    max_files=args.max_files,
                    max_seconds=args.max_seconds,
                )
            )
    except KeyboardInterrupt:
        receiver.teardown()
    finally:
        logger.close()
    print(json.dumps(receiver.stats(), indent=2))
    return code


async def _capture_ble(
    link: BleLink,
    writer: CaptureWriter,
    *,
    step_ms: int,
    max_seconds: float | None,
) -> int:
    outcome = await link.connect()
    if not outcome.ok:
        print(f"connect failed: {outcome.status}: {outcome.detail}")
        return 2
    subscription = link.subscribe(writer.write, lambda reason: None)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max_seconds if max_seconds is not None else None
    try:
        while link.connected:
            if deadline is not None and loop.time() >= deadline:
                break
            await asyncio.sleep(step_ms / 1000.0)
    finally:
        subscription.cancel()
        link.disconnect()
        await link.wait_closed()
    return 0


def _run_capture(args: argparse.Namespace) -> int:
    spec = _load_spec(args)
    link = _make_link(spec, _resolve_address(args, spec))
    writer = CaptureWriter(args.out)
    try:
        code = asyncio.run(
            _capture_ble(link, writer, step_ms=args.step_ms, max_seconds=args.max_seconds)
        )
    except KeyboardInterrupt:
        code = 0
    finally:
        writer.close()
    print(f"captured {writer.written} chunks to {writer.path}")
    return code


def _run_frame(args: argparse.Namespace) -> int:
    spec = _load_spec(args)
    data = Path(args.input).read_bytes()
    config = spec.framing.to_config()
    framed = frame_payload(data, config)
    chunks = split_chunks(framed, mtu=args.mtu, seed=args.seed, config=config)
    writer = CaptureWriter(args.out)
    try:
        for index, chunk in enumerate(chunks):
            writer.write(chunk, ts_ms=index * args.interval_ms)
    finally:
        writer.close()
    print(f"wrote {len(chunks)} chunks ({len(framed)} bytes) to {writer.path}")
    return 0


def _run_metrics(args: argparse.Namespace) -> int:
    events = []
    for path in args.log:
        events.extend(load_events(path))
    grouped: dict[str, list[dict[str, object]]] = {}
    for event in events:
        receiver_id = str(event.get("receiver_id", "unknown"))
        grouped.setdefault(receiver_id, []).append(event)
    report = {rid: compute_metrics(rid_events) for rid, rid_events in grouped.items()}
    output = json.dumps(report, indent=2)
    if args.out:
        Path(args.out).write_text(output, encoding="utf-8")
    else:
        print(output)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="blefile")
    sub = parser.add_subparsers(dest="cmd", required=True)

    rx = sub.add_parser("rx", help="receive framed files from a BLE peer or a capture")
    rx.add_argument("--spec", help="receiver spec (JSON or YAML)")
    rx.add_argument("--link", choices=["ble", "replay"], default="ble")
    rx.add_argument("--address", help="BLE device address (overrides link.address)")
    rx.add_argument("--capture", help="JSONL capture to replay with --link replay")
    rx.add_argument(
        "--realtime",
        action="store_true",
        help="honour capture timestamps while replaying (enables the session watchdog)",
    )
    rx.add_argument("--out-dir", help="directory for received files (overrides storage.out_dir)")
    rx.add_argument("--max-files", type=int)
    rx.add_argument("--max-seconds", type=float)
    rx.add_argument("--step-ms", type=int, default=50)
    rx.set_defaults(func=_run_rx)

    capture = sub.add_parser("capture", help="record raw BLE notifications to a JSONL capture")
    capture.add_argument("--spec", help="receiver spec (JSON or YAML)")
    capture.add_argument("--address", help="BLE device address (overrides link.address)")
    capture.add_argument("--out", required=True, help="output JSONL capture")
    capture.add_argument("--max-seconds", type=float)
    capture.add_argument("--step-ms", type=int, default=50)
    capture.set_defaults(func=_run_capture)

    frame = sub.add_parser("frame", help="write a framed capture of a local file")
    frame.add_argument("--spec", help="receiver spec (JSON or YAML)")
    frame.add_argument("--in", dest="input", required=True)
    frame.add_argument("--out", required=True)
    frame.add_argument("--mtu", type=int, default=20)
    frame.add_argument("--seed", type=int, default=0)
    frame.add_argument("--interval-ms", type=int, default=10)
    frame.set_defaults(func=_run_frame)

    metrics = sub.add_parser("metrics", help="summarize receiver JSONL logs")
    metrics.add_argument("--log", action="append", required=True, help="path to a JSONL log")
    metrics.add_argument("--out")
    metrics.set_defaults(func=_run_metrics)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
