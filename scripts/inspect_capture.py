#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence

from blefile.link.replay import CaptureRecord, load_capture
from blefile.protocol.framing import END_SENTINEL, START_SENTINEL, FramingConfig
from blefile.protocol.reassembler import FrameReassembler


@dataclass
class _Finding:
    errors: List[str]
    warnings: List[str]

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)


def _scan_interior_sentinels(
    records: Sequence[CaptureRecord], config: FramingConfig, finding: _Finding
) -> int:
    hits = 0
    for index, record in enumerate(records):
        interior = record.chunk[1:-1]
        count = interior.count(config.start_sentinel) + interior.count(config.end_sentinel)
        if count:
            hits += 1
            finding.warn(f"chunk {index}: {count} sentinel byte(s) inside the chunk body")
    return hits


def _replay(records: Sequence[CaptureRecord], config: FramingConfig) -> Dict[str, Any]:
    counter = iter(range(1, len(records) + 2))
    reassembler = FrameReassembler(config, name_factory=lambda: f"file_{next(counter)}")
    names: Dict[str, int] = {}
    for record in records:
        for event in reassembler.feed(record.chunk):
            key = type(event).__name__
            names[key] = names.get(key, 0) + 1
    return {
        "events": names,
        "ends_mid_transfer": reassembler.session.active,
        "pending_bytes": reassembler.session.received_bytes,
    }


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Inspect a JSONL chunk capture: sizes, sentinel positions, transfers."
    )
    p.add_argument("--capture", required=True, help="JSONL capture ({ts_ms, hex} per line)")
    p.add_argument("--start-sentinel", type=lambda s: int(s, 0), default=START_SENTINEL)
    p.add_argument("--end-sentinel", type=lambda s: int(s, 0), default=END_SENTINEL)
    p.add_argument("--max-buffer-bytes", type=int, default=None)
    p.add_argument("--out", default=None, help="Write report JSON to this path (default: print)")
    return p


def main() -> int:
    args = build_parser().parse_args()
    config = FramingConfig(
        start_sentinel=args.start_sentinel,
        end_sentinel=args.end_sentinel,
        max_buffer_bytes=args.max_buffer_bytes,
    )
    config.validate()
    records = load_capture(Path(args.capture))
    finding = _Finding(errors=[], warnings=[])
    if not records:
        finding.error("capture is empty")
    empty = sum(1 for record in records if not record.chunk)
    sizes = [len(record.chunk) for record in records]
    report = {
        "capture": str(args.capture),
        "chunks": len(records),
        "empty_chunks": empty,
        "total_bytes": sum(sizes),
        "max_chunk_bytes": max(sizes) if sizes else 0,
        "chunks_with_interior_sentinels": _scan_interior_sentinels(records, config, finding),
        "replay": _replay(records, config),
        "errors": finding.errors,
        "warnings": finding.warnings,
    }
    if report["replay"]["ends_mid_transfer"]:
        finding.warn("capture ends inside a transfer")
    output = json.dumps(report, indent=2)
    if args.out:
        Path(args.out).write_text(output, encoding="utf-8")
    else:
        print(output)
    return 1 if finding.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
