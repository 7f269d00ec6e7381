from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

from blefile.link.base import ChunkSourceBase
from blefile.runtime.scheduler import Clock, RealClock


@dataclass(frozen=True)
class CaptureRecord:
    ts_ms: int
    chunk: bytes

    def as_dict(self) -> dict:
        return {"ts_ms": self.ts_ms, "hex": self.chunk.hex()}

    @classmethod
    def from_dict(cls, data: dict) -> "CaptureRecord":
        if "hex" not in data:
            raise ValueError("capture record is missing 'hex'")
        try:
            chunk = bytes.fromhex(str(data["hex"]))
        except ValueError as exc:
            raise ValueError(f"invalid hex in capture record: {exc}") from exc
        return cls(ts_ms=int(data.get("ts_ms", 0)), chunk=chunk)


def load_capture(path: str | Path) -> List[CaptureRecord]:
    path = Path(path)
    records = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path}:{lineno}: invalid JSON: {exc.msg}") from exc
        records.append(CaptureRecord.from_dict(payload))
    return records


class CaptureWriter:
    """Appends received chunks to a JSONL capture, one `{"ts_ms", "hex"}` object per line."""

    def __init__(self, path: str | Path, clock: Clock | None = None) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock or RealClock()
        self._fh = self._path.open("a", encoding="utf-8")
        self.written = 0

    @property
    def path(self) -> Path:
        return self._path

    def write(self, chunk: bytes, ts_ms: int | None = None) -> None:
        record = CaptureRecord(
            ts_ms=self._clock.now_ms() if ts_ms is None else int(ts_ms), chunk=bytes(chunk)
        )
        self._fh.write(json.dumps(record.as_dict(), ensure_ascii=True) + "\n")
        self._fh.flush()
        self.written += 1

    def close(self) -> None:
        self._fh.close()


class ReplayChunkSource(ChunkSourceBase):
    def __init__(self, records: List[CaptureRecord]) -> None:
        super().__init__()
        self._records = list(records)
        self._pos = 0

    @classmethod
    def from_file(cls, path: str | Path) -> "ReplayChunkSource":
        return cls(load_capture(path))

    def remaining(self) -> int:
        return len(self._records) - self._pos

    def play(
        self,
        clock: Clock | None = None,
        *,
        realtime: bool = False,
        on_tick: Callable[[], None] | None = None,
    ) -> int:
        clock = clock or RealClock()
        delivered = 0
        prev_ts: int | None = None
        while self._pos < len(self._records) and not self.ended:
            record = self._records[self._pos]
            self._pos += 1
            if realtime and prev_ts is not None:
                clock.sleep_ms(max(0, record.ts_ms - prev_ts))
            prev_ts = record.ts_ms
            self._deliver(record.chunk)
            delivered += 1
            if on_tick is not None:
                on_tick()
        self._finish("capture ended")
        return delivered

    def disconnect(self) -> None:
        self._finish("disconnected")
