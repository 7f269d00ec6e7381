from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence


def _to_float(value: object) -> float | None:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _quantile(sorted_values: Sequence[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("quantile requires non-empty list")
    if q <= 0:
        return float(sorted_values[0])
    if q >= 1:
        return float(sorted_values[-1])
    k = (len(sorted_values) - 1) * q
    f = int(math.floor(k))
    c = int(math.ceil(k))
    if f == c:
        return float(sorted_values[f])
    d = k - f
    return float(sorted_values[f] * (1.0 - d) + sorted_values[c] * d)


def _summary_stats(values: List[float]) -> Dict[str, Any] | None:
    if not values:
        return None
    values_sorted = sorted(values)
    total = float(sum(values_sorted))
    count = len(values_sorted)
    return {
        "count": count,
        "min": float(values_sorted[0]),
        "p50": _quantile(values_sorted, 0.5),
        "p90": _quantile(values_sorted, 0.9),
        "max": float(values_sorted[-1]),
        "mean": total / count,
    }


def _count_by(events: Iterable[Dict[str, Any]], key: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for event in events:
        value = str(event.get(key, "unknown"))
        counts[value] = counts.get(value, 0) + 1
    return counts


def load_events(path: str | Path) -> List[Dict[str, Any]]:
    path = Path(path)
    events = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        events.append(json.loads(line))
    return events


def compute_metrics(events: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    events = list(events)
    started = [e for e in events if e.get("event") == "transfer_started"]
    chunks = [e for e in events if e.get("event") == "rx_chunk"]
    ignored = [e for e in events if e.get("event") == "rx_ignored"]
    complete = [e for e in events if e.get("event") == "file_complete"]
    saved = [e for e in events if e.get("event") == "file_saved"]
    aborted = [e for e in events if e.get("event") == "transfer_aborted"]
    errors = [e for e in events if e.get("event") == "transfer_error"]

    chunk_bytes_values: List[float] = []
    for event in chunks:
        size = _to_float(event.get("chunk_bytes"))
        if size is not None:
            chunk_bytes_values.append(size)

    file_bytes_values: List[float] = []
    for event in saved:
        size = _to_float(event.get("size_bytes"))
        if size is not None:
            file_bytes_values.append(size)

    durations_ms: List[float] = []
    start_ts: float | None = None
    for event in events:
        name = event.get("event")
        if name == "transfer_started":
            start_ts = _to_float(event.get("ts_ms"))
        elif name in {"file_complete", "transfer_aborted", "transfer_error"}:
            end_ts = _to_float(event.get("ts_ms"))
            if name == "file_complete" and start_ts is not None and end_ts is not None:
                durations_ms.append(end_ts - start_ts)
            start_ts = None

    return {
        "transfers_started": len(started),
        "files_complete": len(complete),
        "files_saved": len(saved),
        "bytes_saved": int(sum(file_bytes_values)),
        "chunks": len(chunks),
        "chunks_ignored": len(ignored),
        "aborted": _count_by(aborted, "reason"),
        "errors": _count_by(errors, "kind"),
        "completion_ratio": (len(complete) / len(started)) if started else None,
        "chunk_bytes": _summary_stats(chunk_bytes_values),
        "file_bytes": _summary_stats(file_bytes_values),
        "transfer_ms": _summary_stats(durations_ms),
    }
