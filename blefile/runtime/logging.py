from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from blefile.runtime.scheduler import Clock, RealClock


class JsonlLogger:
    def __init__(
        self,
        out_dir: str | Path,
        receiver_id: str,
        link: str,
        clock: Clock | None = None,
    ) -> None:
        self._dir = Path(out_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._path = self._dir / f"{receiver_id}_rx.jsonl"
        self._clock = clock or RealClock()
        self._receiver_id = receiver_id
        self._link = link
        self._fh = self._path.open("a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def _base_event(self, event: str) -> Dict[str, Any]:
        return {
            "ts_ms": self._clock.now_ms(),
            "receiver_id": self._receiver_id,
            "event": event,
            "link": self._link,
        }

    def log_rx_start(self, spec_dict: Dict[str, Any]) -> None:
        payload = self._base_event("rx_start")
        payload["receiverspec"] = spec_dict
        self._write(payload)

    def log_event(self, event: str, fields: Dict[str, Any]) -> None:
        payload = self._base_event(event)
        payload.update(fields)
        self._write(payload)

    def _write(self, payload: Dict[str, Any]) -> None:
        self._fh.write(json.dumps(payload, ensure_ascii=True) + "\n")
        self._fh.flush()

    def close(self) -> None:
        self._fh.close()
