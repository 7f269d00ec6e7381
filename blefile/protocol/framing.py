from __future__ import annotations

import time
from dataclasses import dataclass

START_SENTINEL = 0x02
END_SENTINEL = 0x03
DEFAULT_MAX_BUFFER_BYTES = 16 * 1024 * 1024
DEFAULT_NAME_PREFIX = "received_file_"
DEFAULT_NAME_SUFFIX = ".pdf"


@dataclass(frozen=True)
class FramingConfig:
    start_sentinel: int = START_SENTINEL
    end_sentinel: int = END_SENTINEL
    max_buffer_bytes: int | None = DEFAULT_MAX_BUFFER_BYTES

    def validate(self) -> None:
        if not (0 <= self.start_sentinel <= 255):
            raise ValueError("start_sentinel must be 0..255")
        if not (0 <= self.end_sentinel <= 255):
            raise ValueError("end_sentinel must be 0..255")
        if self.start_sentinel == self.end_sentinel:
            raise ValueError("start_sentinel and end_sentinel must differ")
        if self.max_buffer_bytes is not None and self.max_buffer_bytes <= 0:
            raise ValueError("max_buffer_bytes must be > 0 (or null for unlimited)")


def frame_payload(data: bytes, config: FramingConfig | None = None) -> bytes:
    """Wrap `data` the way a sending peer does: START | data | END."""
    config = config or FramingConfig()
    config.validate()
    return bytes([config.start_sentinel]) + bytes(data) + bytes([config.end_sentinel])


def timestamp_name(
    prefix: str = DEFAULT_NAME_PREFIX,
    suffix: str = DEFAULT_NAME_SUFFIX,
    epoch_ms: int | None = None,
) -> str:
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    return f"{prefix}{epoch_ms}{suffix}"
