from __future__ import annotations

import random
from typing import Iterable, List

from blefile.link.base import ChunkSourceBase
from blefile.protocol.framing import FramingConfig, frame_payload


class MockChunkSource(ChunkSourceBase):
    def __init__(self) -> None:
        super().__init__()
        self.cancel_count = 0
        self.disconnect_count = 0

    def _unsubscribe(self) -> None:
        if self._on_chunk is not None:
            self.cancel_count += 1
        super()._unsubscribe()

    def push(self, chunk: bytes) -> None:
        self._deliver(chunk)

    def push_all(self, chunks: Iterable[bytes]) -> None:
        for chunk in chunks:
            self.push(chunk)

    def end(self, reason: str = "stream ended") -> None:
        self._finish(reason)

    def disconnect(self) -> None:
        self.disconnect_count += 1
        self._finish("disconnected")


def _safe_cut(data: bytes, cut: int, config: FramingConfig) -> bool:
    if cut >= len(data):
        return True
    return data[cut - 1] != config.end_sentinel and data[cut] != config.start_sentinel


def split_chunks(
    data: bytes,
    mtu: int = 20,
    seed: int = 0,
    min_size: int = 1,
    config: FramingConfig | None = None,
) -> List[bytes]:
    """
    Split `data` into chunks of seeded random sizes up to `mtu`.

    With a framing `config` the cut points are moved so that no chunk but the last
    ends with the end sentinel and no chunk but the first starts with the start
    sentinel, which the receiver would otherwise read as a transfer boundary.
    """
    if mtu <= 0:
        raise ValueError("mtu must be > 0")
    if not (1 <= min_size <= mtu):
        raise ValueError("min_size must be 1..mtu")
    rng = random.Random(seed)
    chunks = []
    offset = 0
    while offset < len(data):
        size = rng.randint(min_size, mtu)
        if config is not None:
            sizes = [size] + list(range(size - 1, 0, -1)) + list(range(size + 1, mtu + 1))
            for candidate in sizes:
                if _safe_cut(data, offset + candidate, config):
                    size = candidate
                    break
            else:
                raise ValueError(
                    f"no chunk boundary within mtu {mtu} at offset {offset} avoids a sentinel"
                )
        chunks.append(bytes(data[offset : offset + size]))
        offset += size
    return chunks


class MockPeer:
    """Sending side of a mock link: frames a file and pushes it in MTU-sized chunks."""

    def __init__(
        self,
        source: MockChunkSource,
        mtu: int = 20,
        seed: int = 0,
        config: FramingConfig | None = None,
    ) -> None:
        self._source = source
        self._mtu = mtu
        self._seed = seed
        self._config = config or FramingConfig()
        self._sent_files = 0

    def chunks_for(self, data: bytes) -> List[bytes]:
        framed = frame_payload(data, self._config)
        return split_chunks(
            framed,
            mtu=self._mtu,
            seed=self._seed + self._sent_files,
            config=self._config,
        )

    def send_file(self, data: bytes) -> List[bytes]:
        chunks = self.chunks_for(data)
        self._source.push_all(chunks)
        self._sent_files += 1
        return chunks
