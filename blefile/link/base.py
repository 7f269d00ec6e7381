from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Literal

ChunkHandler = Callable[[bytes], None]
EndHandler = Callable[[str], None]

ConnectStatus = Literal[
    "CONNECTED",
    "DEVICE_NOT_FOUND",
    "CONNECT_FAILED",
    "SERVICE_NOT_FOUND",
    "CHARACTERISTIC_NOT_FOUND",
]


@dataclass(frozen=True)
class ConnectOutcome:
    status: ConnectStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "CONNECTED"


class Subscription:
    """Handle returned by `IChunkSource.subscribe`; `cancel` is idempotent."""

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel = on_cancel
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._on_cancel()


class IChunkSource(ABC):
    @abstractmethod
    def subscribe(self, on_chunk: ChunkHandler, on_end: EndHandler) -> Subscription:
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError


class ChunkSourceBase(IChunkSource):
    """Single-subscriber dispatch shared by the concrete sources."""

    def __init__(self) -> None:
        self._on_chunk: ChunkHandler | None = None
        self._on_end: EndHandler | None = None
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def subscribe(self, on_chunk: ChunkHandler, on_end: EndHandler) -> Subscription:
        if self._on_chunk is not None:
            raise RuntimeError("chunk source already has a subscriber")
        self._on_chunk = on_chunk
        self._on_end = on_end
        return Subscription(self._unsubscribe)

    def _unsubscribe(self) -> None:
        self._on_chunk = None
        self._on_end = None

    def _deliver(self, chunk: bytes) -> None:
        if self._ended or self._on_chunk is None:
            return
        self._on_chunk(bytes(chunk))

    def _finish(self, reason: str) -> None:
        if self._ended:
            return
        self._ended = True
        on_end = self._on_end
        self._unsubscribe()
        if on_end is not None:
            on_end(reason)
