from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Literal

from blefile.protocol.events import (
    BUFFER_OVERFLOW,
    LINK_TERMINATED,
    RESTARTED,
    AbortReason,
    FileComplete,
    TransferAborted,
    TransferError,
    TransferEvent,
)
from blefile.protocol.framing import FramingConfig, timestamp_name
from blefile.runtime.scheduler import Clock, RealClock

SessionState = Literal["IDLE", "RECEIVING"]

IDLE: SessionState = "IDLE"
RECEIVING: SessionState = "RECEIVING"

EventListener = Callable[[TransferEvent], None]


@dataclass
class TransferSession:
    state: SessionState = IDLE
    buffer: bytearray = field(default_factory=bytearray)
    received_bytes: int = 0
    chunk_count: int = 0
    started_ms: int | None = None

    @property
    def active(self) -> bool:
        return self.state == RECEIVING

    def begin(self, now_ms: int) -> None:
        self.state = RECEIVING
        self.buffer = bytearray()
        self.received_bytes = 0
        self.chunk_count = 0
        self.started_ms = now_ms

    def append(self, chunk: bytes) -> None:
        self.buffer.extend(chunk)
        self.received_bytes += len(chunk)
        self.chunk_count += 1

    def take(self) -> bytes:
        data = bytes(self.buffer)
        self.clear()
        return data

    def clear(self) -> int:
        discarded = len(self.buffer)
        self.state = IDLE
        self.buffer = bytearray()
        self.received_bytes = 0
        self.chunk_count = 0
        self.started_ms = None
        return discarded


class FrameReassembler:
    """
    Turns a stream of notification chunks into complete files.

    A transfer starts with a chunk whose first byte is the start sentinel and ends
    with a chunk whose last byte is the end sentinel. Sentinel bytes stay in the
    payload. Only the first/last byte of each chunk is inspected, so a payload byte
    equal to a sentinel at a chunk edge is indistinguishable from a real boundary.

    `feed` never raises for stream content: overflow, restarts and empty chunks all
    map to events or no-ops, and the reassembler always returns to IDLE.
    """

    def __init__(
        self,
        config: FramingConfig | None = None,
        clock: Clock | None = None,
        name_factory: Callable[[], str] | None = None,
    ) -> None:
        self._config = config or FramingConfig()
        self._config.validate()
        self._clock = clock or RealClock()
        self._name_factory = name_factory or timestamp_name
        self._session = TransferSession()
        self._listeners: List[EventListener] = []
        self.total_bytes = 0

    @property
    def config(self) -> FramingConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def session(self) -> TransferSession:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    def starts_transfer(self, chunk: bytes) -> bool:
        return bool(chunk) and chunk[0] == self._config.start_sentinel

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: TransferEvent, out: List[TransferEvent] | None = None) -> None:
        if out is not None:
            out.append(event)
        for listener in list(self._listeners):
            listener(event)

    def feed(self, chunk: bytes) -> List[TransferEvent]:
        events: List[TransferEvent] = []
        if not chunk:
            return events
        session = self._session
        starts = self.starts_transfer(chunk)
        if session.active and starts:
            discarded = session.clear()
            self._emit(TransferAborted(reason=RESTARTED, discarded_bytes=discarded), events)
        if not session.active:
            if not starts:
                return events
            session.begin(self._clock.now_ms())

        limit = self._config.max_buffer_bytes
        if limit is not None and len(session.buffer) + len(chunk) > limit:
            attempted = len(session.buffer) + len(chunk)
            session.clear()
            self._emit(
                TransferError(
                    kind=BUFFER_OVERFLOW,
                    detail=f"buffer would reach {attempted} bytes, max_buffer_bytes is {limit}",
                ),
                events,
            )
            return events

        session.append(chunk)
        self.total_bytes += len(chunk)
        if chunk[-1] == self._config.end_sentinel:
            data = session.take()
            self._emit(FileComplete(data=data, suggested_name=self._name_factory()), events)
        return events

    def abort(self, reason: AbortReason) -> TransferAborted | None:
        if not self._session.active:
            return None
        discarded = self._session.clear()
        event = TransferAborted(reason=reason, discarded_bytes=discarded)
        self._emit(event)
        return event

    def link_terminated(self, detail: str = "") -> TransferError | None:
        if not self._session.active:
            return None
        discarded = self._session.clear()
        text = detail or f"link ended after {discarded} bytes"
        event = TransferError(kind=LINK_TERMINATED, detail=text)
        self._emit(event)
        return event

    def discard(self) -> int:
        return self._session.clear()

    def reset(self) -> None:
        self._session.clear()
        self.total_bytes = 0
