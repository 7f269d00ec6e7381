from __future__ import annotations

from typing import Any, Callable, Dict, List, Protocol

from blefile.link.base import IChunkSource, Subscription
from blefile.protocol.events import (
    BUFFER_OVERFLOW,
    STORAGE_FAILURE,
    TIMEOUT,
    FileComplete,
    FileSaved,
    TransferAborted,
    TransferError,
    TransferEvent,
    event_fields,
    event_name,
)
from blefile.protocol.reassembler import FrameReassembler
from blefile.runtime.scheduler import Clock, SessionWatchdog
from blefile.storage.base import IFileStore, StorageError


class EventLog(Protocol):
    def log_event(self, event: str, fields: Dict[str, Any]) -> None:
        ...


class ReceiverNode:
    """
    Wires a chunk source into a FrameReassembler and hands finished files to storage.

    Events returned by the reassembler are logged and forwarded to listeners, and the
    session watchdog runs on the reassembler clock. Completed files are written
    through the store and followed by either FileSaved or a storage_failure
    TransferError. The node stays usable after any error.
    """

    def __init__(
        self,
        reassembler: FrameReassembler,
        store: IFileStore,
        logger: EventLog,
        session_timeout_ms: int | None = None,
    ) -> None:
        self._reassembler = reassembler
        self._store = store
        self._logger = logger
        self._watchdog = SessionWatchdog(reassembler.clock, session_timeout_ms)
        self._listeners: List[Callable[[TransferEvent], None]] = []
        self._source: IChunkSource | None = None
        self._subscription: Subscription | None = None
        self.saved: List[FileSaved] = []
        self.aborted_count = 0
        self.error_count = 0
        self.chunk_count = 0

    @property
    def reassembler(self) -> FrameReassembler:
        return self._reassembler

    @property
    def clock(self) -> Clock:
        return self._reassembler.clock

    @property
    def attached(self) -> bool:
        return self._subscription is not None

    def add_listener(self, listener: Callable[[TransferEvent], None]) -> None:
        self._listeners.append(listener)

    def attach(self, source: IChunkSource) -> None:
        if self._subscription is not None:
            raise RuntimeError("receiver is already attached to a chunk source")
        self._source = source
        self._subscription = source.subscribe(self.handle_chunk, self.handle_link_end)

    def handle_chunk(self, chunk: bytes) -> None:
        if not chunk:
            return
        self.chunk_count += 1
        starts = self._reassembler.starts_transfer(chunk)
        was_active = self._reassembler.session.active
        events = self._reassembler.feed(chunk)
        restarts = [event for event in events if isinstance(event, TransferAborted)]
        for event in restarts:
            self._on_transfer_event(event)
        if starts:
            self._logger.log_event("transfer_started", {"chunk_bytes": len(chunk)})
        elif not was_active:
            self._logger.log_event("rx_ignored", {"chunk_bytes": len(chunk)})
            return
        dropped = False
        for event in events:
            if isinstance(event, TransferAborted):
                continue
            if isinstance(event, TransferError) and event.kind == BUFFER_OVERFLOW:
                dropped = True
            self._on_transfer_event(event)
        if dropped:
            return
        session = self._reassembler.session
        self._logger.log_event(
            "rx_chunk",
            {
                "chunk_bytes": len(chunk),
                "state": session.state,
                "received_bytes": session.received_bytes,
            },
        )

    def handle_link_end(self, reason: str) -> None:
        self._subscription = None
        self._logger.log_event("link_ended", {"reason": reason})
        received = self._reassembler.session.received_bytes
        event = self._reassembler.link_terminated(f"{reason} after {received} bytes")
        if event is not None:
            self._on_transfer_event(event)

    def check_timeout(self) -> TransferAborted | None:
        session = self._reassembler.session
        if not session.active or not self._watchdog.expired(session.started_ms):
            return None
        event = self._reassembler.abort(TIMEOUT)
        if event is not None:
            self._on_transfer_event(event)
        return event

    def teardown(self) -> int:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        discarded = self._reassembler.discard()
        if discarded:
            self._logger.log_event("rx_discarded", {"discarded_bytes": discarded})
        if self._source is not None:
            source = self._source
            self._source = None
            source.disconnect()
        return discarded

    def stats(self) -> Dict[str, Any]:
        return {
            "chunks": self.chunk_count,
            "files_saved": len(self.saved),
            "bytes_saved": sum(item.size_bytes for item in self.saved),
            "aborted": self.aborted_count,
            "errors": self.error_count,
        }

    def _publish(self, event: TransferEvent) -> None:
        self._logger.log_event(event_name(event), event_fields(event))
        if isinstance(event, TransferAborted):
            self.aborted_count += 1
        elif isinstance(event, TransferError):
            self.error_count += 1
        elif isinstance(event, FileSaved):
            self.saved.append(event)
        for listener in list(self._listeners):
            listener(event)

    def _on_transfer_event(self, event: TransferEvent) -> None:
        self._publish(event)
        if isinstance(event, FileComplete):
            self._store_file(event)

    def _store_file(self, event: FileComplete) -> None:
        try:
            path = self._store.write_new_file(event.data, event.suggested_name)
        except StorageError as exc:
            self._publish(TransferError(kind=STORAGE_FAILURE, detail=str(exc)))
            return
        self._publish(FileSaved(path=path, size_bytes=event.size_bytes))
