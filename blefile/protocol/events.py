from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Union

ErrorKind = Literal["buffer_overflow", "storage_failure", "link_terminated"]
AbortReason = Literal["restarted", "timeout", "cancelled"]

BUFFER_OVERFLOW: ErrorKind = "buffer_overflow"
STORAGE_FAILURE: ErrorKind = "storage_failure"
LINK_TERMINATED: ErrorKind = "link_terminated"

RESTARTED: AbortReason = "restarted"
TIMEOUT: AbortReason = "timeout"
CANCELLED: AbortReason = "cancelled"


@dataclass(frozen=True)
class FileComplete:
    data: bytes
    suggested_name: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class TransferAborted:
    reason: AbortReason
    discarded_bytes: int = 0


@dataclass(frozen=True)
class TransferError:
    kind: ErrorKind
    detail: str = ""


@dataclass(frozen=True)
class FileSaved:
    path: Path
    size_bytes: int


TransferEvent = Union[FileComplete, TransferAborted, TransferError, FileSaved]


def event_name(event: TransferEvent) -> str:
    if isinstance(event, FileComplete):
        return "file_complete"
    if isinstance(event, TransferAborted):
        return "transfer_aborted"
    if isinstance(event, TransferError):
        return "transfer_error"
    if isinstance(event, FileSaved):
        return "file_saved"
    raise TypeError(f"unknown transfer event: {event!r}")


def event_fields(event: TransferEvent) -> dict[str, object]:
    if isinstance(event, FileComplete):
        return {"suggested_name": event.suggested_name, "size_bytes": event.size_bytes}
    if isinstance(event, TransferAborted):
        return {"reason": event.reason, "discarded_bytes": event.discarded_bytes}
    if isinstance(event, TransferError):
        return {"kind": event.kind, "detail": event.detail}
    if isinstance(event, FileSaved):
        return {"path": str(event.path), "size_bytes": event.size_bytes}
    raise TypeError(f"unknown transfer event: {event!r}")
