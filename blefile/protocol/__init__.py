from blefile.protocol.events import (
    FileComplete,
    FileSaved,
    TransferAborted,
    TransferError,
    TransferEvent,
    event_fields,
    event_name,
)
from blefile.protocol.framing import (
    END_SENTINEL,
    START_SENTINEL,
    FramingConfig,
    frame_payload,
    timestamp_name,
)
from blefile.protocol.reassembler import IDLE, RECEIVING, FrameReassembler, TransferSession

__all__ = [
    "END_SENTINEL",
    "START_SENTINEL",
    "IDLE",
    "RECEIVING",
    "FileComplete",
    "FileSaved",
    "FrameReassembler",
    "FramingConfig",
    "TransferAborted",
    "TransferError",
    "TransferEvent",
    "TransferSession",
    "event_fields",
    "event_name",
    "frame_payload",
    "timestamp_name",
]
