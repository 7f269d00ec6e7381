from blefile.protocol import (
    FileComplete,
    FileSaved,
    FrameReassembler,
    FramingConfig,
    TransferAborted,
    TransferError,
)
from blefile.runtime.receiver import ReceiverNode
from blefile.storage import DirectoryFileStore, StorageError

__version__ = "0.1.0"

__all__ = [
    "DirectoryFileStore",
    "FileComplete",
    "FileSaved",
    "FrameReassembler",
    "FramingConfig",
    "ReceiverNode",
    "StorageError",
    "TransferAborted",
    "TransferError",
]
