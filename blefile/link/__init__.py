from blefile.link.base import ConnectOutcome, IChunkSource, Subscription
from blefile.link.ble import DEFAULT_CHAR_UUID, DEFAULT_SERVICE_UUID, BleLink
from blefile.link.mock import MockChunkSource, MockPeer, split_chunks
from blefile.link.replay import CaptureRecord, CaptureWriter, ReplayChunkSource, load_capture

__all__ = [
    "DEFAULT_CHAR_UUID",
    "DEFAULT_SERVICE_UUID",
    "BleLink",
    "ConnectOutcome",
    "IChunkSource",
    "Subscription",
    "MockChunkSource",
    "MockPeer",
    "split_chunks",
    "CaptureRecord",
    "CaptureWriter",
    "ReplayChunkSource",
    "load_capture",
]
