from blefile.config.receiverspec import (
    FramingSpec,
    LinkSpec,
    LoggingSpec,
    ReceiverSpec,
    StorageSpec,
    load_receiverspec,
    save_receiverspec,
)

__all__ = [
    "ReceiverSpec",
    "LinkSpec",
    "FramingSpec",
    "StorageSpec",
    "LoggingSpec",
    "load_receiverspec",
    "save_receiverspec",
]
