from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class StorageError(RuntimeError):
    pass


class IFileStore(ABC):
    @abstractmethod
    def write_new_file(self, data: bytes, suggested_name: str) -> Path:
        raise NotImplementedError
