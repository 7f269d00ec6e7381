from blefile.storage.base import IFileStore, StorageError
from blefile.storage.directory import DirectoryFileStore, default_download_dir

__all__ = ["IFileStore", "StorageError", "DirectoryFileStore", "default_download_dir"]
