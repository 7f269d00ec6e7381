from pathlib import Path

import pytest

from blefile.storage.base import IFileStore, StorageError
from blefile.storage.directory import DirectoryFileStore, default_download_dir


def test_writes_new_file(tmp_path: Path) -> None:
    store = DirectoryFileStore(tmp_path / "out")
    path = store.write_new_file(b"\x02data\x03", "received_file_1.pdf")
    assert path == tmp_path / "out" / "received_file_1.pdf"
    assert path.read_bytes() == b"\x02data\x03"


def test_never_overwrites(tmp_path: Path) -> None:
    store = DirectoryFileStore(tmp_path)
    first = store.write_new_file(b"one", "f.pdf")
    second = store.write_new_file(b"two", "f.pdf")
    third = store.write_new_file(b"three", "f.pdf")
    assert [first.name, second.name, third.name] == ["f.pdf", "f-1.pdf", "f-2.pdf"]
    assert first.read_bytes() == b"one"


def test_collision_limit(tmp_path: Path) -> None:
    store = DirectoryFileStore(tmp_path, max_collisions=1)
    store.write_new_file(b"a", "f.bin")
    store.write_new_file(b"b", "f.bin")
    with pytest.raises(StorageError, match="no free file name"):
        store.write_new_file(b"c", "f.bin")


@pytest.mark.parametrize("name", ["", ".", "..", "a/b.pdf", "a\\b.pdf"])
def test_rejects_bad_names(tmp_path: Path, name: str) -> None:
    with pytest.raises(StorageError):
        DirectoryFileStore(tmp_path).write_new_file(b"x", name)


def test_missing_dir_without_create(tmp_path: Path) -> None:
    store = DirectoryFileStore(tmp_path / "missing", create=False)
    with pytest.raises(StorageError, match="does not exist"):
        store.write_new_file(b"x", "f.pdf")


def test_unwritable_location_raises_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    store = DirectoryFileStore(blocker / "sub")
    with pytest.raises(StorageError, match="cannot create storage directory"):
        store.write_new_file(b"x", "f.pdf")


def test_default_dir_is_downloads() -> None:
    assert DirectoryFileStore().out_dir == default_download_dir()
    assert default_download_dir().name == "Downloads"


def test_ifilestore_default_method_raises() -> None:
    class _CallsSuper(IFileStore):
        def write_new_file(self, data: bytes, suggested_name: str) -> Path:
            return super().write_new_file(data, suggested_name)

    with pytest.raises(NotImplementedError):
        _CallsSuper().write_new_file(b"", "x")


class _ShortWriteFile:
    def __init__(self, fh) -> None:  # type: ignore[no-untyped-def]
        self._fh = fh

    def __enter__(self) -> "_ShortWriteFile":
        return self

    def __exit__(self, *exc: object) -> None:
        self._fh.close()

    def write(self, data: bytes) -> int:
        self._fh.write(data[:3])
        raise OSError(28, "No space left on device")


def test_failed_write_leaves_no_partial_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_open = Path.open

    def short_open(self, mode="r", *args, **kwargs):  # type: ignore[no-untyped-def]
        fh = real_open(self, mode, *args, **kwargs)
        return _ShortWriteFile(fh) if "x" in mode else fh

    monkeypatch.setattr(Path, "open", short_open)
    store = DirectoryFileStore(tmp_path)
    with pytest.raises(StorageError, match="No space left"):
        store.write_new_file(b"\x02abcdef\x03", "f.pdf")
    assert list(tmp_path.iterdir()) == []
