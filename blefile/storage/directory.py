from __future__ import annotations

from pathlib import Path

from blefile.storage.base import IFileStore, StorageError


def default_download_dir() -> Path:
    return Path.home() / "Downloads"


class DirectoryFileStore(IFileStore):
    """
    Writes each completed transfer as a new file inside `out_dir`.

    Existing files are never overwritten: on a name collision `-1`, `-2`, ... is
    inserted before the suffix. Any OS-level failure is raised as StorageError.
    """

    def __init__(
        self,
        out_dir: str | Path | None = None,
        *,
        create: bool = True,
        max_collisions: int = 1000,
    ) -> None:
        self._dir = Path(out_dir).expanduser() if out_dir is not None else default_download_dir()
        self._create = bool(create)
        self._max_collisions = int(max_collisions)

    @property
    def out_dir(self) -> Path:
        return self._dir

    def _ensure_dir(self) -> None:
        if self._dir.is_dir():
            return
        if not self._create:
            raise StorageError(f"storage directory does not exist: {self._dir}")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"cannot create storage directory {self._dir}: {exc}") from exc

    def _candidates(self, suggested_name: str):
        base = Path(suggested_name)
        yield self._dir / base.name
        for index in range(1, self._max_collisions + 1):
            yield self._dir / f"{base.stem}-{index}{base.suffix}"

    def write_new_file(self, data: bytes, suggested_name: str) -> Path:
        if not suggested_name or suggested_name in {".", ".."}:
            raise StorageError(f"invalid file name: {suggested_name!r}")
        if "/" in suggested_name or "\\" in suggested_name:
            raise StorageError(f"file name must not contain path separators: {suggested_name!r}")
        self._ensure_dir()
        for path in self._candidates(suggested_name):
            try:
                fh = path.open("xb")
            except FileExistsError:
                continue
            except OSError as exc:
                raise StorageError(f"cannot write {path}: {exc}") from exc
            try:
                with fh:
                    fh.write(data)
            except OSError as exc:
                path.unlink(missing_ok=True)
                raise StorageError(f"cannot write {path}: {exc}") from exc
            return path
        raise StorageError(f"no free file name for {suggested_name!r} in {self._dir}")
