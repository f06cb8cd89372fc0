from collections.abc import Iterable
from typing import IO, Optional, Union

from swimvfscore.mountsource import FileInfo, MountSource
from swimvfscore.utils import NotFoundError, normalize_path, overrides


class SubPathMountSource(MountSource):
    """
    MountSource exposing only the given folder of another MountSource, which becomes the new root.
    This is the opposite of moving a MountSource into a subfolder. Requested paths are normalized
    before the prefix is prepended, i.e., '..' can never reach anything outside of the folder.
    """

    def __init__(self, path: str, mountSource: MountSource) -> None:
        self.prefix = normalize_path(path)
        self.mountSource = mountSource

        if not self.mountSource.is_dir(self.prefix):
            raise NotFoundError(f"The working directory '{self.prefix}' does not exist or is not a folder!")

    def _resolve(self, path: str) -> str:
        path = normalize_path(path)
        if self.prefix == '/':
            return path
        return self.prefix if path == '/' else self.prefix + path

    # Path-based queries are translated into the wrapped tree.

    @overrides(MountSource)
    def list(self, path: str) -> Optional[Union[Iterable[str], dict[str, FileInfo]]]:
        return self.mountSource.list(self._resolve(path))

    @overrides(MountSource)
    def list_mode(self, path: str) -> Optional[Union[Iterable[str], dict[str, int]]]:
        return self.mountSource.list_mode(self._resolve(path))

    @overrides(MountSource)
    def lookup(self, path: str) -> Optional[FileInfo]:
        return self.mountSource.lookup(self._resolve(path))

    @overrides(MountSource)
    def exists(self, path: str) -> bool:
        return self.mountSource.exists(self._resolve(path))

    @overrides(MountSource)
    def is_dir(self, path: str) -> bool:
        return self.mountSource.is_dir(self._resolve(path))

    # Methods that can simply be forwarded because file infos are not modified.

    @overrides(MountSource)
    def open(self, fileInfo: FileInfo, buffering=-1) -> IO[bytes]:
        return self.mountSource.open(fileInfo, buffering)

    @overrides(MountSource)
    def read(self, fileInfo: FileInfo, size: int, offset: int) -> bytes:
        return self.mountSource.read(fileInfo, size, offset)

    @overrides(MountSource)
    def get_mount_source(self, fileInfo: FileInfo):
        return self.mountSource.get_mount_source(fileInfo)

    @overrides(MountSource)
    def is_immutable(self) -> bool:
        return self.mountSource.is_immutable()

    @overrides(MountSource)
    def __enter__(self):
        self.mountSource.__enter__()
        return self

    @overrides(MountSource)
    def __exit__(self, exception_type, exception_value, exception_traceback):
        self.mountSource.__exit__(exception_type, exception_value, exception_traceback)
