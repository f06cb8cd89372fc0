import dataclasses
import os
import stat
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import IO, Any, Optional, Union


@dataclasses.dataclass
class FileInfo:
    """Metadata of one entry in a file tree, similar to what stat returns."""

    # fmt: off
    size     : int
    mtime    : float
    mode     : int
    linkname : str
    uid      : int
    gid      : int
    # Stack of opaque values. Each layer in a chain of wrapped trees pushes the value it needs for open
    # onto the end in lookup and pops it again before handing the FileInfo to the tree it wraps.
    userdata : list[Any]
    # fmt: on

    def clone(self) -> 'FileInfo':
        # Only the list is copied. Its elements may be trees, which must stay shared.
        return dataclasses.replace(self, userdata=list(self.userdata))

    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)


class MountSource(ABC):
    """
    Read-only file tree. Paths are '/'-separated and relative to the root of the tree.
    A missing leading '/' is treated as if it was given.

    Lookups and listings return None for paths that do not exist instead of raising.
    """

    @abstractmethod
    def list(self, path: str) -> Optional[Union[Iterable[str], dict[str, FileInfo]]]:
        """Returns the names in the folder, optionally with their metadata, or None if it is no folder."""

    def list_mode(self, path: str) -> Optional[Union[Iterable[str], dict[str, int]]]:
        """Same as list but maps names only to their modes. Trees that can answer this cheaper should override it."""
        entries = self.list(path)
        if not isinstance(entries, dict):
            return entries
        return {name: entry.mode for name, entry in entries.items()}

    @abstractmethod
    def lookup(self, path: str) -> Optional[FileInfo]:
        """Returns the metadata for path, which can be passed to open, or None if there is no such entry."""

    @abstractmethod
    def open(self, fileInfo: FileInfo, buffering=-1) -> IO[bytes]:
        """
        Opens the file described by a FileInfo returned from lookup of this very tree.
        buffering has the same meaning as for the built-in open.
        """

    def read(self, fileInfo: FileInfo, size: int, offset: int) -> bytes:
        with self.open(fileInfo, buffering=0) as file:
            file.seek(offset)
            return file.read(size)

    @abstractmethod
    def is_immutable(self) -> bool:
        """True if repeating any call at any later time is guaranteed to give the same result."""

    def get_mount_source(self, fileInfo: FileInfo):
        """
        Follows wrapping and layering down to the tree that actually holds the entry.
        Returns a tuple of the mount point of that tree, the tree itself, and the FileInfo specific to it.
        """
        return '/', self, fileInfo

    def exists(self, path: str) -> bool:
        return self.lookup(path) is not None

    def is_dir(self, path: str) -> bool:
        fileInfo = self.lookup(path)
        return fileInfo is not None and fileInfo.is_dir()

    def __enter__(self):
        return self

    # Trees holding resources like open files or network clients release them here.
    # Wrapping trees forward the call to the trees they wrap.
    @abstractmethod
    def __exit__(self, exception_type, exception_value, exception_traceback):
        pass


def create_root_file_info(userdata: list[Any], mode: int = 0o555) -> FileInfo:
    """Metadata for a folder that only exists virtually, e.g., the root of a layered tree."""
    # fmt: off
    return FileInfo(
        size     = 0,
        mtime    = time.time(),
        mode     = (mode & 0o7777) | stat.S_IFDIR,
        linkname = "",
        uid      = os.getuid(),
        gid      = os.getgid(),
        userdata = userdata,
    )
    # fmt: on
