import io
import os
import stat
import time
from collections.abc import Iterable
from typing import IO, Optional, Union

from swimvfscore.mountsource import FileInfo, MountSource, create_root_file_info
from swimvfscore.utils import normalize_path, overrides


class MemoryMountSource(MountSource):
    """
    MountSource holding a completely materialized file tree in memory.
    The archive decoders fill it once at decode time. Afterwards, it never changes.

    Parent folders of added entries are synthesized when they were not added explicitly.
    Adding the same path twice keeps the last one, which mirrors how tar extraction would behave.
    """

    def __init__(self) -> None:
        self.fileInfos: dict[str, FileInfo] = {'/': create_root_file_info(userdata=['/'])}
        self.contents: dict[str, bytes] = {}
        self.children: dict[str, dict[str, None]] = {'/': {}}
        # Explicitly added folders must not be overwritten with synthesized ones.
        self._synthesized: set[str] = set()

    def _link_to_parent(self, path: str) -> None:
        parent, name = path.rsplit('/', 1)
        parent = parent or '/'
        if parent not in self.children:
            self._add_folder(parent, synthesized=True)
        self.children[parent][name] = None

    def _add_folder(self, path: str, mtime: Optional[float] = None, mode: int = 0o555, synthesized: bool = False):
        if path in self.fileInfos and stat.S_ISDIR(self.fileInfos[path].mode):
            if synthesized or path not in self._synthesized:
                return
            self._synthesized.discard(path)

        # fmt: off
        self.fileInfos[path] = FileInfo(
            size     = 0,
            mtime    = time.time() if mtime is None else mtime,
            mode     = (mode & 0o7777) | stat.S_IFDIR,
            linkname = "",
            uid      = os.getuid(),
            gid      = os.getgid(),
            userdata = [path],
        )
        # fmt: on
        self.contents.pop(path, None)
        self.children.setdefault(path, {})
        if synthesized:
            self._synthesized.add(path)
        if path != '/':
            self._link_to_parent(path)

    def add_folder(self, path: str, mtime: Optional[float] = None, mode: int = 0o555) -> None:
        self._add_folder(normalize_path(path), mtime=mtime, mode=mode)

    def add_file(
        self, path: str, contents: bytes, mtime: Optional[float] = None, mode: int = 0o444, linkname: str = ""
    ) -> None:
        path = normalize_path(path)
        if path == '/':
            raise ValueError("The root cannot be a file!")

        fileType = stat.S_IFLNK if linkname else stat.S_IFREG
        # fmt: off
        self.fileInfos[path] = FileInfo(
            size     = len(linkname) if linkname else len(contents),
            mtime    = time.time() if mtime is None else mtime,
            mode     = (mode & 0o7777) | fileType,
            linkname = linkname,
            uid      = os.getuid(),
            gid      = os.getgid(),
            userdata = [path],
        )
        # fmt: on
        self.contents[path] = contents
        if self.children.pop(path, None) is not None:
            self._remove_descendants(path)
        self._link_to_parent(path)

    def _remove_descendants(self, path: str) -> None:
        prefix = path + '/'
        for descendant in [key for key in self.fileInfos if key.startswith(prefix)]:
            del self.fileInfos[descendant]
            self.contents.pop(descendant, None)
            self.children.pop(descendant, None)
            self._synthesized.discard(descendant)
        self._synthesized.discard(path)

    @overrides(MountSource)
    def is_immutable(self) -> bool:
        return True

    @overrides(MountSource)
    def exists(self, path: str) -> bool:
        return normalize_path(path) in self.fileInfos

    @overrides(MountSource)
    def lookup(self, path: str) -> Optional[FileInfo]:
        fileInfo = self.fileInfos.get(normalize_path(path))
        return fileInfo.clone() if fileInfo else None

    @overrides(MountSource)
    def list(self, path: str) -> Optional[Union[Iterable[str], dict[str, FileInfo]]]:
        path = normalize_path(path)
        children = self.children.get(path)
        if children is None:
            return None
        prefix = path.rstrip('/') + '/'
        return {name: self.fileInfos[prefix + name].clone() for name in children}

    @overrides(MountSource)
    def list_mode(self, path: str) -> Optional[Union[Iterable[str], dict[str, int]]]:
        path = normalize_path(path)
        children = self.children.get(path)
        if children is None:
            return None
        prefix = path.rstrip('/') + '/'
        return {name: self.fileInfos[prefix + name].mode for name in children}

    @overrides(MountSource)
    def open(self, fileInfo: FileInfo, buffering=-1) -> IO[bytes]:
        path = fileInfo.userdata[-1]
        assert isinstance(path, str)
        if path not in self.contents:
            raise IsADirectoryError(f"Cannot open folder: {path}")
        return io.BytesIO(self.contents[path])

    @overrides(MountSource)
    def __exit__(self, exception_type, exception_value, exception_traceback):
        pass

    def __len__(self) -> int:
        return len(self.fileInfos)
