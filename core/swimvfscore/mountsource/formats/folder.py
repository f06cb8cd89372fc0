import os
import stat
from collections.abc import Iterable
from typing import IO, Optional, Union

from swimvfscore.mountsource import FileInfo, MountSource
from swimvfscore.utils import normalize_path, overrides


class FolderMountSource(MountSource):
    """
    Exposes a folder of the local file system. Nothing is read or cached up front.
    Every request is answered by the operating system at the time it is made.

    Symbolic links are reported as such. Opening one follows it, but only if the target lies inside the folder.
    The userdata of returned FileInfos holds the path relative to the folder.
    """

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.root = os.fspath(path)

    def _host_path(self, path: str) -> str:
        """Maps a path inside the tree to the host. '..' is resolved before and can not leave the folder."""
        relative = normalize_path(path).lstrip('/')
        return os.path.join(self.root, *relative.split('/')) if relative else self.root

    @staticmethod
    def _to_file_info(stats: os.stat_result, relativePath: str, linkname: str = "") -> FileInfo:
        # fmt: off
        return FileInfo(
            size     = stats.st_size,
            mtime    = stats.st_mtime,
            mode     = stats.st_mode,
            linkname = linkname,
            uid      = stats.st_uid,
            gid      = stats.st_gid,
            userdata = [relativePath],
        )
        # fmt: on

    @staticmethod
    def _read_link(hostPath: str) -> str:
        try:
            return os.readlink(hostPath)
        except OSError:
            return ""

    @overrides(MountSource)
    def is_immutable(self) -> bool:
        return False

    @overrides(MountSource)
    def exists(self, path: str) -> bool:
        return os.path.lexists(self._host_path(path))

    @overrides(MountSource)
    def lookup(self, path: str) -> Optional[FileInfo]:
        hostPath = self._host_path(path)
        try:
            stats = os.lstat(hostPath)
        except (FileNotFoundError, NotADirectoryError):
            return None
        linkname = self._read_link(hostPath) if stat.S_ISLNK(stats.st_mode) else ""
        return self._to_file_info(stats, normalize_path(path).lstrip('/'), linkname)

    @overrides(MountSource)
    def list(self, path: str) -> Optional[Union[Iterable[str], dict[str, FileInfo]]]:
        hostPath = self._host_path(path)
        if not os.path.isdir(hostPath):
            return None

        folder = normalize_path(path).lstrip('/')
        entries: dict[str, FileInfo] = {}
        with os.scandir(hostPath) as iterator:
            for entry in iterator:
                name = os.fsdecode(entry.name)
                linkname = self._read_link(entry.path) if entry.is_symlink() else ""
                relativePath = f"{folder}/{name}" if folder else name
                entries[name] = self._to_file_info(entry.stat(follow_symlinks=False), relativePath, linkname)
        return entries

    @overrides(MountSource)
    def list_mode(self, path: str) -> Optional[Union[Iterable[str], dict[str, int]]]:
        hostPath = self._host_path(path)
        if not os.path.isdir(hostPath):
            return None

        # Only the file type is returned because it is known from the directory entry without calling stat.
        def file_type(entry: os.DirEntry) -> int:
            if entry.is_symlink():
                return stat.S_IFLNK
            return stat.S_IFDIR if entry.is_dir(follow_symlinks=False) else stat.S_IFREG

        with os.scandir(hostPath) as iterator:
            return {os.fsdecode(entry.name): file_type(entry) for entry in iterator}

    @overrides(MountSource)
    def open(self, fileInfo: FileInfo, buffering=-1) -> IO[bytes]:
        hostPath = self.get_file_path(fileInfo)
        resolved = os.path.realpath(hostPath)
        root = os.path.realpath(self.root)
        if resolved != root and not resolved.startswith(root.rstrip(os.sep) + os.sep):
            raise PermissionError(f"Refusing to follow '{hostPath}' to '{resolved}' outside of {self.root}")
        if os.path.isdir(resolved):
            raise IsADirectoryError(f"Cannot open folder: {hostPath}")
        return open(resolved, 'rb', buffering=buffering)

    @overrides(MountSource)
    def __exit__(self, exception_type, exception_value, exception_traceback):
        pass

    def get_file_path(self, fileInfo: FileInfo) -> str:
        relativePath = fileInfo.userdata[-1]
        assert isinstance(relativePath, str)
        return self._host_path(relativePath)
