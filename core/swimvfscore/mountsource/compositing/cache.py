import io
import logging
import threading
from collections.abc import Iterable
from typing import IO, Optional, Union

from swimvfscore.mountsource import FileInfo, MountSource
from swimvfscore.utils import ReadOnlyError, normalize_path, overrides

logger = logging.getLogger(__name__)

# Sentinel for cached misses because None is a valid cached result for lookup and list.
_MISSING = object()


class CachedMountSource(MountSource):
    """
    Read-through cache for another MountSource. The first lookup, listing, or read of a path is forwarded
    and the result, including misses, is kept for the whole lifetime of this object. There is no eviction
    and no expiry, i.e., once read, a path stays readable even when the wrapped source becomes unreachable.
    File contents are kept completely in memory.

    Concurrent first-time fills of the same path are allowed to both query the wrapped source.
    Only the insertion into the cache dictionaries is locked and the first stored result wins.
    """

    def __init__(self, mountSource: MountSource) -> None:
        self.mountSource = mountSource
        self._lock = threading.Lock()
        self._lookups: dict[str, Optional[FileInfo]] = {}
        self._listings: dict[str, object] = {}
        self._modeListings: dict[str, object] = {}
        self._contents: dict[str, bytes] = {}

    def _store(self, cache: dict, key: str, value):
        with self._lock:
            return cache.setdefault(key, value)

    @overrides(MountSource)
    def lookup(self, path: str) -> Optional[FileInfo]:
        path = normalize_path(path)
        fileInfo = self._lookups.get(path, _MISSING)
        if fileInfo is _MISSING:
            logger.debug("Cache miss for lookup of %s", path)
            fileInfo = self._store(self._lookups, path, self.mountSource.lookup(path))

        if fileInfo is None:
            return None
        assert isinstance(fileInfo, FileInfo)
        result = fileInfo.clone()
        result.userdata.append(path)
        return result

    @overrides(MountSource)
    def list(self, path: str) -> Optional[Union[Iterable[str], dict[str, FileInfo]]]:
        path = normalize_path(path)
        result = self._listings.get(path, _MISSING)
        if result is _MISSING:
            logger.debug("Cache miss for listing of %s", path)
            listed = self.mountSource.list(path)
            result = self._store(self._listings, path, dict(listed) if isinstance(listed, dict) else listed)

        if isinstance(result, dict):
            # Callers must not be able to open files via the returned file infos without going through lookup.
            return {name: fileInfo.clone() for name, fileInfo in result.items()}
        return None if result is None else list(result)  # type: ignore

    @overrides(MountSource)
    def list_mode(self, path: str) -> Optional[Union[Iterable[str], dict[str, int]]]:
        path = normalize_path(path)
        result = self._modeListings.get(path, _MISSING)
        if result is _MISSING:
            listed = self.mountSource.list_mode(path)
            result = self._store(self._modeListings, path, dict(listed) if isinstance(listed, dict) else listed)

        if isinstance(result, dict):
            return dict(result)
        return None if result is None else list(result)  # type: ignore

    def _read_all(self, fileInfo: FileInfo, path: str) -> bytes:
        contents = self._contents.get(path)
        if contents is None:
            logger.debug("Cache miss for contents of %s", path)
            with self.mountSource.open(fileInfo) as file:
                contents = self._store(self._contents, path, file.read())
        return contents

    @overrides(MountSource)
    def open(self, fileInfo: FileInfo, buffering=-1) -> IO[bytes]:
        path = fileInfo.userdata.pop()
        try:
            assert isinstance(path, str)
            return io.BytesIO(self._read_all(fileInfo, path))
        finally:
            fileInfo.userdata.append(path)

    @overrides(MountSource)
    def read(self, fileInfo: FileInfo, size: int, offset: int) -> bytes:
        path = fileInfo.userdata.pop()
        try:
            assert isinstance(path, str)
            return self._read_all(fileInfo, path)[offset : offset + size]
        finally:
            fileInfo.userdata.append(path)

    @overrides(MountSource)
    def get_mount_source(self, fileInfo: FileInfo):
        sourceFileInfo = fileInfo.clone()
        sourceFileInfo.userdata.pop()
        return self.mountSource.get_mount_source(sourceFileInfo)

    @overrides(MountSource)
    def is_immutable(self) -> bool:
        # Everything that has been read once will stay the same.
        return True

    @overrides(MountSource)
    def __exit__(self, exception_type, exception_value, exception_traceback):
        self.mountSource.__exit__(exception_type, exception_value, exception_traceback)


class ReadOnlyMountSource(MountSource):
    """
    Forwards all read accesses and rejects every modification with ReadOnlyError, no matter whether
    the path exists or has been accessed before.
    """

    def __init__(self, mountSource: MountSource) -> None:
        self.mountSource = mountSource

    @overrides(MountSource)
    def list(self, path: str) -> Optional[Union[Iterable[str], dict[str, FileInfo]]]:
        return self.mountSource.list(path)

    @overrides(MountSource)
    def list_mode(self, path: str) -> Optional[Union[Iterable[str], dict[str, int]]]:
        return self.mountSource.list_mode(path)

    @overrides(MountSource)
    def lookup(self, path: str) -> Optional[FileInfo]:
        return self.mountSource.lookup(path)

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
    def __exit__(self, exception_type, exception_value, exception_traceback):
        self.mountSource.__exit__(exception_type, exception_value, exception_traceback)

    # Modifying operations named after their FUSE counterparts.

    def write(self, path: str, data: bytes, offset: int = 0):
        raise ReadOnlyError("write", path)

    def create(self, path: str, mode: int = 0o644):
        raise ReadOnlyError("create", path)

    def remove(self, path: str):
        raise ReadOnlyError("remove", path)

    def rename(self, old: str, new: str):
        raise ReadOnlyError("rename", old)

    def chmod(self, path: str, mode: int):
        raise ReadOnlyError("chmod", path)

    def mkdir(self, path: str, mode: int = 0o755):
        raise ReadOnlyError("mkdir", path)

    def rmdir(self, path: str):
        raise ReadOnlyError("rmdir", path)

    def truncate(self, path: str, length: int):
        raise ReadOnlyError("truncate", path)


def wrap_read_only(mountSource: MountSource) -> ReadOnlyMountSource:
    """Returns the handle exposed to callers: a read-only guard around a read-through cache."""
    return ReadOnlyMountSource(CachedMountSource(mountSource))
