import logging
import stat
import threading
from collections.abc import Mapping
from typing import IO, Any, Optional, Union

from swimvfscore.composer import OverlayComposer
from swimvfscore.mountsource import FileInfo
from swimvfscore.mountsource.compositing.cache import ReadOnlyMountSource, wrap_read_only
from swimvfscore.overlay import Overlay
from swimvfscore.utils import NotFoundError, SwimVfsError

logger = logging.getLogger(__name__)


class VirtualFileSystem:
    """
    Lifecycle handle for a host, e.g., a web server, that serves files out of a composed overlay tree.

    The host calls provision once to build the tree, then open, stat, and read_dir from any number of
    threads, and finally cleanup. Names are interpreted relative to the root of the composed tree and
    leading or trailing slashes are ignored.
    """

    def __init__(self, overlay: Overlay, composer: Optional[OverlayComposer] = None) -> None:
        self.overlay = overlay
        self.composer = composer or OverlayComposer()
        self.mountSource: Optional[ReadOnlyMountSource] = None
        self._lock = threading.Lock()

    @staticmethod
    def from_config(config: Union[str, Mapping[str, Any]], **options) -> 'VirtualFileSystem':
        """options are forwarded to OverlayComposer."""
        return VirtualFileSystem(Overlay.from_config(config), OverlayComposer(**options))

    def provision(self) -> None:
        # Compose first so that a failure leaves the previous state, if any, untouched and nothing half-built visible.
        mountSource = wrap_read_only(self.composer.compose(self.overlay))
        with self._lock:
            previous, self.mountSource = self.mountSource, mountSource
        if previous is not None:
            previous.__exit__(None, None, None)
        logger.info("Provisioned virtual file system for %s", self.overlay)

    def cleanup(self) -> None:
        """Releases the composed tree. Further calls are no-ops."""
        with self._lock:
            mountSource, self.mountSource = self.mountSource, None
        if mountSource is not None:
            mountSource.__exit__(None, None, None)
            logger.info("Cleaned up virtual file system for %s", self.overlay)

    def __enter__(self):
        self.provision()
        return self

    def __exit__(self, exception_type, exception_value, exception_traceback):
        self.cleanup()

    def _get_mount_source(self) -> ReadOnlyMountSource:
        mountSource = self.mountSource
        if mountSource is None:
            raise SwimVfsError("The virtual file system has not been provisioned!")
        return mountSource

    @staticmethod
    def _to_path(name: str) -> str:
        return '/' + name.strip('/')

    def stat(self, name: str) -> FileInfo:
        fileInfo = self._get_mount_source().lookup(self._to_path(name))
        if fileInfo is None:
            raise NotFoundError(f"No such file or folder: {name}")
        return fileInfo

    def open(self, name: str) -> IO[bytes]:
        fileInfo = self.stat(name)
        if stat.S_ISDIR(fileInfo.mode):
            raise IsADirectoryError(f"Cannot open folder: {name}")
        return self._get_mount_source().open(fileInfo)

    def read_file(self, name: str) -> bytes:
        with self.open(name) as file:
            return file.read()

    def read_dir(self, name: str = "/") -> list[str]:
        files = self._get_mount_source().list_mode(self._to_path(name))
        if files is None:
            if self._get_mount_source().exists(self._to_path(name)):
                raise NotADirectoryError(f"Not a folder: {name}")
            raise NotFoundError(f"No such folder: {name}")
        return sorted(files)

    # All modifications are rejected by the read-only layer with ReadOnlyError.

    def write(self, name: str, data: bytes, offset: int = 0):
        return self._get_mount_source().write(self._to_path(name), data, offset)

    def create(self, name: str, mode: int = 0o644):
        return self._get_mount_source().create(self._to_path(name), mode)

    def remove(self, name: str):
        return self._get_mount_source().remove(self._to_path(name))

    def rename(self, old: str, new: str):
        return self._get_mount_source().rename(self._to_path(old), self._to_path(new))

    def chmod(self, name: str, mode: int):
        return self._get_mount_source().chmod(self._to_path(name), mode)
