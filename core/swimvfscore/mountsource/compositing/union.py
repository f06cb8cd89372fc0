import logging
from collections.abc import Iterable, Sequence
from typing import IO, Optional, Union

from swimvfscore.mountsource import FileInfo, MountSource, create_root_file_info
from swimvfscore.utils import normalize_path, overrides

logger = logging.getLogger(__name__)


class UnionMountSource(MountSource):
    """
    Copy-on-write style layering of read-only trees.

    The first layer is the bottom one. An entry in a later layer hides the entry with the same path in all
    earlier layers and paths missing in upper layers fall through to the lower ones. Folders are merged,
    i.e., the listing of a folder contains the names from every layer that has the folder, down to the
    first layer in which the path is not a folder.
    """

    def __init__(self, layers: Sequence[MountSource]) -> None:
        self.layers: list[MountSource] = list(layers)
        # The root exists even if no layer has any entries. The None marks it as not belonging to any layer.
        self.rootFileInfo = create_root_file_info(userdata=[None])

    @staticmethod
    def _is_hidden_below(layer: MountSource, path: str) -> bool:
        """True if the nearest existing ancestor of path in layer is no folder, i.e., it hides lower layers."""
        parent = normalize_path(path)
        while parent != '/':
            parent = parent.rsplit('/', 1)[0] or '/'
            fileInfo = layer.lookup(parent)
            if fileInfo is not None:
                return not fileInfo.is_dir()
        return False

    def _find_layer(self, path: str) -> Optional[tuple[MountSource, FileInfo]]:
        for layer in reversed(self.layers):
            fileInfo = layer.lookup(path)
            if fileInfo is not None:
                return layer, fileInfo
            if self._is_hidden_below(layer, path):
                return None
        return None

    @overrides(MountSource)
    def lookup(self, path: str) -> Optional[FileInfo]:
        if path.strip('/') == '':
            return self.rootFileInfo.clone()

        found = self._find_layer(path)
        if found is None:
            return None
        layer, fileInfo = found
        fileInfo.userdata.append(layer)
        return fileInfo

    def _folder_layers(self, path: str) -> list[MountSource]:
        """
        Returns the layers, ordered from bottom to top, whose folder at path is visible.
        A non-folder entry in some layer hides the folders of all layers below it.
        """
        if path.strip('/') == '':
            return self.layers

        layers: list[MountSource] = []
        for layer in reversed(self.layers):
            fileInfo = layer.lookup(path)
            if fileInfo is None:
                if self._is_hidden_below(layer, path):
                    break
                continue
            if not fileInfo.is_dir():
                break
            layers.append(layer)
        layers.reverse()
        return layers

    def _merge_listings(self, listings: list) -> Optional[Union[set[str], dict]]:
        """Merges listings ordered from bottom to top. Metadata is only kept if every listing has it."""
        existing = [listing for listing in listings if listing is not None]
        if not existing:
            return None

        if all(isinstance(listing, dict) for listing in existing):
            merged: dict = {}
            for listing in existing:
                merged.update(listing)
            return merged

        names: set[str] = set()
        for listing in existing:
            names.update(listing.keys() if isinstance(listing, dict) else listing)
        return names

    @overrides(MountSource)
    def list(self, path: str) -> Optional[Union[Iterable[str], dict[str, FileInfo]]]:
        """Returns the merged folder contents or None if no layer has a folder at path."""
        return self._merge_listings([layer.list(path) for layer in self._folder_layers(path)])

    @overrides(MountSource)
    def list_mode(self, path: str) -> Optional[Union[Iterable[str], dict[str, int]]]:
        return self._merge_listings([layer.list_mode(path) for layer in self._folder_layers(path)])

    @overrides(MountSource)
    def open(self, fileInfo: FileInfo, buffering=-1) -> IO[bytes]:
        layer = fileInfo.userdata.pop()
        try:
            if layer is None:
                raise IsADirectoryError("Cannot open the root folder!")
            return layer.open(fileInfo, buffering=buffering)
        finally:
            fileInfo.userdata.append(layer)

    @overrides(MountSource)
    def read(self, fileInfo: FileInfo, size: int, offset: int) -> bytes:
        layer = fileInfo.userdata.pop()
        try:
            if layer is None:
                raise IsADirectoryError("Cannot read the root folder!")
            return layer.read(fileInfo, size, offset)
        finally:
            fileInfo.userdata.append(layer)

    @overrides(MountSource)
    def get_mount_source(self, fileInfo: FileInfo) -> tuple[str, MountSource, FileInfo]:
        layerFileInfo = fileInfo.clone()
        layer = layerFileInfo.userdata.pop()
        if layer is None:
            return '/', self, fileInfo
        # All layers share the same root, therefore, no mount point has to be prepended.
        return layer.get_mount_source(layerFileInfo)

    @overrides(MountSource)
    def is_immutable(self) -> bool:
        return all(layer.is_immutable() for layer in self.layers)

    @overrides(MountSource)
    def __exit__(self, exception_type, exception_value, exception_traceback):
        for layer in self.layers:
            try:
                layer.__exit__(exception_type, exception_value, exception_traceback)
            except Exception as exception:
                logger.warning(
                    "Failed to close layer %s because of: %s",
                    layer,
                    exception,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
