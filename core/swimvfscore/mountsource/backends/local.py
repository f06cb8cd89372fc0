import logging
import os
import stat
import urllib.parse

from swimvfscore.mountsource import MountSource
from swimvfscore.mountsource.archives import decode_archive
from swimvfscore.mountsource.formats.folder import FolderMountSource
from swimvfscore.overlay import Overlay

logger = logging.getLogger(__name__)


def local_path(overlay: Overlay) -> str:
    url = overlay.url
    if url.scheme.lower() == 'file':
        # file://relative/path would put 'relative' into netloc. Keep it as part of the path.
        return urllib.parse.unquote(url.netloc + url.path)
    # Plain paths are used verbatim because '?' and '#' are valid characters in file names.
    return overlay.source


class LocalBackend:
    """Opens folders directly and decodes files as archives."""

    schemes = ('', 'file')

    @staticmethod
    def resolve(overlay: Overlay, **options) -> MountSource:
        path = local_path(overlay)

        # FileNotFoundError and PermissionError are intentionally propagated as they are.
        if stat.S_ISDIR(os.stat(path).st_mode):
            logger.info("Mounting folder %s directly", path)
            return FolderMountSource(os.path.abspath(path))

        with open(path, 'rb') as file:
            logger.info("Decoding local file %s", path)
            return decode_archive(overlay.type, overlay.source, file)
