import datetime
import io
import logging
import stat
import zipfile
from timeit import default_timer as timer
from typing import IO, Union

from swimvfscore.mountsource.formats.memory import MemoryMountSource

logger = logging.getLogger(__name__)


class ZipMountSource(MemoryMountSource):
    """Decodes all members of a ZIP archive into memory."""

    def __init__(self, fileOrBytes: Union[bytes, IO[bytes]], name: str = "<zip>") -> None:
        super().__init__()

        # zipfile needs random access to the central directory at the end of the archive.
        if isinstance(fileOrBytes, (bytes, bytearray)):
            fileOrBytes = io.BytesIO(fileOrBytes)

        t0 = timer()
        with zipfile.ZipFile(fileOrBytes, 'r') as archive:
            for info in archive.infolist():
                self._add_member(archive, info)

        logger.info("Decoded %d entries from ZIP %s in %.3fs", len(self) - 1, name, timer() - t0)

    def _add_member(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> None:
        mtime = datetime.datetime(*info.date_time, tzinfo=datetime.timezone.utc).timestamp() if info.date_time else 0

        # The Python zipfile module has no API for links: https://bugs.python.org/issue45286
        # However, the file mode stored in the upper bits of external_attr exposes whether it's a link.
        # For archives created on MS-DOS these bits are zero and default permissions are used.
        unixMode = info.external_attr >> 16
        permissions = unixMode & 0o777

        if info.is_dir():
            self.add_folder(info.filename, mtime=mtime, mode=permissions or 0o555)
            return

        contents = archive.read(info)
        if stat.S_ISLNK(unixMode):
            self.add_file(info.filename, b"", mtime=mtime, mode=permissions or 0o777, linkname=contents.decode())
        else:
            self.add_file(info.filename, contents, mtime=mtime, mode=permissions or 0o444)
