import io
import logging
import tarfile
from timeit import default_timer as timer
from typing import IO, Union

from swimvfscore.mountsource.formats.memory import MemoryMountSource

logger = logging.getLogger(__name__)


class TarMountSource(MemoryMountSource):
    """
    Decodes all members of a TAR archive into memory. The archive is read sequentially in stream mode,
    i.e., the given file object does not have to be seekable.

    compression: Empty for plain TAR or 'gz' for gzip-compressed TAR.
    """

    def __init__(
        self, fileOrBytes: Union[bytes, IO[bytes]], name: str = "<tar>", compression: str = "", encoding=tarfile.ENCODING
    ) -> None:
        super().__init__()

        if isinstance(fileOrBytes, (bytes, bytearray)):
            fileOrBytes = io.BytesIO(fileOrBytes)

        t0 = timer()
        with tarfile.open(fileobj=fileOrBytes, mode='r|' + compression, encoding=encoding) as archive:
            for member in archive:
                self._add_member(archive, member)

        logger.info("Decoded %d entries from TAR %s in %.3fs", len(self) - 1, name, timer() - t0)

    def _add_member(self, archive: tarfile.TarFile, member: tarfile.TarInfo) -> None:
        if member.isdir():
            self.add_folder(member.name, mtime=member.mtime, mode=member.mode)
        elif member.issym():
            self.add_file(member.name, b"", mtime=member.mtime, mode=member.mode, linkname=member.linkname)
        elif member.islnk():
            # Hard links refer to an earlier member. In stream mode that member can not be read again,
            # therefore, copy the already materialized contents.
            target = self.lookup(member.linkname)
            contents = self.contents.get(target.userdata[-1], b"") if target else b""
            self.add_file(member.name, contents, mtime=member.mtime, mode=member.mode)
        elif member.isfile():
            extracted = archive.extractfile(member)
            contents = extracted.read() if extracted else b""
            self.add_file(member.name, contents, mtime=member.mtime, mode=member.mode)
        else:
            # Devices and FIFOs have no contents, which can be served. Keep them as empty files.
            logger.debug("Exposing special TAR member %s as empty file.", member.name)
            self.add_file(member.name, b"", mtime=member.mtime, mode=member.mode)
