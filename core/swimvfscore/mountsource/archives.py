import dataclasses
import logging
import tarfile
import zipfile
import zlib
from typing import IO, Callable, Optional, Union

from swimvfscore.utils import UnsupportedFormatError

from . import MountSource
from .formats.tar import TarMountSource
from .formats.zip import ZipMountSource

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ArchiveTypeInfo:
    # Decodes the complete archive contents, given as bytes, into a MountSource. The second argument is
    # a name, which is only used for log messages.
    decode: Callable[[bytes, str], MountSource]
    # File name suffixes used for detecting this type. The first one is the canonical type string.
    suffixes: list[str]


# The order implies the priority for the suffix check. The keys are the canonical type strings, which can
# also be specified explicitly via the overlay 'type' option.
ARCHIVE_TYPES: dict[str, ArchiveTypeInfo] = {
    ".zip": ArchiveTypeInfo(lambda data, name: ZipMountSource(data, name=name), [".zip"]),
    ".tar.gz": ArchiveTypeInfo(
        lambda data, name: TarMountSource(data, name=name, compression='gz'), [".tar.gz", ".tgz"]
    ),
    ".tar": ArchiveTypeInfo(lambda data, name: TarMountSource(data, name=name), [".tar"]),
}

# The type that is used when neither an explicit type is given nor a suffix matches.
FALLBACK_ARCHIVE_TYPE = ".tar"


def canonical_archive_type(typeString: str) -> Optional[str]:
    """Maps type strings like 'tgz', '.tgz', 'tar.gz', or '.TAR.GZ' to the key in ARCHIVE_TYPES."""
    normalized = typeString.strip().lower()
    if not normalized:
        return None
    if not normalized.startswith('.'):
        normalized = '.' + normalized
    for key, info in ARCHIVE_TYPES.items():
        if normalized in info.suffixes:
            return key
    return None


def detect_archive_type(name: str) -> Optional[str]:
    """Returns the archive type implied by the file name suffix or None if it is not a known archive suffix."""
    for key, info in ARCHIVE_TYPES.items():
        if any(name.endswith(suffix) for suffix in info.suffixes):
            return key
    return None


def sniff_archive_type(name: str) -> str:
    """
    Same as detect_archive_type but falls back to TAR for unknown suffixes.
    This permissive fallback means that, e.g., a '.7z' file will be tried to be decoded as TAR and fail
    with an UnsupportedFormatError instead of being rejected up front.
    """
    return detect_archive_type(name) or FALLBACK_ARCHIVE_TYPE


def decode_archive(typeHint: str, nameForSniffing: str, fileOrBytes: Union[bytes, IO[bytes]]) -> MountSource:
    """
    Reads the whole input into memory and decodes it into a read-only file tree.

    typeHint: Forces the archive type. If empty, the type is sniffed from nameForSniffing.
    """
    archiveType = sniff_archive_type(nameForSniffing) if not typeHint else canonical_archive_type(typeHint)
    if archiveType is None:
        raise UnsupportedFormatError(f"unsupported file type: {typeHint}")

    data = fileOrBytes if isinstance(fileOrBytes, (bytes, bytearray)) else fileOrBytes.read()
    logger.debug("Decoding %d B from %s as %s", len(data), nameForSniffing, archiveType)

    try:
        return ARCHIVE_TYPES[archiveType].decode(data, nameForSniffing)
    except (tarfile.TarError, zipfile.BadZipFile, zlib.error, EOFError, ValueError, RuntimeError) as exception:
        raise UnsupportedFormatError(
            f"Failed to decode {nameForSniffing} as {archiveType}: {exception}"
        ) from exception
