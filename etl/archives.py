# WORKFLOW: Archive reading and writing for price data exchange.
# Used by: Ingestion coordinator (read), export encoder (write)
# Functions:
# 1. resolve_archive_kind() - Map the "type" query value to an ArchiveKind
# 2. open_archive() - List the file entries of a ZIP or TAR payload held in memory
# 3. build_archive() - Wrap one named payload into a fresh ZIP or TAR archive
#
# Read flow: bytes + kind -> container check -> [ArchiveEntry(name, open)]
# Write flow: entry name + payload -> single-entry archive bytes

"""
ZIP and TAR archive reading and writing.
"""

import gzip
import io
import logging
import tarfile
import time
import zipfile
import zlib
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, List, Optional

from etl.errors import ArchiveFormatError

logger = logging.getLogger(__name__)

# Errors an entry stream may raise while being opened or read lazily.
# zipfile raises NotImplementedError for an unsupported compression method
# and RuntimeError for an encrypted entry.
ARCHIVE_READ_ERRORS = (
    zipfile.BadZipFile,
    tarfile.TarError,
    gzip.BadGzipFile,
    zlib.error,
    EOFError,
    NotImplementedError,
    RuntimeError,
)


class ArchiveKind(str, Enum):
    ZIP = "zip"
    TAR = "tar"

    @property
    def media_type(self) -> str:
        return "application/zip" if self is ArchiveKind.ZIP else "application/x-tar"


@dataclass(frozen=True)
class ArchiveEntry:
    """A named file inside an archive; open() returns a binary stream."""

    name: str
    opener: Callable[[], BinaryIO]

    def open(self) -> BinaryIO:
        return self.opener()


def resolve_archive_kind(value: Optional[str], default: str = "zip") -> ArchiveKind:
    """
    Resolve an archive kind from a query parameter value.

    Args:
        value: Raw value, may be None or empty
        default: Kind used when no value is supplied

    Returns:
        ArchiveKind

    Raises:
        ArchiveFormatError: If the value names an unsupported archive type
    """
    raw = (value or default).strip().lower()
    try:
        return ArchiveKind(raw)
    except ValueError:
        raise ArchiveFormatError(f"Unsupported archive type: {value}")


def _open_zip(data: bytes) -> List[ArchiveEntry]:
    archive = zipfile.ZipFile(io.BytesIO(data))
    entries = []
    for info in archive.infolist():
        if info.is_dir():
            continue
        entries.append(ArchiveEntry(name=info.filename, opener=lambda info=info: archive.open(info)))
    return entries


def _open_tar(data: bytes) -> List[ArchiveEntry]:
    archive = tarfile.open(fileobj=io.BytesIO(data), mode="r:*")
    entries = []
    for member in archive.getmembers():
        if not member.isfile():
            continue
        entries.append(ArchiveEntry(name=member.name, opener=lambda member=member: archive.extractfile(member)))
    return entries


def open_archive(data: bytes, kind: ArchiveKind) -> List[ArchiveEntry]:
    """
    List the file entries of an in-memory archive.

    Args:
        data: Raw archive bytes
        kind: Declared archive kind

    Returns:
        File entries in archive order (directories and special members excluded)

    Raises:
        ArchiveFormatError: If the bytes are not a valid archive of the declared kind
    """
    try:
        if kind is ArchiveKind.ZIP:
            entries = _open_zip(data)
        else:
            entries = _open_tar(data)
    except ARCHIVE_READ_ERRORS as e:
        logger.warning(f"Failed to open {kind.value} archive ({len(data)} bytes): {e}")
        raise ArchiveFormatError(f"Invalid {kind.value} archive: {e}") from e

    logger.info(f"Opened {kind.value} archive with {len(entries)} file entries")
    return entries


def build_archive(kind: ArchiveKind, entry_name: str, payload: bytes) -> bytes:
    """
    Build a single-entry archive.

    Args:
        kind: Archive kind to produce
        entry_name: Name of the entry inside the archive
        payload: Entry content

    Returns:
        Archive bytes
    """
    buffer = io.BytesIO()
    if kind is ArchiveKind.ZIP:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(entry_name, payload)
    else:
        info = tarfile.TarInfo(name=entry_name)
        info.size = len(payload)
        info.mtime = int(time.time())
        with tarfile.open(fileobj=buffer, mode="w") as archive:
            archive.addfile(info, io.BytesIO(payload))
    return buffer.getvalue()
