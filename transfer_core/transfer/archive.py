"""
Archive container for one level of a cascaded export.

An archive is an ordered set of uniquely named entries serialized as a ZIP
file. Entry names follow ``<collection>.<format>``.
"""

import io
import posixpath
import zipfile
import zlib
from dataclasses import dataclass
from typing import Dict, List, Union

from transfer_core.transfer.exceptions import CorruptArchive, DuplicateEntry, TransferError

COMPRESSION_MODES = {
    "deflated": zipfile.ZIP_DEFLATED,
    "stored": zipfile.ZIP_STORED,
}


@dataclass(frozen=True)
class ArchiveEntry:
    name: str
    payload: bytes

    @property
    def target(self) -> str:
        """Collection name encoded in the entry name."""
        return entry_basename(self.name).split(".")[0]

    @property
    def extension(self) -> str:
        """Format tag encoded in the entry name, lower-cased."""
        basename = entry_basename(self.name)
        if "." not in basename:
            return ""
        return basename.rsplit(".", 1)[-1].lower()


def entry_basename(name: str) -> str:
    return posixpath.basename(name.replace("\\", "/"))


def is_hidden_entry(name: str) -> bool:
    """
    True for entries that carry no collection data.

    Archives produced by desktop tools add files such as ``.DS_Store`` or
    ``__MACOSX/._Post.json``; their basename is empty or starts with a dot.
    """
    basename = entry_basename(name)
    return not basename or basename.startswith(".")


class Archive:
    """
    Ordered, uniquely named entries serializable to one ZIP buffer.

    Once ``seal`` is called the archive refuses new entries.
    """

    def __init__(self, compression: str = "deflated"):
        if compression not in COMPRESSION_MODES:
            raise ValueError(f"Unknown archive compression: {compression}")
        self.compression = compression
        self._entries: Dict[str, ArchiveEntry] = {}
        self.sealed = False

    def add_entry(self, name: str, data: bytes) -> ArchiveEntry:
        if self.sealed:
            raise TransferError(f"Cannot add '{name}' to a sealed archive", phase="archive")
        if name in self._entries:
            raise DuplicateEntry(f"Archive already contains an entry named '{name}'", phase="archive")
        entry = ArchiveEntry(name, bytes(data))
        self._entries[name] = entry
        return entry

    def list_entries(self) -> List[ArchiveEntry]:
        return list(self._entries.values())

    def names(self) -> List[str]:
        return list(self._entries)

    def get(self, name: str) -> ArchiveEntry:
        return self._entries[name]

    def seal(self) -> "Archive":
        self.sealed = True
        return self

    def __len__(self):
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=COMPRESSION_MODES[self.compression]) as zf:
            for entry in self._entries.values():
                zf.writestr(entry.name, entry.payload)
        return buffer.getvalue()

    @classmethod
    def from_bytes(cls, data: Union[bytes, bytearray]) -> "Archive":
        """
        Parse a ZIP buffer. Directory members are dropped; the result is sealed.

        Raises:
            CorruptArchive: the buffer is not a readable ZIP file
        """
        archive = cls()
        try:
            with zipfile.ZipFile(io.BytesIO(bytes(data))) as zf:
                for member in zf.infolist():
                    if member.is_dir():
                        continue
                    if member.filename in archive:
                        raise CorruptArchive(
                            f"Archive repeats entry '{member.filename}'", phase="parse"
                        )
                    archive.add_entry(member.filename, zf.read(member))
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as e:
            raise CorruptArchive(f"Unreadable archive: {e}", phase="parse") from e
        return archive.seal()
