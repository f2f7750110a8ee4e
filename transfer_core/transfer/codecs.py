"""
Codec registry: record sequences to bytes and back.

Built-in formats:

- ``json``: structural round trip of the record list (UTF-8).
- ``csv``: header row plus one row per record over a fixed field list.
  Lossy by intent and export-only.
- ``zip`` / ``raw``: payloads that are already bytes, passed through.

Unknown formats fall back to ``json`` in both directions.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from transfer_core.transfer.exceptions import ParseError, UnsupportedImportFormat

logger = logging.getLogger(__name__)

Records = List[Dict[str, Any]]
Serializer = Callable[[Any], bytes]
Deserializer = Callable[[bytes], Any]

DEFAULT_FORMAT = "json"
DEFAULT_CSV_FIELDS = ["class", "text"]


@dataclass
class Codec:
    """A registered format."""

    format: str
    serializer: Serializer
    deserializer: Optional[Deserializer] = None
    content_type: str = "application/octet-stream"
    binary: bool = False


def normalize_format(format: Optional[str]) -> str:
    return (format or DEFAULT_FORMAT).strip().lower()


class CodecRegistry:
    """
    Lookup table of codecs keyed by format tag.

    Format tags are matched case-insensitively. A value that is already
    ``bytes`` is passed through by ``serialize`` whatever the format, which
    is how custom exports and nested archives travel through the cascade.
    """

    def __init__(self, csv_fields: Optional[Sequence[str]] = None, json_indent: Optional[int] = None):
        self.csv_fields = list(csv_fields) if csv_fields else list(DEFAULT_CSV_FIELDS)
        self.json_indent = json_indent
        self._codecs: Dict[str, Codec] = {}

        self.register("json", self._serialize_json, self._deserialize_json, "application/json")
        self.register("csv", self._serialize_csv, None, "application/octet-stream", binary=True)
        self.register("zip", _passthrough, None, "application/zip", binary=True)
        self.register("raw", _passthrough, None, "application/octet-stream", binary=True)

    @classmethod
    def from_config(cls, transfer_config) -> "CodecRegistry":
        return cls(csv_fields=transfer_config.csv_fields, json_indent=transfer_config.json_indent)

    def register(
        self,
        format: str,
        serializer: Serializer,
        deserializer: Optional[Deserializer] = None,
        content_type: str = "application/octet-stream",
        binary: bool = False,
    ) -> None:
        """Register or replace the codec for ``format``."""
        tag = normalize_format(format)
        self._codecs[tag] = Codec(tag, serializer, deserializer, content_type, binary)

    def get(self, format: Optional[str]) -> Codec:
        """Return the codec for ``format``, falling back to json."""
        tag = normalize_format(format)
        codec = self._codecs.get(tag)
        if codec is None:
            logger.debug(f"No codec registered for '{tag}', using {DEFAULT_FORMAT}")
            codec = self._codecs[DEFAULT_FORMAT]
        return codec

    def formats(self) -> List[str]:
        return list(self._codecs)

    def serialize(self, format: Optional[str], records: Union[Records, bytes]) -> bytes:
        if isinstance(records, (bytes, bytearray)):
            return bytes(records)
        return self.get(format).serializer(records)

    def deserialize(self, format: Optional[str], data: bytes) -> Any:
        """
        Decode ``data`` into records.

        Raises:
            UnsupportedImportFormat: the format has no deserializer
            ParseError: the payload is not valid for the format
        """
        codec = self.get(format)
        if codec.deserializer is None:
            raise UnsupportedImportFormat(
                f"Import of '{normalize_format(format)}' data is not supported", phase="parse"
            )
        try:
            return codec.deserializer(data)
        except (ValueError, UnicodeDecodeError) as e:
            raise ParseError(
                f"Invalid {codec.format} payload: {e}", phase="parse"
            ) from e

    def content_type_for(self, format: Optional[str]) -> str:
        return self.get(format).content_type

    def is_binary(self, format: Optional[str]) -> bool:
        return self.get(format).binary

    # Built-in codecs
    def _serialize_json(self, records: Any) -> bytes:
        return json.dumps(
            records, default=str, indent=self.json_indent, ensure_ascii=False
        ).encode("utf-8")

    def _deserialize_json(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))

    def _serialize_csv(self, records: Records) -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(self.csv_fields)
        for record in records:
            writer.writerow([_csv_cell(record.get(name)) for name in self.csv_fields])
        return buffer.getvalue().encode("utf-8")


def _passthrough(payload: Any) -> bytes:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    raise TypeError(f"Expected bytes, got {type(payload).__name__}")


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)
