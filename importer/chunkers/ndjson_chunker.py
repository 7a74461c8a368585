"""
NDJSON chunker: newline separated batches of whole JSON objects
"""

import json
from typing import Any, BinaryIO, Dict, Iterator, Optional, Tuple

from core.exceptions import JSONParseError
from importer.chunkers.base import Chunker
from importer.sources import NDJSONRecordSource
from importer.transforms import RecordTransform


class ByteCounter:
    """Text sink that only counts the UTF-8 bytes written to it."""

    def __init__(self):
        self.count = 0

    def write(self, text: str) -> int:
        self.count += len(text) if text.isascii() else len(text.encode("utf-8"))
        return len(text)


class BufferWriter:
    """Text sink appending UTF-8 bytes to a bytearray."""

    def __init__(self, buffer: bytearray):
        self.buffer = buffer

    def write(self, text: str) -> int:
        self.buffer += text.encode("utf-8")
        return len(text)


class NDJSONChunker(Chunker):
    """
    Split a stream of JSON objects into NDJSON batches.

    Each object is written compactly on its own line. The optional
    ``transform`` runs first; records it maps to ``None`` are left out.
    """

    def __init__(
        self,
        stream: BinaryIO,
        threshold: int,
        transform: Optional[RecordTransform] = None
    ):
        super().__init__(threshold)
        self.source = NDJSONRecordSource(stream)
        self.transform = transform
        self.records_dropped = 0

    @staticmethod
    def _dump(record: Dict[str, Any], sink) -> None:
        try:
            json.dump(record, sink, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
        except ValueError as e:
            raise JSONParseError(
                "Record contains a value that cannot be written as JSON",
                original_exception=e
            )
        sink.write("\n")

    def _chunks(self) -> Iterator[Tuple[bytes, int]]:
        buffer = bytearray()
        records = 0

        for record in self.source:
            if self.transform is not None:
                record = self.transform(record)
                if record is None:
                    self.records_dropped += 1
                    continue

            # Measure before touching the buffer
            counter = ByteCounter()
            self._dump(record, counter)

            if buffer and len(buffer) + counter.count >= self.threshold:
                yield bytes(buffer), records
                buffer = bytearray()
                records = 0

            self._dump(record, BufferWriter(buffer))
            records += 1

        if buffer:
            yield bytes(buffer), records
