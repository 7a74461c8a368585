"""
CSV chunker: header-prefixed batches of whole rows
"""

import csv
import io
from typing import BinaryIO, Iterator, List, Tuple

from importer.chunkers.base import Chunker
from importer.sources import CSVRecordSource
import logging

logger = logging.getLogger(__name__)


class CSVChunker(Chunker):
    """
    Split a CSV stream into batches that each start with the header line.

    Rows are re-serialized with the same delimiter, so every batch is a
    self-contained CSV document. Trailing header-only batches are never
    emitted; an input with a header and no rows yields no batches at all.
    """

    def __init__(
        self,
        stream: BinaryIO,
        threshold: int,
        delimiter: str = ",",
        flexible: bool = False
    ):
        super().__init__(threshold)
        self.delimiter = delimiter
        self.source = CSVRecordSource(stream, delimiter=delimiter, flexible=flexible)
        self._out = io.StringIO()
        self._writer = csv.writer(self._out, delimiter=delimiter, lineterminator="\n")
        self.header_line = self._serialize(self.source.header) if self.source.header else b""

    def _serialize(self, row: List[str]) -> bytes:
        self._out.seek(0)
        self._out.truncate(0)
        self._writer.writerow(row)
        return self._out.getvalue().encode("utf-8")

    def _chunks(self) -> Iterator[Tuple[bytes, int]]:
        buffer = bytearray(self.header_line)
        rows = 0

        for row in self.source:
            line = self._serialize(row)

            if rows and len(buffer) + len(line) >= self.threshold:
                yield bytes(buffer), rows
                buffer = bytearray(self.header_line)
                rows = 0

            buffer += line
            rows += 1

        if rows:
            yield bytes(buffer), rows

        logger.debug(f"CSV input exhausted after {self.source.line_number} lines")
