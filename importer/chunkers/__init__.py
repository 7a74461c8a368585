"""
Chunkers turn one input stream into a sequence of byte-bounded Batches.

Modules:
    base: Batch type and the Chunker base class
    csv_chunker: header-prefixed CSV batches
    ndjson_chunker: newline separated JSON object batches
"""

from typing import BinaryIO, Optional

from importer.chunkers.base import Batch, Chunker
from importer.chunkers.csv_chunker import CSVChunker
from importer.chunkers.ndjson_chunker import NDJSONChunker
from importer.formats import Format
from importer.transforms import RecordTransform


def build_chunker(
    fmt: Format,
    stream: BinaryIO,
    threshold: int,
    delimiter: str = ",",
    flexible: bool = False,
    transform: Optional[RecordTransform] = None
) -> Chunker:
    """Return the chunker for a record-oriented format."""
    if fmt is Format.CSV:
        return CSVChunker(stream, threshold, delimiter=delimiter, flexible=flexible)
    if fmt is Format.NDJSON:
        return NDJSONChunker(stream, threshold, transform=transform)
    raise ValueError(f"{fmt.value} input is sent as a single document and is not chunked")


__all__ = ["Batch", "Chunker", "CSVChunker", "NDJSONChunker", "build_chunker"]
