"""
Streaming record sources.

A record source turns a binary input stream into one logical record at a
time: a CSV row (with the header captured up front) or one parsed JSON
object. Sources never hold more than the record being decoded plus a read
buffer, so they work on inputs far larger than memory. Any malformed input
raises a ParseError and ends the iteration; nothing is skipped.
"""

import csv
import io
import json
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterator, List, Optional

from core.exceptions import CSVParseError, InputNotFoundError, JSONParseError
from importer.formats import STDIN_PATH
import logging

logger = logging.getLogger(__name__)

# Whitespace allowed between JSON values in a stream
_JSON_WHITESPACE = " \t\n\r"

# A decode error this close to the end of the buffer may come from a token
# cut by the read boundary (literals, numbers, \uXXXX\uXXXX escapes)
_TRUNCATION_WINDOW = 16


def _raise_field_size_limit() -> None:
    """Lift the csv module's per-field limit, a single field may be any size."""
    limit = sys.maxsize
    while True:
        try:
            csv.field_size_limit(limit)
            return
        except OverflowError:
            limit //= 2


_raise_field_size_limit()


@contextmanager
def open_input(path: Path) -> Iterator[BinaryIO]:
    """Open ``path`` for binary reading. ``-`` is standard input."""
    if path == STDIN_PATH:
        logger.info("Reading from standard input")
        yield sys.stdin.buffer
        return

    if not path.exists():
        raise InputNotFoundError(
            f"The file {path} does not exist",
            context={"path": str(path)}
        )

    try:
        stream = path.open("rb")
    except OSError as e:
        raise InputNotFoundError(
            f"The file {path} cannot be read",
            context={"path": str(path)},
            original_exception=e
        )

    with stream:
        yield stream


class CSVRecordSource:
    """
    Read CSV rows one at a time.

    The header row is read on construction and exposed as ``header``. Unless
    ``flexible`` is set, every data row must have as many fields as the
    header. Blank lines are skipped.
    """

    def __init__(self, stream: BinaryIO, delimiter: str = ",", flexible: bool = False):
        self.delimiter = delimiter
        self.flexible = flexible
        self._released = False
        self._text = io.TextIOWrapper(stream, encoding="utf-8-sig", newline="")
        self._reader = csv.reader(self._text, delimiter=delimiter, strict=True)
        try:
            self.header: List[str] = self._next_row() or []
        except CSVParseError:
            self.release()
            raise

    @property
    def line_number(self) -> int:
        return self._reader.line_num

    def release(self) -> None:
        """Detach from the stream so the wrapper never closes it."""
        if not self._released:
            self._released = True
            self._text.detach()

    def _next_row(self) -> Optional[List[str]]:
        try:
            for row in self._reader:
                if row:
                    return row
        except (csv.Error, UnicodeDecodeError) as e:
            raise CSVParseError(
                "Malformed CSV input",
                context={"line_number": self._reader.line_num},
                original_exception=e
            )
        return None

    def __iter__(self) -> Iterator[List[str]]:
        try:
            if not self.header:
                return
            while True:
                row = self._next_row()
                if row is None:
                    return
                if not self.flexible and len(row) != len(self.header):
                    raise CSVParseError(
                        "CSV row does not have the same number of fields as the header",
                        context={
                            "line_number": self._reader.line_num,
                            "expected_fields": len(self.header),
                            "found_fields": len(row),
                        }
                    )
                yield row
        finally:
            self.release()


class NDJSONRecordSource:
    """
    Read a stream of JSON objects.

    Objects are separated by whitespace, usually one per line, but an object
    may span several lines. Every value in the stream must be an object.
    """

    def __init__(self, stream: BinaryIO, read_size: int = 64 * 1024):
        self._released = False
        self._text = io.TextIOWrapper(stream, encoding="utf-8")
        self._decoder = json.JSONDecoder()
        self.read_size = read_size
        self.records_read = 0

    def _read(self, size: int) -> str:
        try:
            return self._text.read(size)
        except UnicodeDecodeError as e:
            raise JSONParseError(
                "Input is not valid UTF-8",
                context={"record_number": self.records_read},
                original_exception=e
            )

    def release(self) -> None:
        """Detach from the stream so the wrapper never closes it."""
        if not self._released:
            self._released = True
            self._text.detach()

    @staticmethod
    def _truncated(error: json.JSONDecodeError, buffer: str) -> bool:
        """True if ``error`` may only mean the buffer ends inside a value."""
        if error.msg.startswith("Unterminated string"):
            return True
        return error.pos >= len(buffer) - _TRUNCATION_WINDOW

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        try:
            yield from self._values()
        finally:
            self.release()

    def _values(self) -> Iterator[Dict[str, Any]]:
        buffer = ""
        pos = 0
        eof = False
        while True:
            while pos < len(buffer) and buffer[pos] in _JSON_WHITESPACE:
                pos += 1

            if pos == len(buffer):
                if eof:
                    return
                buffer, pos = self._read(self.read_size), 0
                eof = not buffer
                continue

            try:
                value, end = self._decoder.raw_decode(buffer, pos)
            except json.JSONDecodeError as e:
                if eof or not self._truncated(e, buffer):
                    raise JSONParseError(
                        f"Malformed JSON: {e.msg}",
                        context={"record_number": self.records_read},
                        original_exception=e
                    )
                chunk = self._read(max(self.read_size, len(buffer)))
                eof = not chunk
                buffer, pos = buffer[pos:] + chunk, 0
                continue

            if not isinstance(value, dict):
                raise JSONParseError(
                    f"Expected a JSON object, found {type(value).__name__}",
                    context={"record_number": self.records_read}
                )

            self.records_read += 1
            pos = end
            yield value

