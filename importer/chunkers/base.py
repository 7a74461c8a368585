"""
Abstract base class for chunkers
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple


@dataclass(frozen=True)
class Batch:
    """A ready-to-send buffer of whole serialized records."""

    index: int
    data: bytes
    records: int

    @property
    def size(self) -> int:
        return len(self.data)


class Chunker(ABC):
    """
    Base class for all chunkers.

    A chunker is a lazy, finite, single-pass iterator of Batches. Records
    are assigned to batches strictly in input order and batch indices start
    at 0 and increase by one, so a rerun over the same input yields the same
    batches.

    A batch is closed before appending the record that would bring it to or
    over ``threshold``. A single record larger than the threshold is never
    split or dropped; it becomes a batch on its own.
    """

    def __init__(self, threshold: int):
        if threshold <= 0:
            raise ValueError("threshold must be a positive number of bytes")
        self.threshold = threshold
        self.batches_emitted = 0
        self._batches: Optional[Iterator[Batch]] = None

    @abstractmethod
    def _chunks(self) -> Iterator[Tuple[bytes, int]]:
        """
        Yield ``(data, record_count)`` pairs.

        Returns:
            Iterator over the finished buffers, in input order
        """
        pass

    def _generate(self) -> Iterator[Batch]:
        for data, records in self._chunks():
            batch = Batch(index=self.batches_emitted, data=data, records=records)
            self.batches_emitted += 1
            yield batch

    def __iter__(self) -> "Chunker":
        return self

    def __next__(self) -> Batch:
        if self._batches is None:
            self._batches = self._generate()
        return next(self._batches)
