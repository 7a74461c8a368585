"""
Per-record transforms applied before a record is measured and buffered.

A transform takes a JSON object and returns the object to import, or
``None`` to leave the record out of the import entirely.
"""

import hashlib
from typing import Any, Callable, Dict, Optional, Sequence

from core.exceptions import JSONParseError

Record = Dict[str, Any]
RecordTransform = Callable[[Record], Optional[Record]]


def drop_fields(*names: str) -> RecordTransform:
    """Remove the named top-level fields, e.g. ``_vectors`` to skip embeddings."""
    fields = frozenset(names)

    def transform(record: Record) -> Optional[Record]:
        if fields.isdisjoint(record):
            return record
        return {key: value for key, value in record.items() if key not in fields}

    return transform


def _weight(node: str, key: str) -> int:
    digest = hashlib.blake2b(f"{node}{key}".encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def shard_filter(node: str, nodes: Sequence[str], primary_key: str) -> RecordTransform:
    """
    Keep only the records owned by ``node`` among ``nodes``.

    Ownership uses rendezvous hashing on the primary key: each record goes to
    the node with the highest hash of ``node + key``. Several importers fed
    the same stream, each with its own ``node``, therefore split it without
    overlap. The hash is stable across processes and runs.
    """
    peers = sorted(set(nodes) | {node})

    def transform(record: Record) -> Optional[Record]:
        if primary_key not in record:
            raise JSONParseError(
                f"Record is missing the primary key {primary_key!r}",
                context={"primary_key": primary_key}
            )
        key = str(record[primary_key])
        owner = max(peers, key=lambda peer: (_weight(peer, key), peer))
        return record if owner == node else None

    return transform


def compose(*transforms: RecordTransform) -> RecordTransform:
    """Chain transforms left to right, stopping at the first ``None``."""

    def transform(record: Record) -> Optional[Record]:
        for step in transforms:
            record = step(record)
            if record is None:
                return None
        return record

    return transform
