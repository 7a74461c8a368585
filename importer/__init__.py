"""
Batched document importer.

This package streams large input files to the documents endpoint of a
search index:

Modules:
    formats: Input formats and their content types
    sources: Streaming CSV row and JSON object readers
    transforms: Per-record transforms (field removal, sharding)
    backoff: Exponential backoff schedule with jitter
    sender: Gzip + HTTP delivery of one batch with retries
    progress: Progress sinks (tqdm bar, logging)
    pipeline: Producer / bounded channel / sender pool orchestration
    cli: Typer command line entry point

Subpackages:
    chunkers: Record-aware, byte-bounded batch producers

Architecture:
    file bytes -> records -> batches -> gzip HTTP bodies -> acknowledgement

    1. A chunker reads records in order and packs them into batches no
       larger than the configured size (a single oversized record is sent
       alone, never split)
    2. One producer pushes batches into a bounded queue
    3. N senders pull, compress and deliver them, retrying with backoff

Usage:
    from importer.pipeline import ImportPipeline
    from importer.sender import DocumentSender

Example:
    async with httpx.AsyncClient() as client:
        sender = DocumentSender(client, url="http://localhost:7700", index="movies")
        pipeline = ImportPipeline(sender, batch_size=20_000_000, jobs=4)
        result = await pipeline.run([Path("movies.ndjson")])

Error Handling:
    All components raise exceptions from core.exceptions. A batch that
    cannot be delivered after every retry aborts the run; restart with
    ``skip_batches`` to resume without resending delivered batches.
"""

__all__ = [
    "Format",
    "DocumentSender",
    "UploadOperation",
    "ImportPipeline",
]

from importer.formats import Format
from importer.sender import DocumentSender, UploadOperation
from importer.pipeline import ImportPipeline
