"""
Command line entry point.

Example:
    $ importer --url http://localhost:7700 --index movies \\
        --files movies.ndjson --batch-size "20 MB" --jobs 4

    $ cat movies.csv | importer --index movies --files - --format csv
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import httpx
import typer

from core.config import parse_byte_size, settings
from core.exceptions import ImporterException
from core.logging import setup_logging
from importer.backoff import ExponentialBackoff
from importer.formats import Format
from importer.pipeline import ImportPipeline, estimate_batches
from importer.progress import LoggingProgress, TqdmProgress
from importer.sender import DocumentSender, UploadOperation
from importer.transforms import RecordTransform, compose, drop_fields, shard_filter
import logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="importer",
    help="Import large CSV, NDJSON and JSON files into a search index in batches",
    add_completion=False,
)


def _build_transform(
    drop: List[str],
    shard_node: Optional[str],
    shard_peers: List[str],
    primary_key: Optional[str]
) -> Optional[RecordTransform]:
    steps = []
    if shard_node:
        if not primary_key:
            raise typer.BadParameter("--shard-node requires --primary-key")
        steps.append(shard_filter(shard_node, shard_peers, primary_key))
    if drop:
        steps.append(drop_fields(*drop))
    if not steps:
        return None
    return steps[0] if len(steps) == 1 else compose(*steps)


@app.command()
def main(
    url: str = typer.Option(settings.URL, "--url", help="Base URL of the search engine"),
    index: str = typer.Option(..., "--index", help="Index receiving the documents"),
    files: List[Path] = typer.Option(..., "--files", help="Input files, '-' reads standard input"),
    primary_key: Optional[str] = typer.Option(None, "--primary-key", help="Primary key of the documents"),
    api_key: Optional[str] = typer.Option(settings.API_KEY, "--api-key", help="Bearer token"),
    file_format: Optional[Format] = typer.Option(None, "--format", help="Override format detection"),
    csv_delimiter: str = typer.Option(",", "--csv-delimiter", help="CSV field delimiter"),
    csv_flexible: bool = typer.Option(False, "--csv-flexible", help="Accept rows with a varying number of fields"),
    batch_size: str = typer.Option(
        str(int(settings.BATCH_SIZE)),
        "--batch-size",
        help="Maximum batch size, e.g. '20 MB' or '512KiB'",
    ),
    jobs: int = typer.Option(settings.JOBS, "--jobs", min=1, help="Number of concurrent senders"),
    skip_batches: int = typer.Option(0, "--skip-batches", min=0, help="Resume after this many batches"),
    upload_operation: UploadOperation = typer.Option(
        UploadOperation.ADD_OR_REPLACE,
        "--upload-operation",
        help="add-or-replace (POST) or add-or-update (PUT)",
    ),
    drop: Optional[List[str]] = typer.Option(None, "--drop-field", help="Remove this field from every JSON record"),
    shard_node: Optional[str] = typer.Option(None, "--shard-node", help="Only import records owned by this node"),
    shard_peers: Optional[List[str]] = typer.Option(None, "--shard-peer", help="Other nodes sharing the input"),
    log_level: str = typer.Option(settings.LOG_LEVEL, "--log-level", help="Logging level"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar"),
) -> None:
    """Send documents to the index in byte-bounded, gzip-compressed batches."""
    setup_logging(log_level)

    if len(csv_delimiter) != 1:
        raise typer.BadParameter("must be a single character", param_hint="--csv-delimiter")

    try:
        threshold = parse_byte_size(batch_size)
    except ImporterException as e:
        raise typer.BadParameter(e.message, param_hint="--batch-size")

    transform = _build_transform(drop or [], shard_node, shard_peers or [], primary_key)

    if no_progress:
        progress = LoggingProgress()
    else:
        progress = TqdmProgress(total=estimate_batches(files, threshold))

    async def run() -> dict:
        async with httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT) as client:
            sender = DocumentSender(
                client,
                url=url,
                index=index,
                primary_key=primary_key,
                api_key=api_key,
                operation=upload_operation,
                csv_delimiter=csv_delimiter,
                skip_batches=skip_batches,
                backoff=ExponentialBackoff(),
                progress=progress,
            )
            pipeline = ImportPipeline(
                sender,
                batch_size=threshold,
                jobs=jobs,
                csv_delimiter=csv_delimiter,
                csv_flexible=csv_flexible,
                transform=transform,
            )
            return await pipeline.run(files, fmt=file_format)

    try:
        result = asyncio.run(run())
    except ImporterException as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    finally:
        progress.close()

    typer.echo(
        f"Imported {result['batches_sent']} batches "
        f"({result['batches_skipped']} skipped) from {result['files']} files"
    )


if __name__ == "__main__":
    app()
