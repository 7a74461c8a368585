# ============================================================================
# File: importer/pipeline.py
# Description: Producer / bounded channel / sender pool orchestration
# ============================================================================
"""
Import pipeline - streams input files to the documents endpoint.

For each input file this module runs:
- One producer task driving the chunker, pushing Batches into a bounded
  channel (the producer waits while the channel is full)
- A pool of ``jobs`` consumer tasks pulling Batches and handing them to the
  DocumentSender

The first fatal error on either side stops production and dequeuing. Work
already started (an in-flight request and its retries) is allowed to finish,
then the error is raised to the caller. There is no partial success: either
every batch of every file is accounted for, or the run fails.

With ``jobs > 1`` batches may reach the endpoint out of order.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from core.config import settings
from core.exceptions import ImporterException, UnsupportedFormatError
from importer.chunkers import Batch, Chunker, build_chunker
from importer.formats import STDIN_PATH, Format
from importer.sender import DocumentSender
from importer.sources import open_input
from importer.transforms import RecordTransform
import logging

logger = logging.getLogger(__name__)

# End-of-stream marker, one per consumer
_DONE = object()


def estimate_batches(paths: Sequence[Path], batch_size: int) -> Optional[int]:
    """Rough batch count for progress display, None when reading stdin."""
    total = 0
    for path in paths:
        if path == STDIN_PATH or not path.exists():
            return None
        total += path.stat().st_size // batch_size + 1
    return total


class ImportPipeline:
    """
    Import orchestrator

    Responsibilities:
    - Resolve formats for every input before sending anything
    - Run the chunker and the sender pool for each input in turn
    - Stop at the first fatal error and surface it
    - Record run statistics
    """

    def __init__(
        self,
        sender: DocumentSender,
        batch_size: Optional[int] = None,
        jobs: Optional[int] = None,
        channel_capacity: Optional[int] = None,
        csv_delimiter: str = ",",
        csv_flexible: bool = False,
        transform: Optional[RecordTransform] = None
    ):
        self.sender = sender
        self.batch_size = int(batch_size or settings.BATCH_SIZE)
        self.jobs = jobs or settings.JOBS
        self.channel_capacity = channel_capacity or settings.CHANNEL_CAPACITY
        self.csv_delimiter = csv_delimiter
        self.csv_flexible = csv_flexible
        self.transform = transform
        self.batches_produced = 0

        if self.jobs < 1:
            raise ValueError("jobs must be at least 1")

    async def run(self, paths: Sequence[Path], fmt: Optional[Format] = None) -> Dict[str, Any]:
        """
        Import every path in order.

        Args:
            paths: Input files, ``-`` for standard input
            fmt: Format override applied to every input

        Returns:
            Dictionary with run statistics:
            - status: always "success" (failures raise)
            - files: Number of inputs processed
            - batches_produced: Batches produced by the chunkers
            - batches_sent: Batches delivered
            - batches_skipped: Batches below the skip threshold
            - bytes_sent: Uncompressed bytes delivered

        Raises:
            InputError: If an input is missing or has no usable format
                or a transform is set for an input that is not NDJSON
            ParseError: If an input is malformed
            RetryExhaustedError: If a batch could not be delivered
        """
        resolved = [(path, Format.resolve(path, fmt)) for path in paths]
        if self.transform is not None:
            for path, file_format in resolved:
                if file_format is not Format.NDJSON:
                    raise UnsupportedFormatError(
                        f"Record transforms only apply to ndjson input, {path} is {file_format.value}",
                        context={"path": str(path), "format": file_format.value}
                    )

        for path, file_format in resolved:
            await self.run_file(path, file_format)

        result = {
            "status": "success",
            "files": len(resolved),
            "batches_produced": self.batches_produced,
            "batches_sent": self.sender.batches_sent,
            "batches_skipped": self.sender.batches_skipped,
            "bytes_sent": self.sender.bytes_sent,
        }
        logger.info(
            f"Import completed: {result['files']} files, "
            f"{result['batches_sent']} batches sent, {result['batches_skipped']} skipped"
        )
        return result

    async def run_file(self, path: Path, fmt: Format) -> int:
        """Import one input. Returns the number of batches produced."""
        logger.info(f"Importing {path} as {fmt.value} (batch size {self.batch_size} bytes, {self.jobs} jobs)")

        try:
            with open_input(path) as stream:
                if fmt is Format.JSON:
                    # A JSON document is not chunked, it is sent as batch 0
                    data = await asyncio.to_thread(stream.read)
                    self.batches_produced += 1
                    await self.sender.send(Batch(index=0, data=data, records=1), fmt)
                    return 1

                chunker = await asyncio.to_thread(
                    build_chunker,
                    fmt,
                    stream,
                    self.batch_size,
                    delimiter=self.csv_delimiter,
                    flexible=self.csv_flexible,
                    transform=self.transform
                )
                return await self._pump(chunker, fmt)

        except ImporterException as e:
            logger.error(f"Import of {path} failed: {e.message}", extra={"error_context": e.to_dict()})
            raise

        except Exception as e:
            logger.exception(f"Unexpected error while importing {path}")
            raise ImporterException(
                "Unexpected error in import pipeline",
                context={"path": str(path), "format": fmt.value},
                original_exception=e
            )

    async def _pump(self, chunker: Chunker, fmt: Format) -> int:
        channel: asyncio.Queue = asyncio.Queue(maxsize=self.channel_capacity)
        abort = asyncio.Event()
        errors: List[BaseException] = []
        produced = 0

        def fail(error: BaseException) -> None:
            if not errors:
                errors.append(error)
            abort.set()

        async def until_abort(awaitable: Awaitable) -> Tuple[bool, Any]:
            """Await ``awaitable`` unless the run aborts first."""
            task = asyncio.ensure_future(awaitable)
            stop = asyncio.ensure_future(abort.wait())
            done, _ = await asyncio.wait({task, stop}, return_when=asyncio.FIRST_COMPLETED)
            if task in done:
                stop.cancel()
                return True, task.result()
            task.cancel()
            await asyncio.wait({task})
            return False, None

        async def produce() -> None:
            nonlocal produced
            try:
                while not abort.is_set():
                    batch = await asyncio.to_thread(next, chunker, None)
                    if batch is None:
                        break
                    produced += 1
                    delivered, _ = await until_abort(channel.put(batch))
                    if not delivered:
                        return
            except Exception as e:
                fail(e)
                return

            for _ in range(self.jobs):
                delivered, _ = await until_abort(channel.put(_DONE))
                if not delivered:
                    return

        async def consume(worker: int) -> None:
            while not abort.is_set():
                received, batch = await until_abort(channel.get())
                if not received or batch is _DONE:
                    return
                try:
                    await self.sender.send(batch, fmt)
                except Exception as e:
                    logger.error(f"Worker {worker} stopping after batch {batch.index} failed")
                    fail(e)
                    return

        await asyncio.gather(produce(), *(consume(worker) for worker in range(self.jobs)))
        self.batches_produced += produced

        if errors:
            raise errors[0]

        logger.info(f"Produced {produced} batches")
        return produced
