"""
HTTP document sender with retry and exponential backoff.

This module delivers one Batch at a time to the documents endpoint of an
index:
- Gzip compression of the batch body
- POST (add or replace) or PUT (add or update) framing
- Bearer token authentication
- Bounded exponential backoff with jitter on any failure
- Skipping of already delivered batches when resuming a run
"""

import asyncio
import enum
import gzip
from typing import Awaitable, Callable, Dict, Optional

import httpx

from core.exceptions import RetryExhaustedError, ServerError, TransportError
from importer.backoff import ExponentialBackoff
from importer.chunkers import Batch
from importer.formats import Format
from importer.progress import LoggingProgress, ProgressSink
import logging

logger = logging.getLogger(__name__)

# Response bodies are truncated in log lines
_MAX_BODY_IN_MESSAGE = 500


class UploadOperation(str, enum.Enum):
    """How documents already present in the index are treated."""

    ADD_OR_REPLACE = "add-or-replace"
    ADD_OR_UPDATE = "add-or-update"

    @property
    def method(self) -> str:
        return "POST" if self is UploadOperation.ADD_OR_REPLACE else "PUT"


class DocumentSender:
    """
    Deliver batches to ``{url}/indexes/{index}/documents``.

    One sender is shared by all workers of a run; it holds no per-batch
    state. ``send`` either delivers the batch, skips it, or raises
    RetryExhaustedError, which must abort the run.

    Attributes:
        skip_batches: Batches with a lower index are accounted but not sent
        backoff: Retry schedule (attempt count and delays)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        index: str,
        primary_key: Optional[str] = None,
        api_key: Optional[str] = None,
        operation: UploadOperation = UploadOperation.ADD_OR_REPLACE,
        csv_delimiter: Optional[str] = None,
        skip_batches: int = 0,
        backoff: Optional[ExponentialBackoff] = None,
        progress: Optional[ProgressSink] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.client = client
        self.endpoint = f"{url.rstrip('/')}/indexes/{index}/documents"
        self.primary_key = primary_key
        self.api_key = api_key
        self.operation = operation
        self.csv_delimiter = csv_delimiter
        self.skip_batches = skip_batches
        self.backoff = backoff or ExponentialBackoff()
        self.progress = progress or LoggingProgress()
        self._sleep = sleep or asyncio.sleep

        self.batches_sent = 0
        self.batches_skipped = 0
        self.bytes_sent = 0

    def _params(self, fmt: Format) -> Dict[str, str]:
        params = {}
        if self.primary_key:
            params["primaryKey"] = self.primary_key
        if fmt is Format.CSV and self.csv_delimiter and self.csv_delimiter != ",":
            params["csvDelimiter"] = self.csv_delimiter
        return params

    def _headers(self, fmt: Format) -> Dict[str, str]:
        headers = {
            "Content-Type": fmt.mime_type,
            "Content-Encoding": "gzip",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(self, fmt: Format, body: bytes) -> httpx.Response:
        """
        Issue one request.

        Raises:
            TransportError: Connection failure or timeout
            ServerError: Any status outside 200-299
        """
        try:
            response = await self.client.request(
                self.operation.method,
                self.endpoint,
                params=self._params(fmt),
                headers=self._headers(fmt),
                content=body
            )
        except httpx.TransportError as e:
            raise TransportError(
                f"{type(e).__name__}: {e}",
                context={"url": self.endpoint},
                original_exception=e
            )

        if not response.is_success:
            text = response.text
            raise ServerError(
                f"HTTP {response.status_code}: {text[:_MAX_BODY_IN_MESSAGE]}",
                status_code=response.status_code,
                body=text,
                context={"url": self.endpoint}
            )

        return response

    async def send(self, batch: Batch, fmt: Format) -> bool:
        """
        Deliver one batch.

        Args:
            batch: Batch to deliver
            fmt: Format of the batch, selects the content type

        Returns:
            True if the batch was sent, False if it was skipped

        Raises:
            RetryExhaustedError: If every attempt failed
        """
        if batch.index < self.skip_batches:
            logger.debug(f"Skipping batch {batch.index} (below {self.skip_batches})")
            self.batches_skipped += 1
            self.progress.advance(1)
            return False

        body = await asyncio.to_thread(gzip.compress, batch.data)
        delays = self.backoff.delays()
        attempt = 0

        while True:
            attempt += 1
            try:
                await self._request(fmt, body)
                break
            except (TransportError, ServerError) as e:
                message = f"Attempt #{attempt} for batch {batch.index} failed: {e.message}"
                logger.warning(message)
                self.progress.log(message)

                delay = next(delays, None)
                if delay is None:
                    raise RetryExhaustedError(
                        f"Batch {batch.index} could not be delivered after {attempt} attempts",
                        context={
                            "batch_index": batch.index,
                            "attempts": attempt,
                            "url": self.endpoint,
                        },
                        original_exception=e
                    )
                await self._sleep(delay)

        logger.debug(
            f"Batch {batch.index} delivered ({batch.records} records, "
            f"{batch.size} bytes, {len(body)} compressed)"
        )
        self.batches_sent += 1
        self.bytes_sent += batch.size
        self.progress.advance(1)
        return True
