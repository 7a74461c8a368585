"""
Unit tests for the document sender
"""

import gzip

import httpx
import pytest

from core.exceptions import RetryExhaustedError
from importer.backoff import ExponentialBackoff
from importer.chunkers import Batch
from importer.formats import Format
from importer.sender import DocumentSender, UploadOperation


def make_sender(client, **kwargs):
    kwargs.setdefault("url", "http://search.local/")
    kwargs.setdefault("index", "movies")
    return DocumentSender(client, **kwargs)


BATCH = Batch(index=0, data=b'{"id":1}\n{"id":2}\n', records=2)


class TestDocumentSender:
    """Test request framing, retries and skipping"""

    @pytest.mark.asyncio
    async def test_send_success(self, endpoint, progress, sleeper):
        async with httpx.AsyncClient(transport=endpoint.transport) as client:
            sender = make_sender(
                client, primary_key="id", api_key="secret", progress=progress, sleep=sleeper
            )

            sent = await sender.send(BATCH, Format.NDJSON)

        assert sent is True
        assert len(endpoint.requests) == 1
        request = endpoint.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/indexes/movies/documents"
        assert request.url.params["primaryKey"] == "id"
        assert request.headers["content-type"] == "application/x-ndjson"
        assert request.headers["content-encoding"] == "gzip"
        assert request.headers["authorization"] == "Bearer secret"
        assert request.body == BATCH.data
        assert progress.count == 1
        assert sleeper.delays == []
        assert sender.batches_sent == 1
        assert sender.bytes_sent == BATCH.size

    @pytest.mark.asyncio
    async def test_no_authorization_without_key(self, endpoint, progress):
        async with httpx.AsyncClient(transport=endpoint.transport) as client:
            await make_sender(client, progress=progress).send(BATCH, Format.JSON)

        request = endpoint.requests[0]
        assert "authorization" not in request.headers
        assert "primaryKey" not in request.url.params
        assert request.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_add_or_update_uses_put(self, endpoint, progress):
        async with httpx.AsyncClient(transport=endpoint.transport) as client:
            sender = make_sender(client, operation=UploadOperation.ADD_OR_UPDATE, progress=progress)
            await sender.send(BATCH, Format.NDJSON)

        assert endpoint.requests[0].method == "PUT"

    @pytest.mark.asyncio
    async def test_csv_delimiter_forwarded(self, endpoint, progress):
        batch = Batch(index=0, data=b"id;name\n1;a\n", records=1)

        async with httpx.AsyncClient(transport=endpoint.transport) as client:
            await make_sender(client, csv_delimiter=";", progress=progress).send(batch, Format.CSV)

        request = endpoint.requests[0]
        assert request.url.params["csvDelimiter"] == ";"
        assert request.headers["content-type"] == "text/csv"

    @pytest.mark.asyncio
    async def test_skipped_batches_not_sent(self, endpoint, progress):
        async with httpx.AsyncClient(transport=endpoint.transport) as client:
            sender = make_sender(client, skip_batches=2, progress=progress)
            results = [
                await sender.send(Batch(index=i, data=b'{"i":1}\n', records=1), Format.NDJSON)
                for i in range(4)
            ]

        assert results == [False, False, True, True]
        assert len(endpoint.requests) == 2
        assert progress.count == 4
        assert sender.batches_skipped == 2

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, endpoint, progress, sleeper, fast_backoff):
        endpoint.script = [500, httpx.ConnectError("connection refused"), 202]

        async with httpx.AsyncClient(transport=endpoint.transport) as client:
            sender = make_sender(client, backoff=fast_backoff, progress=progress, sleep=sleeper)
            sent = await sender.send(BATCH, Format.NDJSON)

        assert sent is True
        assert len(endpoint.requests) == 3
        assert sleeper.delays == [0.1, 0.2]
        assert progress.count == 1
        assert progress.messages[0].startswith("Attempt #1")
        assert "simulated failure 500" in progress.messages[0]
        assert "ConnectError" in progress.messages[1]

    @pytest.mark.asyncio
    async def test_always_failing_exhausts_attempts(self, endpoint, progress, sleeper):
        endpoint.default_status = 500
        backoff = ExponentialBackoff(max_attempts=20, min_delay=0.1, max_delay=10.0, jitter=0.3)

        async with httpx.AsyncClient(transport=endpoint.transport) as client:
            sender = make_sender(client, backoff=backoff, progress=progress, sleep=sleeper)
            with pytest.raises(RetryExhaustedError) as exc_info:
                await sender.send(BATCH, Format.NDJSON)

        assert len(endpoint.requests) == 20
        assert len(sleeper.delays) == 19
        assert exc_info.value.context["attempts"] == 20
        assert exc_info.value.original_exception.status_code == 500
        uncapped = [d for d in sleeper.delays if d < 10.0]
        assert uncapped == sorted(uncapped)
        assert max(sleeper.delays) == 10.0
        assert progress.count == 0
        assert len(progress.messages) == 20

    @pytest.mark.asyncio
    async def test_request_body_is_gzip(self, progress):
        captured = []

        def handler(request):
            captured.append(request.content)
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await make_sender(client, progress=progress).send(BATCH, Format.NDJSON)

        assert captured[0][:2] == b"\x1f\x8b"
        assert gzip.decompress(captured[0]) == BATCH.data


def test_upload_operation_methods():
    assert UploadOperation.ADD_OR_REPLACE.method == "POST"
    assert UploadOperation.ADD_OR_UPDATE.method == "PUT"
