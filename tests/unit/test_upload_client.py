import json
from collections.abc import Callable

import httpx
import pytest

from fakes import T0, FakeClock
from widget_factory.upload.client import UploadClient
from widget_factory.upload.exceptions import STAGE_PRESIGN, STAGE_PUT, UploadError
from widget_factory.upload.models import FileBlob

PRESIGN_URL = "https://backend.test/functions/v1/presign"


def _blob(name: str, content: bytes = b"data") -> FileBlob:
    return FileBlob(name=name, mime_type="application/pdf", content=content)


def _make_client(handler: Callable[[httpx.Request], httpx.Response]) -> UploadClient:
    return UploadClient(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        presign_endpoint=PRESIGN_URL,
        anon_key="anon-key",
        clock=FakeClock(),
    )


class _Storage:
    """Presign + PUT handler that can fail on a chosen file."""

    def __init__(
        self, fail_presign_for: str | None = None, fail_put_for: str | None = None
    ) -> None:
        self.fail_presign_for = fail_presign_for
        self.fail_put_for = fail_put_for
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            body = json.loads(request.content)
            if body["fileName"] == self.fail_presign_for:
                return httpx.Response(403, text="quota exceeded")
            return httpx.Response(
                200,
                json={
                    "uploadUrl": f"https://storage.test/put/{body['fileName']}",
                    "key": f"uploads/{body['anon_id']}/{T0}_{body['fileName']}",
                },
            )
        if request.url.path.endswith(f"/{self.fail_put_for}"):
            return httpx.Response(500)
        return httpx.Response(200)

    @property
    def put_names(self) -> list[str]:
        return [r.url.path.rsplit("/", 1)[-1] for r in self.requests if r.method == "PUT"]


class TestUploadSuccess:
    @pytest.mark.asyncio
    async def test_returns_uploaded_files_in_order(self) -> None:
        storage = _Storage()
        client = _make_client(storage)

        uploaded = await client.upload([_blob("a.pdf"), _blob("b.pdf", b"bb")], "anon_1", "w1")

        assert [u.original_name for u in uploaded] == ["a.pdf", "b.pdf"]
        assert uploaded[0].storage_key == f"uploads/anon_1/{T0}_a.pdf"
        assert uploaded[1].size_bytes == 2
        assert uploaded[0].uploaded_at_ms == T0

    @pytest.mark.asyncio
    async def test_presign_request_body_and_auth(self) -> None:
        storage = _Storage()
        client = _make_client(storage)

        await client.upload([_blob("a.pdf", b"12345")], "anon_1", "w1")

        presign = storage.requests[0]
        assert str(presign.url) == PRESIGN_URL
        assert presign.headers["Authorization"] == "Bearer anon-key"
        assert json.loads(presign.content) == {
            "anon_id": "anon_1",
            "widget_id": "w1",
            "mime": "application/pdf",
            "size": 5,
            "fileName": "a.pdf",
        }

    @pytest.mark.asyncio
    async def test_put_sends_body_with_content_type(self) -> None:
        storage = _Storage()
        client = _make_client(storage)

        await client.upload([_blob("a.pdf", b"%PDF")], "anon_1", "w1")

        put = storage.requests[1]
        assert put.method == "PUT"
        assert put.headers["Content-Type"] == "application/pdf"
        assert put.content == b"%PDF"


class TestUploadFailure:
    @pytest.mark.asyncio
    async def test_presign_failure_aborts_remaining_files(self) -> None:
        storage = _Storage(fail_presign_for="b.pdf")
        client = _make_client(storage)

        with pytest.raises(UploadError) as exc_info:
            await client.upload(
                [_blob("a.pdf"), _blob("b.pdf"), _blob("c.pdf")], "anon_1", "w1"
            )

        assert exc_info.value.stage == STAGE_PRESIGN
        assert exc_info.value.message == "Presign failed: 403 quota exceeded"
        assert storage.put_names == ["a.pdf"]
        assert len(storage.requests) == 3

    @pytest.mark.asyncio
    async def test_put_failure_aborts_remaining_files(self) -> None:
        storage = _Storage(fail_put_for="a.pdf")
        client = _make_client(storage)

        with pytest.raises(UploadError, match="Upload failed") as exc_info:
            await client.upload([_blob("a.pdf"), _blob("b.pdf")], "anon_1", "w1")

        assert exc_info.value.stage == STAGE_PUT
        assert len(storage.requests) == 2

    @pytest.mark.asyncio
    async def test_presign_without_key_fails(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={"uploadUrl": "x"}))

        with pytest.raises(UploadError, match="missing key"):
            await client.upload([_blob("a.pdf")], "anon_1", "w1")

    @pytest.mark.asyncio
    async def test_presign_non_json_fails(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(UploadError, match="invalid JSON"):
            await client.upload([_blob("a.pdf")], "anon_1", "w1")

    @pytest.mark.asyncio
    async def test_transport_error_maps_to_stage(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _make_client(handler)

        with pytest.raises(UploadError) as exc_info:
            await client.upload([_blob("a.pdf")], "anon_1", "w1")

        assert exc_info.value.stage == STAGE_PRESIGN

    @pytest.mark.asyncio
    async def test_malformed_upload_url_maps_to_put_stage(self) -> None:
        client = _make_client(
            lambda request: httpx.Response(
                200, json={"uploadUrl": "http://[::1", "key": "uploads/anon_1/1_a.pdf"}
            )
        )

        with pytest.raises(UploadError) as exc_info:
            await client.upload([_blob("a.pdf")], "anon_1", "w1")

        assert exc_info.value.stage == STAGE_PUT
        assert exc_info.value.message.startswith("Upload failed")
