from collections.abc import Sequence
from typing import Any

import httpx

from widget_factory.logging.logger import Log
from widget_factory.upload.exceptions import STAGE_PRESIGN, STAGE_PUT, UploadError
from widget_factory.upload.models import FileBlob, UploadedFile
from widget_factory.worker.scheduler import Clock, epoch_ms


class UploadClient:
    """Uploads files through the presign + PUT handshake, one file at a time."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        presign_endpoint: str,
        anon_key: str,
        clock: Clock = epoch_ms,
    ) -> None:
        self._http = http_client
        self._presign_endpoint = presign_endpoint
        self._anon_key = anon_key
        self._clock = clock

    async def upload(
        self,
        files: Sequence[FileBlob],
        user_id: str,
        widget_id: str,
    ) -> list[UploadedFile]:
        """Upload every file in order, stopping at the first failure.

        Raises:
            UploadError: for the first file whose presign or PUT fails. Later
                files are never requested.
        """
        uploaded: list[UploadedFile] = []
        for blob in files:
            upload_url, key = await self._presign(blob, user_id, widget_id)
            await self._put(blob, upload_url)
            uploaded.append(
                UploadedFile(
                    storage_key=key,
                    original_name=blob.name,
                    mime_type=blob.mime_type,
                    size_bytes=blob.size,
                    uploaded_at_ms=self._clock(),
                )
            )
            Log.info(f"Uploaded {blob.name}", storage_key=key, size_bytes=blob.size)
        return uploaded

    async def _presign(
        self, blob: FileBlob, user_id: str, widget_id: str
    ) -> tuple[str, str]:
        body = {
            "anon_id": user_id,
            "widget_id": widget_id,
            "mime": blob.mime_type,
            "size": blob.size,
            "fileName": blob.name,
        }
        Log.debug(f"Requesting presigned URL for {blob.name}", widget_id=widget_id)
        try:
            response = await self._http.post(
                self._presign_endpoint,
                json=body,
                headers={"Authorization": f"Bearer {self._anon_key}"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UploadError(STAGE_PRESIGN, f"Presign failed: {exc}") from exc

        if not response.is_success:
            Log.error(
                f"Presign rejected {blob.name}: {response.status_code} {response.text}"
            )
            raise UploadError(
                STAGE_PRESIGN,
                f"Presign failed: {response.status_code} {response.text}",
            )
        return self._parse_presign(response)

    @staticmethod
    def _parse_presign(response: httpx.Response) -> tuple[str, str]:
        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise UploadError(STAGE_PRESIGN, "Presign failed: invalid JSON response") from exc
        if not isinstance(payload, dict):
            raise UploadError(STAGE_PRESIGN, "Presign failed: response must be an object")
        upload_url = payload.get("uploadUrl")
        key = payload.get("key")
        if not isinstance(upload_url, str) or not upload_url:
            raise UploadError(STAGE_PRESIGN, "Presign failed: missing uploadUrl")
        if not isinstance(key, str) or not key:
            raise UploadError(STAGE_PRESIGN, "Presign failed: missing key")
        return upload_url, key

    async def _put(self, blob: FileBlob, upload_url: str) -> None:
        try:
            response = await self._http.put(
                upload_url,
                content=blob.content,
                headers={"Content-Type": blob.mime_type},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UploadError(STAGE_PUT, f"Upload failed: {exc}") from exc
        if not response.is_success:
            Log.error(f"Upload of {blob.name} failed with status {response.status_code}")
            raise UploadError(STAGE_PUT, "Upload failed")
