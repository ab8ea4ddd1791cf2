"""Supabase Storage HTTP client.

One method per storage primitive. Each call is a single HTTPS request
with a bearer credential; non-2xx responses and transport failures are
raised as StorageError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
import sentry_sdk
import structlog

from supabase_mcp.core.exceptions import StorageError

if TYPE_CHECKING:
    from supabase_mcp.core.config import StorageSettings


@dataclass(frozen=True)
class DownloadedFile:
    content: bytes
    content_type: str
    size: int


def _object_path(bucket: str, path: str) -> str:
    return f"{bucket}/{path.lstrip('/')}"


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return response.text or fallback


class StorageClient:
    """Async client for the ``/storage/v1`` API."""

    def __init__(
        self,
        settings: StorageSettings,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return f"{self.settings.url}/storage/v1"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        fallback: str,
        json: Any = None,
        content: bytes | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        log = structlog.get_logger()
        request_headers = {"Authorization": f"Bearer {self.settings.service_key}"}
        if headers:
            request_headers.update(headers)

        log.debug("storage request", method=method, path=path)
        with sentry_sdk.start_span(op="http.client", description=f"{method} {path}") as span:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as http:
                try:
                    response = await http.request(
                        method,
                        f"/{path}",
                        json=json,
                        content=content,
                        params=params,
                        headers=request_headers,
                    )
                except httpx.HTTPError as e:
                    span.set_status("unavailable")
                    log.error("storage request failed", path=path, error=str(e))
                    raise StorageError(f"{fallback}: {e}") from e

            span.set_data("status_code", response.status_code)
            log.debug("storage response", path=path, status=response.status_code)
            if response.is_error:
                message = _error_message(response, fallback)
                raise StorageError(message, status=response.status_code)
            return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"message": response.text}

    # -- Objects --

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str | None = None,
        cache_control: str | None = None,
        upsert: bool = False,
    ) -> dict[str, Any]:
        headers = {"Content-Type": content_type or "application/octet-stream"}
        if cache_control:
            headers["Cache-Control"] = cache_control
        response = await self._request(
            "PUT" if upsert else "POST",
            f"object/{_object_path(bucket, path)}",
            content=data,
            headers=headers,
            fallback="Upload failed",
        )
        return self._json(response)

    async def download(self, bucket: str, path: str) -> DownloadedFile:
        response = await self._request(
            "GET", f"object/{_object_path(bucket, path)}", fallback="Download failed"
        )
        content = response.content
        length = response.headers.get("content-length")
        return DownloadedFile(
            content=content,
            content_type=response.headers.get(
                "content-type", "application/octet-stream"
            ),
            size=int(length) if length and length.isdigit() else len(content),
        )

    async def delete(self, bucket: str, path: str) -> dict[str, Any]:
        response = await self._request(
            "DELETE", f"object/{_object_path(bucket, path)}", fallback="Delete failed"
        )
        return self._json(response)

    async def list_files(
        self, bucket: str, prefix: str = "", *, limit: int = 100, offset: int = 0
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "POST",
            f"object/list/{bucket}",
            json={"prefix": prefix, "limit": limit, "offset": offset},
            fallback="List failed",
        )
        return self._json(response)

    async def move(
        self, from_bucket: str, from_path: str, to_bucket: str, to_path: str
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "object/move",
            json={
                "bucketId": from_bucket,
                "sourceKey": from_path,
                "destinationKey": to_path,
                "destinationBucket": to_bucket,
            },
            fallback="Move failed",
        )
        return self._json(response)

    async def copy(
        self, from_bucket: str, from_path: str, to_bucket: str, to_path: str
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "object/copy",
            json={
                "bucketId": from_bucket,
                "sourceKey": from_path,
                "destinationKey": to_path,
                "destinationBucket": to_bucket,
            },
            fallback="Copy failed",
        )
        return self._json(response)

    async def signed_url(
        self,
        bucket: str,
        path: str,
        *,
        expires_in: int = 3600,
        upload: bool = False,
    ) -> dict[str, Any]:
        """Request a signed URL; relative URLs in the reply are made absolute."""
        endpoint = "object/upload/sign" if upload else "object/sign"
        response = await self._request(
            "POST",
            f"{endpoint}/{_object_path(bucket, path)}",
            json={"expiresIn": expires_in},
            fallback="Signed URL generation failed",
        )
        result = self._json(response)
        url = result.get("signedURL") or result.get("signedUrl") or result.get("url")
        if url and url.startswith("/"):
            url = f"{self.base_url}{url}"
        result["signedURL"] = url
        return result

    async def file_info(
        self, bucket: str, path: str, *, authenticated: bool = True
    ) -> dict[str, Any]:
        endpoint = "object/info/authenticated" if authenticated else "object/info"
        response = await self._request(
            "GET",
            f"{endpoint}/{_object_path(bucket, path)}",
            fallback="File info retrieval failed",
        )
        return self._json(response)

    # -- Buckets --

    async def list_buckets(
        self, *, limit: int = 100, offset: int = 0
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "GET",
            "bucket",
            params={"limit": limit, "offset": offset},
            fallback="List buckets failed",
        )
        return self._json(response)

    async def create_bucket(
        self,
        name: str,
        *,
        public: bool = False,
        file_size_limit: int | None = None,
        allowed_mime_types: list[str] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"id": name, "name": name, "public": public}
        if file_size_limit:
            body["file_size_limit"] = file_size_limit
        if allowed_mime_types:
            body["allowed_mime_types"] = allowed_mime_types
        response = await self._request(
            "POST", "bucket", json=body, fallback="Bucket creation failed"
        )
        return self._json(response)

    async def delete_bucket(self, name: str) -> dict[str, Any]:
        response = await self._request(
            "DELETE", f"bucket/{name}", fallback="Bucket deletion failed"
        )
        return self._json(response)

    async def empty_bucket(self, name: str) -> dict[str, Any]:
        response = await self._request(
            "POST", f"bucket/{name}/empty", fallback="Empty bucket failed"
        )
        return self._json(response)
