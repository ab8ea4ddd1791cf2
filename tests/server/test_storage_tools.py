"""Tests for the storage tools through the registry."""

import base64
import json

import httpx
import pytest

from supabase_mcp.core.config import STORAGE_TOOLS, Settings
from supabase_mcp.core.storage import StorageClient
from supabase_mcp.server.registry import build_registry
from tests.fakes import RecordingHandler


@pytest.fixture
def make_call(storage_settings):
    """Call a storage tool against a recorded transport."""

    async def call(name, arguments, *responses):
        handler = RecordingHandler(*(responses or (httpx.Response(200, json={}),)))
        storage = StorageClient(storage_settings, transport=handler.transport())
        registry = build_registry(
            Settings(storage=storage_settings, enabled_tools=STORAGE_TOOLS),
            storage=storage,
        )
        [block] = await registry.call(name, arguments)
        return json.loads(block.text), handler

    return call


@pytest.mark.unit
class TestUploadFile:
    async def test_base64_content(self, make_call):
        payload, handler = await make_call(
            "upload-file",
            {
                "bucketName": "media",
                "filePath": "a.txt",
                "fileContent": base64.b64encode(b"hello").decode(),
                "contentType": "text/plain",
            },
            httpx.Response(200, json={"Key": "media/a.txt"}),
        )

        assert handler.last.content == b"hello"
        assert payload == {
            "success": True,
            "bucketName": "media",
            "filePath": "a.txt",
            "size": 5,
            "contentType": "text/plain",
            "Key": "media/a.txt",
        }

    async def test_local_path(self, make_call, temp_dir):
        source = temp_dir / "photo.png"
        source.write_bytes(b"\x89PNG")
        payload, handler = await make_call(
            "upload-file",
            {"bucketName": "media", "filePath": "p.png", "localPath": str(source)},
        )

        assert handler.last.content == b"\x89PNG"
        assert handler.last.headers["content-type"] == "image/png"
        assert payload["size"] == 4

    async def test_both_sources_rejected_without_request(self, make_call, temp_dir):
        payload, handler = await make_call(
            "upload-file",
            {
                "bucketName": "media",
                "filePath": "a.txt",
                "fileContent": "aGk=",
                "localPath": str(temp_dir / "a.txt"),
            },
        )

        assert payload["error"] is True
        assert "Provide exactly one of fileContent or localPath" in payload["message"]
        assert handler.requests == []

    async def test_neither_source_rejected(self, make_call):
        payload, handler = await make_call(
            "upload-file", {"bucketName": "media", "filePath": "a.txt"}
        )
        assert "Provide exactly one of fileContent or localPath" in payload["message"]
        assert handler.requests == []

    async def test_unreadable_local_file(self, make_call, temp_dir):
        payload, handler = await make_call(
            "upload-file",
            {
                "bucketName": "media",
                "filePath": "a.txt",
                "localPath": str(temp_dir / "missing.txt"),
            },
        )
        assert payload["message"].startswith("Could not read local file")
        assert handler.requests == []

    async def test_invalid_base64(self, make_call):
        payload, handler = await make_call(
            "upload-file",
            {"bucketName": "media", "filePath": "a.txt", "fileContent": "not base64!"},
        )
        assert payload["message"].startswith("fileContent is not valid base64")
        assert handler.requests == []


@pytest.mark.unit
class TestDownloadFile:
    async def test_base64_content(self, make_call):
        payload, _ = await make_call(
            "download-file",
            {"bucketName": "media", "filePath": "a.txt"},
            httpx.Response(200, content=b"hi", headers={"content-type": "text/plain"}),
        )
        assert payload["content"] == base64.b64encode(b"hi").decode()
        assert payload["size"] == 2

    async def test_binary_placeholder(self, make_call):
        payload, _ = await make_call(
            "download-file",
            {"bucketName": "media", "filePath": "a.bin", "asBase64": False},
            httpx.Response(200, content=b"\x00\x01"),
        )
        assert payload["content"] == "[Binary data]"

    async def test_save_path(self, make_call, temp_dir):
        target = temp_dir / "out" / "a.txt"
        payload, _ = await make_call(
            "download-file",
            {"bucketName": "media", "filePath": "a.txt", "savePath": str(target)},
            httpx.Response(200, content=b"saved"),
        )

        assert target.read_bytes() == b"saved"
        assert payload["savedTo"] == str(target)
        assert "content" not in payload

    async def test_not_found_carries_status(self, make_call):
        payload, _ = await make_call(
            "download-file",
            {"bucketName": "media", "filePath": "missing.txt"},
            httpx.Response(404, json={"statusCode": "404", "message": "Object not found"}),
        )
        assert payload == {"error": True, "message": "Object not found", "status": 404}


@pytest.mark.unit
class TestObjectTools:
    async def test_delete(self, make_call):
        payload, handler = await make_call(
            "delete-file", {"bucketName": "media", "filePath": "a.txt"}
        )
        assert handler.last.method == "DELETE"
        assert payload == {"success": True, "message": "File deleted: media/a.txt"}

    async def test_list_files(self, make_call):
        payload, handler = await make_call(
            "list-files",
            {"bucketName": "media", "path": "docs/", "limit": 2},
            httpx.Response(200, json=[{"name": "a.txt"}, {"name": "b.txt"}]),
        )
        assert json.loads(handler.last.content)["limit"] == 2
        assert payload["count"] == 2
        assert payload["path"] == "docs/"

    async def test_list_files_rejects_zero_limit(self, make_call):
        payload, handler = await make_call("list-files", {"bucketName": "media", "limit": 0})
        assert payload["message"].startswith("Invalid arguments for list-files")
        assert handler.requests == []

    async def test_move(self, make_call):
        payload, handler = await make_call(
            "move-file",
            {"fromBucket": "media", "fromPath": "a.txt", "toBucket": "old", "toPath": "a.txt"},
            httpx.Response(200, json={"message": "Successfully moved"}),
        )
        assert handler.last.url.path == "/storage/v1/object/move"
        assert payload["success"] is True
        assert payload["message"] == "Successfully moved"

    async def test_copy(self, make_call):
        payload, _ = await make_call(
            "copy-file",
            {"fromBucket": "media", "fromPath": "a.txt", "toBucket": "media", "toPath": "b.txt"},
            httpx.Response(200, json={"Key": "media/b.txt"}),
        )
        assert payload["message"] == "File copied from media/a.txt to media/b.txt"
        assert payload["Key"] == "media/b.txt"

    async def test_signed_url(self, make_call):
        payload, _ = await make_call(
            "generate-signed-url",
            {"bucketName": "media", "filePath": "a.txt", "expiresIn": 60},
            httpx.Response(200, json={"signedURL": "/object/sign/media/a.txt?token=t"}),
        )
        assert payload["signedURL"] == (
            "https://proj.supabase.co/storage/v1/object/sign/media/a.txt?token=t"
        )
        assert payload["operation"] == "download"
        assert payload["expiresIn"] == 60

    async def test_signed_url_rejects_unknown_operation(self, make_call):
        payload, handler = await make_call(
            "generate-signed-url",
            {"bucketName": "media", "filePath": "a.txt", "operation": "delete"},
        )
        assert payload["error"] is True
        assert handler.requests == []

    async def test_file_info(self, make_call):
        payload, handler = await make_call(
            "get-file-info",
            {"bucketName": "media", "filePath": "a.txt", "authenticated": False},
            httpx.Response(200, json={"size": 5}),
        )
        assert handler.last.url.path == "/storage/v1/object/info/media/a.txt"
        assert payload == {"success": True, "fileInfo": {"size": 5}}


@pytest.mark.unit
class TestBucketTools:
    async def test_create(self, make_call):
        payload, handler = await make_call(
            "create-bucket",
            {"name": "media", "isPublic": True},
            httpx.Response(200, json={"name": "media"}),
        )
        assert json.loads(handler.last.content)["public"] is True
        assert payload == {"success": True, "bucket": {"name": "media"}}

    async def test_create_conflict(self, make_call):
        payload, _ = await make_call(
            "create-bucket",
            {"name": "media"},
            httpx.Response(409, json={"error": "Duplicate", "message": "The resource already exists"}),
        )
        assert payload == {
            "error": True,
            "message": "The resource already exists",
            "status": 409,
        }

    async def test_list(self, make_call):
        payload, _ = await make_call(
            "list-buckets", {}, httpx.Response(200, json=[{"name": "media"}])
        )
        assert payload == {"success": True, "buckets": [{"name": "media"}], "count": 1}

    async def test_empty(self, make_call):
        payload, handler = await make_call("empty-bucket", {"bucketName": "media"})
        assert handler.last.url.path == "/storage/v1/bucket/media/empty"
        assert payload["message"] == "Bucket media has been emptied"

    async def test_delete(self, make_call):
        payload, _ = await make_call("delete-bucket", {"bucketName": "media"})
        assert payload == {"success": True, "message": "Bucket deleted: media"}
