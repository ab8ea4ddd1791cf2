"""Storage tools: one handler per storage API call."""

from __future__ import annotations

import base64
import binascii
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import Field, model_validator

from supabase_mcp.core.exceptions import InputError
from supabase_mcp.server.registry import ToolArgs, ToolSpec
from supabase_mcp.server.response import success_response

if TYPE_CHECKING:
    from mcp.types import TextContent

    from supabase_mcp.core.storage import StorageClient

_BUCKET = "The name of the storage bucket"
_FILE_PATH = "The file path within the bucket"


class FileArgs(ToolArgs):
    bucket_name: str = Field(description=_BUCKET)
    file_path: str = Field(description=_FILE_PATH)


class UploadFileArgs(FileArgs):
    file_content: str | None = Field(default=None, description="Base64 encoded file content")
    local_path: str | None = Field(
        default=None, description="Path of a local file to upload instead of fileContent"
    )
    content_type: str | None = Field(
        default=None, description="MIME type of the file (e.g., 'image/png')"
    )
    cache_control: str | None = Field(default=None, description="Cache control header")
    upsert: bool = Field(default=False, description="Whether to overwrite existing file")

    @model_validator(mode="after")
    def check_single_source(self) -> UploadFileArgs:
        if (self.file_content is None) == (self.local_path is None):
            msg = "Provide exactly one of fileContent or localPath"
            raise ValueError(msg)
        return self


class DownloadFileArgs(FileArgs):
    as_base64: bool = Field(default=True, description="Return file content as base64")
    save_path: str | None = Field(
        default=None, description="Write the file to this local path instead of returning it"
    )


class ListFilesArgs(ToolArgs):
    bucket_name: str = Field(description=_BUCKET)
    path: str = Field(default="", description="The folder path to list files from")
    limit: int = Field(default=100, ge=1, description="Maximum number of files to return")
    offset: int = Field(default=0, ge=0, description="Number of files to skip")


class TransferArgs(ToolArgs):
    from_bucket: str = Field(description="The source bucket name")
    from_path: str = Field(description="The source file path")
    to_bucket: str = Field(description="The destination bucket name")
    to_path: str = Field(description="The destination file path")


class CreateBucketArgs(ToolArgs):
    name: str = Field(description="The name of the bucket to create")
    is_public: bool = Field(default=False, description="Whether the bucket should be public")
    file_size_limit: int | None = Field(
        default=None, ge=0, description="Maximum file size allowed in bytes"
    )
    allowed_mime_types: list[str] | None = Field(
        default=None, description="List of allowed MIME types"
    )


class BucketArgs(ToolArgs):
    bucket_name: str = Field(description=_BUCKET)


class ListBucketsArgs(ToolArgs):
    limit: int = Field(default=100, ge=1, description="Maximum number of buckets to return")
    offset: int = Field(default=0, ge=0, description="Number of buckets to skip")


class SignedUrlArgs(FileArgs):
    expires_in: int = Field(default=3600, ge=1, description="URL expiration time in seconds")
    operation: Literal["download", "upload"] = Field(
        default="download", description="Type of signed URL"
    )


class FileInfoArgs(FileArgs):
    authenticated: bool = Field(
        default=True, description="Whether to use authenticated endpoint"
    )


def _read_local_file(local_path: str) -> bytes:
    path = Path(local_path).expanduser()
    try:
        return path.read_bytes()
    except OSError as e:
        msg = f"Could not read local file '{local_path}': {e.strerror or e}"
        raise InputError(msg) from e


def _decode_content(content: str) -> bytes:
    try:
        return base64.b64decode(content)
    except (binascii.Error, ValueError) as e:
        msg = f"fileContent is not valid base64: {e}"
        raise InputError(msg) from e


class StorageTools:
    """Handlers for every storage tool, bound to one storage client.

    StorageError and InputError raised here are turned into error
    payloads, with the HTTP status when there is one, by the registry.
    """

    def __init__(self, storage: StorageClient) -> None:
        self.storage = storage

    async def upload_file(self, args: UploadFileArgs) -> list[TextContent]:
        content_type = args.content_type
        if args.local_path is not None:
            data = _read_local_file(args.local_path)
            content_type = content_type or mimetypes.guess_type(args.local_path)[0]
        else:
            data = _decode_content(args.file_content or "")

        result = await self.storage.upload(
            args.bucket_name,
            args.file_path,
            data,
            content_type=content_type,
            cache_control=args.cache_control,
            upsert=args.upsert,
        )
        return success_response(
            {
                "success": True,
                "bucketName": args.bucket_name,
                "filePath": args.file_path,
                "size": len(data),
                "contentType": content_type,
                **result,
            }
        )

    async def download_file(self, args: DownloadFileArgs) -> list[TextContent]:
        downloaded = await self.storage.download(args.bucket_name, args.file_path)
        payload = {
            "success": True,
            "bucketName": args.bucket_name,
            "filePath": args.file_path,
            "contentType": downloaded.content_type,
            "size": downloaded.size,
        }

        if args.save_path is not None:
            target = Path(args.save_path).expanduser()
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(downloaded.content)
            except OSError as e:
                msg = f"Could not write '{args.save_path}': {e.strerror or e}"
                raise InputError(msg) from e
            payload["savedTo"] = str(target)
        elif args.as_base64:
            payload["content"] = base64.b64encode(downloaded.content).decode("ascii")
        else:
            payload["content"] = "[Binary data]"
        return success_response(payload)

    async def delete_file(self, args: FileArgs) -> list[TextContent]:
        await self.storage.delete(args.bucket_name, args.file_path)
        return success_response(
            {
                "success": True,
                "message": f"File deleted: {args.bucket_name}/{args.file_path}",
            }
        )

    async def list_files(self, args: ListFilesArgs) -> list[TextContent]:
        files = await self.storage.list_files(
            args.bucket_name, args.path, limit=args.limit, offset=args.offset
        )
        return success_response(
            {
                "bucketName": args.bucket_name,
                "path": args.path,
                "files": files,
                "count": len(files),
            }
        )

    async def move_file(self, args: TransferArgs) -> list[TextContent]:
        result = await self.storage.move(
            args.from_bucket, args.from_path, args.to_bucket, args.to_path
        )
        return success_response(
            {
                "success": True,
                "message": (
                    f"File moved from {args.from_bucket}/{args.from_path} "
                    f"to {args.to_bucket}/{args.to_path}"
                ),
                **result,
            }
        )

    async def copy_file(self, args: TransferArgs) -> list[TextContent]:
        result = await self.storage.copy(
            args.from_bucket, args.from_path, args.to_bucket, args.to_path
        )
        return success_response(
            {
                "success": True,
                "message": (
                    f"File copied from {args.from_bucket}/{args.from_path} "
                    f"to {args.to_bucket}/{args.to_path}"
                ),
                **result,
            }
        )

    async def create_bucket(self, args: CreateBucketArgs) -> list[TextContent]:
        bucket = await self.storage.create_bucket(
            args.name,
            public=args.is_public,
            file_size_limit=args.file_size_limit,
            allowed_mime_types=args.allowed_mime_types,
        )
        return success_response({"success": True, "bucket": bucket})

    async def delete_bucket(self, args: BucketArgs) -> list[TextContent]:
        await self.storage.delete_bucket(args.bucket_name)
        return success_response(
            {"success": True, "message": f"Bucket deleted: {args.bucket_name}"}
        )

    async def empty_bucket(self, args: BucketArgs) -> list[TextContent]:
        await self.storage.empty_bucket(args.bucket_name)
        return success_response(
            {"success": True, "message": f"Bucket {args.bucket_name} has been emptied"}
        )

    async def list_buckets(self, args: ListBucketsArgs) -> list[TextContent]:
        buckets = await self.storage.list_buckets(limit=args.limit, offset=args.offset)
        return success_response(
            {"success": True, "buckets": buckets, "count": len(buckets)}
        )

    async def generate_signed_url(self, args: SignedUrlArgs) -> list[TextContent]:
        result = await self.storage.signed_url(
            args.bucket_name,
            args.file_path,
            expires_in=args.expires_in,
            upload=args.operation == "upload",
        )
        return success_response(
            {
                "success": True,
                "bucketName": args.bucket_name,
                "filePath": args.file_path,
                "operation": args.operation,
                "expiresIn": args.expires_in,
                **result,
            }
        )

    async def get_file_info(self, args: FileInfoArgs) -> list[TextContent]:
        info = await self.storage.file_info(
            args.bucket_name, args.file_path, authenticated=args.authenticated
        )
        return success_response({"success": True, "fileInfo": info})

    def specs(self) -> list[ToolSpec]:
        return [
            ToolSpec("upload-file", "Upload a file to Supabase Storage",
                     UploadFileArgs, self.upload_file),
            ToolSpec("download-file", "Download a file from Supabase Storage",
                     DownloadFileArgs, self.download_file),
            ToolSpec("delete-file", "Delete a file from Supabase Storage",
                     FileArgs, self.delete_file),
            ToolSpec("move-file", "Move or rename a file in Supabase Storage",
                     TransferArgs, self.move_file),
            ToolSpec("copy-file", "Copy a file in Supabase Storage",
                     TransferArgs, self.copy_file),
            ToolSpec("create-bucket", "Create a new storage bucket",
                     CreateBucketArgs, self.create_bucket),
            ToolSpec("delete-bucket", "Delete a storage bucket",
                     BucketArgs, self.delete_bucket),
            ToolSpec("empty-bucket", "Empty all contents from a storage bucket",
                     BucketArgs, self.empty_bucket),
            ToolSpec("list-buckets", "List all storage buckets",
                     ListBucketsArgs, self.list_buckets),
            ToolSpec("list-files", "List files in a Supabase Storage bucket",
                     ListFilesArgs, self.list_files),
            ToolSpec("get-file-info", "Get file metadata and information",
                     FileInfoArgs, self.get_file_info),
            ToolSpec("generate-signed-url", "Generate a presigned URL for file access",
                     SignedUrlArgs, self.generate_signed_url),
        ]
