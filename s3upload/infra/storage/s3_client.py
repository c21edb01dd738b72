"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from contextlib import closing
from typing import TYPE_CHECKING, Any, Sequence

import boto3
from botocore.config import Config

from s3upload.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectHead,
    ObjectSummary,
    PresignedPost,
    StorageError,
    UploadOptions,
    UploadResult,
)

if TYPE_CHECKING:
    from s3upload.common.config import Settings


def _object_params(options: UploadOptions | None) -> dict[str, Any]:
    """Translate UploadOptions into boto3 request parameters."""
    if options is None:
        return {}
    params: dict[str, Any] = dict(options.extra_args)
    if options.content_type:
        params["ContentType"] = options.content_type
    if options.metadata:
        params["Metadata"] = dict(options.metadata)
    return params


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations. Instances are built explicitly by
    the caller and passed to the services that need them.
    """

    def __init__(self, *, settings: "Settings", client: Any | None = None) -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing S3 configuration.
            client: Optional pre-built boto3 S3 client; built from settings
                when omitted.
        """
        self._settings = settings
        self._client = client if client is not None else self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        addressing_style = (settings.S3_ADDRESSING_STYLE or "path").strip().lower()
        config = Config(s3={"addressing_style": addressing_style})

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            aws_session_token=settings.S3_SESSION_TOKEN,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        options: UploadOptions | None = None,
    ) -> UploadResult:
        """Store the body in a single PUT request."""
        params = _object_params(options)
        try:
            response = self._client.put_object(
                Bucket=bucket, Key=object_key, Body=body, **params
            )
        except Exception as exc:
            raise StorageError(f"Failed to put object: {exc}") from exc

        return UploadResult(
            bucket=bucket,
            object_key=object_key,
            etag=response.get("ETag"),
            version_id=response.get("VersionId"),
            multipart=False,
            parts_count=1,
            size_bytes=len(body),
        )

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        options: UploadOptions | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        params.update(_object_params(options))

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise StorageError(f"Failed to create multipart upload: {exc}") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> str:
        """Upload one part and return its ETag."""
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=body,
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to upload part {part_number}: {exc}"
            ) from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"S3 response missing ETag for part {part_number}")
        return str(etag)

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> UploadResult:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(parts, key=lambda p: p.part_number)
            ]
        }

        try:
            response = self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise StorageError(f"Failed to complete multipart upload: {exc}") from exc

        return UploadResult(
            bucket=bucket,
            object_key=object_key,
            etag=response.get("ETag"),
            version_id=response.get("VersionId"),
            location=response.get("Location"),
            multipart=True,
            upload_id=upload_id,
            parts_count=len(multipart_payload["Parts"]),
        )

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise StorageError(f"Failed to abort multipart upload: {exc}") from exc

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        """Download the full content of an object."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
            with closing(response["Body"]) as body:
                return body.read()
        except Exception as exc:
            raise StorageError(f"Failed to get object: {exc}") from exc

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise StorageError(f"Failed to get object metadata: {exc}") from exc

        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
        )

    def list_objects(
        self, *, bucket: str, prefix: str | None = None
    ) -> list[ObjectSummary]:
        """List every object under the prefix, following continuation tokens."""
        params: dict[str, Any] = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix

        summaries: list[ObjectSummary] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for item in page.get("Contents", []):
                    summaries.append(
                        ObjectSummary(
                            object_key=item["Key"],
                            size_bytes=int(item.get("Size") or 0),
                            etag=item.get("ETag"),
                            last_modified=item.get("LastModified"),
                        )
                    )
        except Exception as exc:
            raise StorageError(f"Failed to list objects: {exc}") from exc

        return summaries

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise StorageError(f"Failed to delete object: {exc}") from exc

    def presign_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
    ) -> PresignedPost:
        """Generate a POST-policy upload form restricted to the key."""
        try:
            response = self._client.generate_presigned_post(
                Bucket=bucket,
                Key=object_key,
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise StorageError(f"Failed to generate upload policy: {exc}") from exc

        url = response.get("url") if response else None
        if not url:
            raise StorageError("Generated presigned URL is empty")

        return PresignedPost(
            url=str(url),
            fields={str(k): str(v) for k, v in (response.get("fields") or {}).items()},
        )

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if filename:
            # Escape quotes in filename for Content-Disposition header
            safe_filename = filename.replace('"', '\\"')
            params["ResponseContentDisposition"] = (
                f'attachment; filename="{safe_filename}"'
            )

        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise StorageError(f"Failed to generate download URL: {exc}") from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)
