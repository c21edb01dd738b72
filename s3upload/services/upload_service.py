"""Upload facade for object storage.

This module provides the application service entry point: it picks between a
direct put and the chunked multipart path, and exposes the remaining storage
operations (download, listing, deletion, presigned URLs) as passthroughs.
"""

from __future__ import annotations

import io
import logging
from itertools import chain
from pathlib import Path
from typing import Any, BinaryIO, Union

from s3upload.common.config import Settings
from s3upload.infra.observability.metrics import UPLOAD_BYTES, UPLOADS
from s3upload.infra.storage.client import (
    ObjectHead,
    ObjectSummary,
    PresignedPost,
    StorageClient,
    UploadOptions,
    UploadResult,
)
from s3upload.services.base import BaseService, DirectPutFailure, StreamReadFailure
from s3upload.services.chunking import SourceStreamError, iter_chunks, read_chunk
from s3upload.services.multipart import MultipartUploader

logger = logging.getLogger("s3upload.upload")

UploadSource = Union[bytes, bytearray, memoryview, str, BinaryIO]


def _is_stream(source: Any) -> bool:
    return not isinstance(source, (bytes, bytearray, memoryview, str)) and hasattr(
        source, "read"
    )


def _as_bytes(source: Any) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, (bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, str):
        return source.encode("utf-8")
    raise TypeError(
        f"Unsupported upload source type: {type(source).__name__}; "
        "expected bytes, str or a binary stream"
    )


class UploadService(BaseService):
    """Application service for storing objects.

    Small or in-memory payloads go out in one put. Streams are read in
    ``part_size`` chunks; a stream that ends within its first chunk is also
    sent as a single put, anything longer takes the multipart path.
    """

    def __init__(
        self,
        storage: StorageClient,
        *,
        settings: Settings | None = None,
        part_size: int | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        super().__init__(storage, settings=settings)
        if part_size is None:
            part_size = self.settings.STORAGE_PART_SIZE_BYTES
        if max_concurrency is None:
            max_concurrency = self.settings.STORAGE_MAX_CONCURRENCY
        self._part_size = int(part_size)
        if self._part_size <= 0:
            raise ValueError("part_size must be positive")
        self._multipart = MultipartUploader(
            storage, max_concurrency=int(max_concurrency)
        )

    @property
    def part_size(self) -> int:
        return self._part_size

    def upload(
        self,
        bucket: str,
        object_key: str,
        source: UploadSource,
        options: UploadOptions | None = None,
        force_multipart: bool = False,
    ) -> UploadResult:
        """Store ``source`` at ``bucket/object_key``.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            source: Bytes, text (stored UTF-8 encoded) or a binary stream.
            options: Content type, metadata and backend parameters.
            force_multipart: Always use the multipart path, even for small
                or in-memory payloads.

        Returns:
            UploadResult describing the stored object.

        Raises:
            EmptySourceError: If force_multipart is set and the source is empty.
            UploadError: A stage-specific subclass for any other failure.
        """
        if _is_stream(source):
            stream: BinaryIO = source  # type: ignore[assignment]
        else:
            payload = _as_bytes(source)
            if not force_multipart:
                return self._put(bucket, object_key, payload, options)
            stream = io.BytesIO(payload)

        if force_multipart:
            return self._multipart.upload(
                bucket=bucket,
                object_key=object_key,
                chunks=iter_chunks(stream, self._part_size),
                options=options,
            )

        try:
            first = read_chunk(stream, self._part_size)
        except SourceStreamError as exc:
            raise StreamReadFailure(
                str(exc), bucket=bucket, object_key=object_key
            ) from exc
        if len(first) < self._part_size:
            return self._put(bucket, object_key, first, options)

        return self._multipart.upload(
            bucket=bucket,
            object_key=object_key,
            chunks=chain([first], iter_chunks(stream, self._part_size)),
            options=options,
        )

    def upload_file(
        self,
        bucket: str,
        object_key: str,
        path: str | Path,
        options: UploadOptions | None = None,
        force_multipart: bool = False,
    ) -> UploadResult:
        """Upload a local file through :meth:`upload`."""
        with open(path, "rb") as handle:
            return self.upload(
                bucket,
                object_key,
                handle,
                options=options,
                force_multipart=force_multipart,
            )

    def _put(
        self,
        bucket: str,
        object_key: str,
        payload: bytes,
        options: UploadOptions | None,
    ) -> UploadResult:
        try:
            result = self.storage.put_object(
                bucket=bucket, object_key=object_key, body=payload, options=options
            )
        except Exception as exc:
            UPLOADS.labels(mode="direct", outcome="failure").inc()
            raise DirectPutFailure(
                f"Failed to put object: {exc}", bucket=bucket, object_key=object_key
            ) from exc

        UPLOADS.labels(mode="direct", outcome="success").inc()
        UPLOAD_BYTES.labels(mode="direct").inc(len(payload))
        logger.info(
            "direct_put_completed",
            extra={
                "extra": {
                    "bucket": bucket,
                    "object_key": object_key,
                    "size_bytes": len(payload),
                }
            },
        )
        return result

    def download(self, bucket: str, object_key: str) -> bytes:
        return self.storage.get_object(bucket=bucket, object_key=object_key)

    def head(self, bucket: str, object_key: str) -> ObjectHead:
        return self.storage.head_object(bucket=bucket, object_key=object_key)

    def list_objects(
        self, bucket: str, prefix: str | None = None
    ) -> list[ObjectSummary]:
        return self.storage.list_objects(bucket=bucket, prefix=prefix)

    def delete(self, bucket: str, object_key: str) -> None:
        self.storage.delete_object(bucket=bucket, object_key=object_key)

    def _expiry(self, expires_in: int | None) -> int:
        if expires_in is None:
            return int(self.settings.STORAGE_PRESIGN_EXPIRES_SECONDS)
        if expires_in <= 0:
            raise ValueError("expires_in must be positive")
        return int(expires_in)

    def create_presigned_upload_form(
        self, bucket: str, object_key: str, expires_in: int | None = None
    ) -> PresignedPost:
        """POST-policy form (URL and fields) for a browser-side upload."""
        return self.storage.presign_upload(
            bucket=bucket, object_key=object_key, expires_in=self._expiry(expires_in)
        )

    def create_presigned_upload_url(
        self, bucket: str, object_key: str, expires_in: int | None = None
    ) -> str:
        """URL of the POST-policy form; see :meth:`create_presigned_upload_form`."""
        return self.create_presigned_upload_form(
            bucket, object_key, expires_in=expires_in
        ).url

    def create_presigned_download_url(
        self,
        bucket: str,
        object_key: str,
        expires_in: int | None = None,
        filename: str | None = None,
    ) -> str:
        """Signed GET URL for the object."""
        return self.storage.presign_download(
            bucket=bucket,
            object_key=object_key,
            expires_in=self._expiry(expires_in),
            filename=filename,
        )
