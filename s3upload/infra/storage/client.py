"""Storage client protocol and data types.

This module defines the abstract interface for object storage operations
used by the upload orchestrator: single puts, multipart sessions, presigned
URLs, and basic object management.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


@dataclass(frozen=True, slots=True)
class UploadOptions:
    """Object attributes applied to a put or to a multipart session."""

    content_type: str | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)
    # Passed through to the backend verbatim, e.g. CacheControl or
    # ServerSideEncryption for S3.
    extra_args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Descriptor of an object that now exists at ``bucket/object_key``.

    Returned by both the direct put and the multipart commit so callers see
    the same shape regardless of the path taken.
    """

    bucket: str
    object_key: str
    etag: str | None
    version_id: str | None = None
    location: str | None = None
    multipart: bool = False
    upload_id: str | None = None
    parts_count: int = 1
    size_bytes: int | None = None


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    """One entry of an object listing."""

    object_key: str
    size_bytes: int
    etag: str | None
    last_modified: datetime | None


@dataclass(frozen=True, slots=True)
class PresignedPost:
    """POST-policy upload form: the target URL plus the form fields to send."""

    url: str
    fields: dict[str, str]


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here.
    Currently supports S3-compatible storage services.
    """

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        options: UploadOptions | None = None,
    ) -> UploadResult:
        """Store ``body`` at the key in a single request.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        options: UploadOptions | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            options: Content type, metadata and backend parameters for the
                final object.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> str:
        """Upload one part of a multipart session.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID from init_multipart_upload.
            part_number: Part number (1-based, max 10000).
            body: Part payload.

        Returns:
            The ETag the backend assigned to the part.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> UploadResult:
        """Complete a multipart upload by combining all parts.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID.
            parts: List of completed parts with their ETags.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID to abort.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        """Download the full content of an object.

        Raises:
            StorageError: If the object doesn't exist or operation fails.
        """
        ...

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.

        Returns:
            ObjectHead with size, ETag, and content type.

        Raises:
            StorageError: If the object doesn't exist or operation fails.
        """
        ...

    def list_objects(
        self, *, bucket: str, prefix: str | None = None
    ) -> list[ObjectSummary]:
        """List every object in the bucket, optionally under a key prefix.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) to delete.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def presign_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
    ) -> PresignedPost:
        """Generate a POST-policy form for uploading an object.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) the form is restricted to.
            expires_in: Policy expiration time in seconds.

        Returns:
            PresignedPost with the URL and the form fields to submit.

        Raises:
            StorageError: If policy generation fails.
        """
        ...

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            expires_in: URL expiration time in seconds.
            filename: Optional filename for Content-Disposition header.

        Returns:
            Presigned URL for GET request.

        Raises:
            StorageError: If URL generation fails.
        """
        ...
