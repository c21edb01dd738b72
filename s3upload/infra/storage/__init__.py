"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, and other S3-compatible services.
"""

from .client import (
    CompletedPart,
    MultipartUpload,
    ObjectHead,
    ObjectSummary,
    PresignedPost,
    StorageClient,
    StorageError,
    UploadOptions,
    UploadResult,
)
from .s3_client import S3StorageClient

__all__ = [
    "CompletedPart",
    "MultipartUpload",
    "ObjectHead",
    "ObjectSummary",
    "PresignedPost",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
    "UploadOptions",
    "UploadResult",
]
