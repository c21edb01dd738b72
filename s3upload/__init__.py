"""Chunked multipart uploads to S3-compatible object storage."""

from s3upload.common.config import Settings, get_settings
from s3upload.infra.storage import (
    S3StorageClient,
    StorageClient,
    StorageError,
    UploadOptions,
    UploadResult,
)
from s3upload.services import (
    AbortFailure,
    CommitFailure,
    DirectPutFailure,
    EmptySourceError,
    InitiationFailure,
    PartUploadFailure,
    StreamReadFailure,
    UploadError,
    UploadService,
)

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "get_settings",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
    "UploadOptions",
    "UploadResult",
    "UploadService",
    "UploadError",
    "DirectPutFailure",
    "InitiationFailure",
    "StreamReadFailure",
    "EmptySourceError",
    "PartUploadFailure",
    "CommitFailure",
    "AbortFailure",
]
