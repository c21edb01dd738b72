from .base import (
    AbortFailure,
    BaseService,
    CommitFailure,
    DirectPutFailure,
    EmptySourceError,
    InitiationFailure,
    InvalidStateTransition,
    PartUploadFailure,
    ServiceError,
    StreamReadFailure,
    UploadError,
)
from .chunking import SourceStreamError, iter_chunks, read_chunk
from .multipart import MAX_PART_NUMBER, MultipartUploader, UploadSession, UploadState
from .upload_service import UploadService

__all__ = [
    "UploadService",
    "MultipartUploader",
    "UploadSession",
    "UploadState",
    "MAX_PART_NUMBER",
    "iter_chunks",
    "read_chunk",
    "SourceStreamError",
    "BaseService",
    "ServiceError",
    "InvalidStateTransition",
    "UploadError",
    "DirectPutFailure",
    "InitiationFailure",
    "StreamReadFailure",
    "EmptySourceError",
    "PartUploadFailure",
    "CommitFailure",
    "AbortFailure",
]
