from __future__ import annotations

from s3upload.common.config import Settings, get_settings
from s3upload.infra.storage.client import StorageClient


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class InvalidStateTransition(ServiceError):
    """Raised when an upload session is moved along an edge it does not have."""


class UploadError(ServiceError):
    """An upload failed; ``stage`` names where.

    Carries the session's ``upload_id`` (None before a session exists) so the
    caller can correlate the failure with the backend.
    """

    stage = "upload"

    def __init__(
        self,
        message: str,
        *,
        bucket: str,
        object_key: str,
        upload_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.bucket = bucket
        self.object_key = object_key
        self.upload_id = upload_id

    def __str__(self) -> str:
        base = super().__str__()
        if self.upload_id:
            return f"[{self.stage}] {base} (upload_id={self.upload_id})"
        return f"[{self.stage}] {base}"


class DirectPutFailure(UploadError):
    """The single-request put was rejected."""

    stage = "put"


class InitiationFailure(UploadError):
    """No multipart session could be opened; nothing to clean up."""

    stage = "initiate"


class StreamReadFailure(UploadError):
    """Reading the source stream failed."""

    stage = "read"


class EmptySourceError(StreamReadFailure):
    """A multipart upload was requested for a source with no bytes."""


class PartUploadFailure(UploadError):
    """A part could not be uploaded; the session has been aborted."""

    stage = "dispatch"

    def __init__(
        self,
        message: str,
        *,
        bucket: str,
        object_key: str,
        upload_id: str | None = None,
        part_number: int | None = None,
    ) -> None:
        super().__init__(
            message, bucket=bucket, object_key=object_key, upload_id=upload_id
        )
        self.part_number = part_number


class CommitFailure(UploadError):
    """The backend rejected the finalize request; the session has been aborted."""

    stage = "commit"


class AbortFailure(UploadError):
    """Cleanup of a failed session itself failed.

    The session is left open on the backend and keeps accruing storage until
    removed by a lifecycle rule or by hand. ``original`` is the failure that
    triggered the abort.
    """

    stage = "abort"

    def __init__(
        self,
        message: str,
        *,
        bucket: str,
        object_key: str,
        upload_id: str | None = None,
        original: BaseException | None = None,
    ) -> None:
        super().__init__(
            message, bucket=bucket, object_key=object_key, upload_id=upload_id
        )
        self.original = original


class BaseService:
    """Provides the storage handle and settings shared by upload services."""

    def __init__(self, storage: StorageClient, *, settings: Settings | None = None):
        self._storage = storage
        self._settings = settings or get_settings()

    @property
    def storage(self) -> StorageClient:
        return self._storage

    @property
    def settings(self) -> Settings:
        return self._settings
