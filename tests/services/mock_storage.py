"""Mock storage client for testing upload orchestration."""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

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


def _etag(data: bytes) -> str:
    return f'"{hashlib.md5(data).hexdigest()}"'


@dataclass
class MockStorageClient:
    """In-memory, thread-safe mock of StorageClient for testing.

    Objects hold real bytes so multipart assembly can be checked byte for
    byte. Every call is appended to ``calls`` as ``(method, kwargs)``.

    Failure injection:
        fail_init / fail_complete / fail_abort / fail_put: raise StorageError.
        fail_parts: part numbers whose upload raises StorageError at once.
        part_delay: callable returning seconds to sleep before a part is
            stored, used to shuffle completion order.
        part_gate: event that part uploads wait on before storing.

    ``active_parts`` and ``peak_parts`` track how many uploads run at once.
    """

    uploads: dict[str, dict[str, Any]] = field(default_factory=dict)
    objects: dict[str, dict[str, Any]] = field(default_factory=dict)
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    fail_init: bool = False
    fail_complete: bool = False
    fail_abort: bool = False
    fail_put: bool = False
    fail_parts: set[int] = field(default_factory=set)
    part_delay: Callable[[int], float] | None = None
    part_gate: threading.Event | None = None
    active_parts: int = 0
    peak_parts: int = 0
    _upload_counter: int = field(default=0)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _record(self, method: str, **kwargs: Any) -> None:
        with self._lock:
            self.calls.append((method, kwargs))

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        with self._lock:
            return [kwargs for name, kwargs in self.calls if name == method]

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        options: UploadOptions | None = None,
    ) -> UploadResult:
        self._record("put_object", bucket=bucket, object_key=object_key, size=len(body))
        if self.fail_put:
            raise StorageError("Failed to put object: injected")
        etag = _etag(body)
        self._store(bucket, object_key, bytes(body), etag, options)
        return UploadResult(
            bucket=bucket,
            object_key=object_key,
            etag=etag,
            size_bytes=len(body),
        )

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        options: UploadOptions | None = None,
    ) -> MultipartUpload:
        self._record("init_multipart_upload", bucket=bucket, object_key=object_key)
        if self.fail_init:
            raise StorageError("Failed to create multipart upload: injected")
        with self._lock:
            self._upload_counter += 1
            upload_id = f"mock-upload-{self._upload_counter}"
            self.uploads[upload_id] = {
                "bucket": bucket,
                "object_key": object_key,
                "options": options,
                "parts": {},
                "completed": False,
                "aborted": False,
            }
        return MultipartUpload(
            upload_id=upload_id, bucket=bucket, object_key=object_key
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
        self._record(
            "upload_part",
            upload_id=upload_id,
            part_number=part_number,
            size=len(body),
        )
        if part_number in self.fail_parts:
            raise StorageError(f"Failed to upload part {part_number}: injected")
        with self._lock:
            self.active_parts += 1
            self.peak_parts = max(self.peak_parts, self.active_parts)
        try:
            if self.part_gate is not None:
                self.part_gate.wait(timeout=10)
            if self.part_delay is not None:
                time.sleep(self.part_delay(part_number))
            with self._lock:
                upload = self.uploads.get(upload_id)
                if upload is None or upload["aborted"] or upload["completed"]:
                    raise StorageError(f"Upload {upload_id} is not open")
                etag = _etag(body)
                upload["parts"][part_number] = (etag, bytes(body))
        finally:
            with self._lock:
                self.active_parts -= 1
        return etag

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> UploadResult:
        self._record(
            "complete_multipart_upload",
            upload_id=upload_id,
            parts=[(p.part_number, p.etag) for p in parts],
        )
        if self.fail_complete:
            raise StorageError("Failed to complete multipart upload: injected")
        with self._lock:
            upload = self.uploads.get(upload_id)
            if upload is None or upload["aborted"]:
                raise StorageError(f"Upload {upload_id} not found")
            chunks = []
            for part in parts:
                stored = upload["parts"].get(part.part_number)
                if stored is None or stored[0] != part.etag:
                    raise StorageError(f"InvalidPart: {part.part_number}")
                chunks.append(stored[1])
            upload["completed"] = True
        data = b"".join(chunks)
        etag = f'"{hashlib.md5(data).hexdigest()}-{len(parts)}"'
        self._store(bucket, object_key, data, etag, upload["options"])
        return UploadResult(
            bucket=bucket,
            object_key=object_key,
            etag=etag,
            location=f"https://mock-s3/{bucket}/{object_key}",
        )

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        self._record("abort_multipart_upload", upload_id=upload_id)
        if self.fail_abort:
            raise StorageError("Failed to abort multipart upload: injected")
        with self._lock:
            if upload_id in self.uploads:
                self.uploads[upload_id]["aborted"] = True
                self.uploads[upload_id]["parts"].clear()

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        key = f"{bucket}/{object_key}"
        with self._lock:
            if key not in self.objects:
                raise StorageError(f"Failed to get object: {key} does not exist")
            return self.objects[key]["data"]

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        key = f"{bucket}/{object_key}"
        with self._lock:
            if key not in self.objects:
                raise StorageError(f"Failed to get object metadata: {key}")
            obj = self.objects[key]
        return ObjectHead(
            size_bytes=len(obj["data"]),
            etag=obj["etag"],
            content_type=obj["content_type"],
        )

    def list_objects(
        self, *, bucket: str, prefix: str | None = None
    ) -> list[ObjectSummary]:
        with self._lock:
            entries = [
                obj
                for obj in self.objects.values()
                if obj["bucket"] == bucket
                and obj["object_key"].startswith(prefix or "")
            ]
        return [
            ObjectSummary(
                object_key=obj["object_key"],
                size_bytes=len(obj["data"]),
                etag=obj["etag"],
                last_modified=obj["last_modified"],
            )
            for obj in sorted(entries, key=lambda o: o["object_key"])
        ]

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        self._record("delete_object", bucket=bucket, object_key=object_key)
        with self._lock:
            self.objects.pop(f"{bucket}/{object_key}", None)

    def presign_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
    ) -> PresignedPost:
        return PresignedPost(
            url=f"https://mock-s3/{bucket}",
            fields={"key": object_key, "policy": f"expires-in-{expires_in}"},
        )

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        return f"https://mock-s3/{bucket}/{object_key}?download=true&expires={expires_in}"

    def _store(
        self,
        bucket: str,
        object_key: str,
        data: bytes,
        etag: str,
        options: UploadOptions | None,
    ) -> None:
        with self._lock:
            self.objects[f"{bucket}/{object_key}"] = {
                "bucket": bucket,
                "object_key": object_key,
                "data": data,
                "etag": etag,
                "content_type": options.content_type if options else None,
                "last_modified": datetime.now(timezone.utc),
            }
