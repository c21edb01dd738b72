"""Chunked multipart upload orchestration.

A multipart upload runs through three stages on one backend session:

1. initiate: open the session and obtain its ``upload_id``;
2. dispatch: read the source chunk by chunk on the calling thread, number
   each chunk as it is read and hand it to a thread pool for upload;
3. commit: sort the collected parts by number and finalize the session.

Any failure after the session exists aborts it exactly once, so the target
key never points at partial data.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Iterator

from s3upload.infra.observability.metrics import (
    ABORTS,
    PART_LATENCY,
    PARTS,
    UPLOAD_BYTES,
    UPLOADS,
)
from s3upload.infra.storage.client import (
    CompletedPart,
    StorageClient,
    UploadOptions,
    UploadResult,
)
from s3upload.services.base import (
    AbortFailure,
    CommitFailure,
    EmptySourceError,
    InitiationFailure,
    InvalidStateTransition,
    PartUploadFailure,
    StreamReadFailure,
    UploadError,
)
from s3upload.services.chunking import SourceStreamError

logger = logging.getLogger("s3upload.upload")

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000


class UploadState(str, Enum):
    INITIATED = "INITIATED"
    DISPATCHING = "DISPATCHING"
    COMMITTING = "COMMITTING"
    COMPLETE = "COMPLETE"
    ABORTED = "ABORTED"


_TRANSITIONS: dict[UploadState, frozenset[UploadState]] = {
    UploadState.INITIATED: frozenset({UploadState.DISPATCHING, UploadState.ABORTED}),
    UploadState.DISPATCHING: frozenset({UploadState.COMMITTING, UploadState.ABORTED}),
    UploadState.COMMITTING: frozenset({UploadState.COMPLETE, UploadState.ABORTED}),
    UploadState.COMPLETE: frozenset(),
    UploadState.ABORTED: frozenset(),
}


@dataclass(slots=True)
class UploadSession:
    """One backend multipart session, owned by a single upload call."""

    bucket: str
    object_key: str
    upload_id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: UploadState = UploadState.INITIATED

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def transition(self, target: UploadState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"Cannot move upload {self.upload_id} from {self.state.value} to {target.value}"
            )
        self.state = target


class MultipartUploader:
    """Uploads a sequence of chunks as one multipart object.

    Args:
        storage: Backend the session is opened against.
        max_concurrency: Number of part uploads allowed to run at once. The
            reader stays at most ``2 * max_concurrency`` parts ahead of the
            slowest unfinished upload.
    """

    def __init__(self, storage: StorageClient, *, max_concurrency: int = 4) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._storage = storage
        self._max_concurrency = max_concurrency

    def upload(
        self,
        *,
        bucket: str,
        object_key: str,
        chunks: Iterable[bytes],
        options: UploadOptions | None = None,
    ) -> UploadResult:
        """Run initiate, dispatch and commit for ``chunks``.

        The first chunk is read before the session is opened, so an empty
        source fails with EmptySourceError without touching the backend.

        Raises:
            UploadError: A stage-specific subclass naming where it failed.
        """
        chunk_iter = iter(chunks)
        first = self._next_chunk(
            chunk_iter, bucket=bucket, object_key=object_key, upload_id=None
        )
        if first is None:
            raise EmptySourceError(
                "Cannot create a multipart upload from an empty source",
                bucket=bucket,
                object_key=object_key,
            )

        session = self._initiate(bucket=bucket, object_key=object_key, options=options)
        try:
            completed, total_bytes = self._dispatch(session, first, chunk_iter)
            result = self._commit(session, completed, total_bytes)
        except BaseException as exc:
            UPLOADS.labels(mode="multipart", outcome="failure").inc()
            self._abort(session, exc)
            raise

        UPLOADS.labels(mode="multipart", outcome="success").inc()
        UPLOAD_BYTES.labels(mode="multipart").inc(total_bytes)
        return result

    def _initiate(
        self,
        *,
        bucket: str,
        object_key: str,
        options: UploadOptions | None,
    ) -> UploadSession:
        try:
            upload = self._storage.init_multipart_upload(
                bucket=bucket, object_key=object_key, options=options
            )
        except Exception as exc:
            UPLOADS.labels(mode="multipart", outcome="failure").inc()
            raise InitiationFailure(
                f"Failed to open multipart session: {exc}",
                bucket=bucket,
                object_key=object_key,
            ) from exc

        session = UploadSession(
            bucket=bucket, object_key=object_key, upload_id=upload.upload_id
        )
        logger.info(
            "multipart_initiated",
            extra={
                "extra": {
                    "bucket": bucket,
                    "object_key": object_key,
                    "upload_id": session.upload_id,
                }
            },
        )
        return session

    @staticmethod
    def _next_chunk(
        chunks: Iterator[bytes],
        *,
        bucket: str,
        object_key: str,
        upload_id: str | None,
    ) -> bytes | None:
        try:
            return next(chunks)
        except StopIteration:
            return None
        except UploadError:
            raise
        except SourceStreamError as exc:
            raise StreamReadFailure(
                str(exc), bucket=bucket, object_key=object_key, upload_id=upload_id
            ) from exc
        except Exception as exc:
            # Caller-supplied chunk iterators may raise anything.
            raise StreamReadFailure(
                f"Failed to read source stream: {exc}",
                bucket=bucket,
                object_key=object_key,
                upload_id=upload_id,
            ) from exc

    def _dispatch(
        self,
        session: UploadSession,
        first: bytes,
        chunks: Iterator[bytes],
    ) -> tuple[list[CompletedPart], int]:
        session.transition(UploadState.DISPATCHING)
        max_in_flight = self._max_concurrency * 2
        completed: list[CompletedPart] = []
        in_flight: dict[Future[CompletedPart], int] = {}
        total_bytes = 0
        part_number = 0

        executor = ThreadPoolExecutor(
            max_workers=self._max_concurrency, thread_name_prefix="s3upload-part"
        )
        try:
            chunk: bytes | None = first
            while chunk is not None:
                part_number += 1
                if part_number > MAX_PART_NUMBER:
                    raise PartUploadFailure(
                        f"Source needs more than {MAX_PART_NUMBER} parts; increase the part size",
                        bucket=session.bucket,
                        object_key=session.object_key,
                        upload_id=session.upload_id,
                        part_number=part_number,
                    )
                total_bytes += len(chunk)
                future = executor.submit(self._upload_part, session, part_number, chunk)
                in_flight[future] = part_number

                done = [f for f in in_flight if f.done()]
                if len(in_flight) - len(done) >= max_in_flight:
                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                completed.extend(self._collect(in_flight, done))

                chunk = self._next_chunk(
                    chunks,
                    bucket=session.bucket,
                    object_key=session.object_key,
                    upload_id=session.upload_id,
                )

            done, _ = wait(in_flight)
            completed.extend(self._collect(in_flight, done))
        except BaseException:
            # Queued parts are dropped; running ones finish before the abort.
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return completed, total_bytes

    @staticmethod
    def _collect(
        in_flight: dict[Future[CompletedPart], int],
        done: Iterable[Future[CompletedPart]],
    ) -> list[CompletedPart]:
        # Lowest part number first so the reported failure is deterministic.
        finished = sorted(done, key=lambda f: in_flight[f])
        for future in finished:
            in_flight.pop(future, None)
        return [future.result() for future in finished]

    def _upload_part(
        self, session: UploadSession, part_number: int, body: bytes
    ) -> CompletedPart:
        started = time.perf_counter()
        try:
            etag = self._storage.upload_part(
                bucket=session.bucket,
                object_key=session.object_key,
                upload_id=session.upload_id,
                part_number=part_number,
                body=body,
            )
        except Exception as exc:
            PARTS.labels(outcome="failure").inc()
            raise PartUploadFailure(
                f"Failed to upload part {part_number}: {exc}",
                bucket=session.bucket,
                object_key=session.object_key,
                upload_id=session.upload_id,
                part_number=part_number,
            ) from exc
        PART_LATENCY.observe(time.perf_counter() - started)
        PARTS.labels(outcome="success").inc()
        logger.debug(
            "part_uploaded upload_id=%s part_number=%s size=%s",
            session.upload_id,
            part_number,
            len(body),
        )
        return CompletedPart(part_number=part_number, etag=etag)

    def _commit(
        self,
        session: UploadSession,
        completed: list[CompletedPart],
        total_bytes: int,
    ) -> UploadResult:
        session.transition(UploadState.COMMITTING)
        parts = sorted(completed, key=lambda p: p.part_number)
        numbers = [p.part_number for p in parts]
        if numbers != list(range(1, len(parts) + 1)):
            raise CommitFailure(
                f"Collected part numbers are not contiguous from 1: {numbers}",
                bucket=session.bucket,
                object_key=session.object_key,
                upload_id=session.upload_id,
            )

        try:
            result = self._storage.complete_multipart_upload(
                bucket=session.bucket,
                object_key=session.object_key,
                upload_id=session.upload_id,
                parts=parts,
            )
        except Exception as exc:
            raise CommitFailure(
                f"Failed to complete multipart upload: {exc}",
                bucket=session.bucket,
                object_key=session.object_key,
                upload_id=session.upload_id,
            ) from exc

        session.transition(UploadState.COMPLETE)
        logger.info(
            "multipart_completed",
            extra={
                "extra": {
                    "bucket": session.bucket,
                    "object_key": session.object_key,
                    "upload_id": session.upload_id,
                    "parts": len(parts),
                    "size_bytes": total_bytes,
                }
            },
        )
        return dataclasses.replace(
            result,
            multipart=True,
            upload_id=session.upload_id,
            parts_count=len(parts),
            size_bytes=total_bytes,
        )

    def _abort(self, session: UploadSession, cause: BaseException) -> None:
        if session.is_terminal:
            return
        session.transition(UploadState.ABORTED)
        stage = cause.stage if isinstance(cause, UploadError) else type(cause).__name__
        try:
            self._storage.abort_multipart_upload(
                bucket=session.bucket,
                object_key=session.object_key,
                upload_id=session.upload_id,
            )
        except Exception as exc:
            ABORTS.labels(outcome="failure").inc()
            logger.error(
                "multipart_abort_failed",
                extra={
                    "extra": {
                        "bucket": session.bucket,
                        "object_key": session.object_key,
                        "upload_id": session.upload_id,
                        "failed_stage": stage,
                        "error": str(exc),
                    }
                },
            )
            raise AbortFailure(
                f"Failed to abort multipart upload after {stage} failure: {exc}",
                bucket=session.bucket,
                object_key=session.object_key,
                upload_id=session.upload_id,
                original=cause,
            ) from exc

        ABORTS.labels(outcome="success").inc()
        logger.warning(
            "multipart_aborted",
            extra={
                "extra": {
                    "bucket": session.bucket,
                    "object_key": session.object_key,
                    "upload_id": session.upload_id,
                    "failed_stage": stage,
                }
            },
        )
