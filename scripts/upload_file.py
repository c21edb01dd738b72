#!/usr/bin/env python3
"""Upload a local file to S3-compatible storage, or print presigned URLs.

Usage:
  .venv/bin/python scripts/upload_file.py upload ./backup.tar reports/backup.tar
  .venv/bin/python scripts/upload_file.py upload ./big.bin data/big.bin --multipart
  .venv/bin/python scripts/upload_file.py presign-download reports/backup.tar --expires 600

Connection settings come from S3_* environment variables (or .env). The
bucket defaults to S3_BUCKET.
"""

from __future__ import annotations

import argparse
import mimetypes
import sys

from s3upload.common.config import Settings
from s3upload.common.logging import setup_logging
from s3upload.infra.storage.client import UploadOptions
from s3upload.infra.storage.s3_client import S3StorageClient
from s3upload.services.base import AbortFailure, UploadError
from s3upload.services.upload_service import UploadService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Object storage upload helper")
    parser.add_argument(
        "--bucket",
        default=None,
        help="Target bucket (default: S3_BUCKET)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    upload = sub.add_parser("upload", help="Upload a local file")
    upload.add_argument("path", help="Local file to upload")
    upload.add_argument("key", help="Object key in the bucket")
    upload.add_argument(
        "--multipart",
        action="store_true",
        help="Force the chunked multipart path regardless of size",
    )
    upload.add_argument(
        "--content-type",
        default=None,
        help="Content-Type of the object (default: guessed from the file name)",
    )

    for name, help_text in (
        ("presign-upload", "Print a POST-policy upload URL and its form fields"),
        ("presign-download", "Print a signed download URL"),
    ):
        presign = sub.add_parser(name, help=help_text)
        presign.add_argument("key", help="Object key in the bucket")
        presign.add_argument(
            "--expires",
            type=int,
            default=None,
            help="Expiry in seconds (default: STORAGE_PRESIGN_EXPIRES_SECONDS)",
        )
    return parser


def run(args: argparse.Namespace, service: UploadService, bucket: str) -> int:
    if args.command == "upload":
        content_type = args.content_type or mimetypes.guess_type(args.path)[0]
        try:
            result = service.upload_file(
                bucket,
                args.key,
                args.path,
                options=UploadOptions(content_type=content_type),
                force_multipart=args.multipart,
            )
        except AbortFailure as exc:
            print(
                f"Upload failed and its session {exc.upload_id} could not be aborted: {exc}",
                file=sys.stderr,
            )
            return 3
        except UploadError as exc:
            print(f"Upload failed: {exc}", file=sys.stderr)
            return 2
        mode = f"multipart, {result.parts_count} parts" if result.multipart else "single put"
        print(f"Uploaded s3://{bucket}/{args.key} ({mode}) etag={result.etag}")
        return 0

    if args.command == "presign-upload":
        form = service.create_presigned_upload_form(
            bucket, args.key, expires_in=args.expires
        )
        print(form.url)
        for name, value in form.fields.items():
            print(f"  {name}={value}")
        return 0

    print(
        service.create_presigned_download_url(bucket, args.key, expires_in=args.expires)
    )
    return 0


def main() -> None:
    args = build_parser().parse_args()
    settings = Settings.from_environment()
    setup_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    bucket = args.bucket or settings.S3_BUCKET
    if not bucket:
        print("No bucket given: pass --bucket or set S3_BUCKET", file=sys.stderr)
        sys.exit(1)

    service = UploadService(S3StorageClient(settings=settings), settings=settings)
    sys.exit(run(args, service, bucket))


if __name__ == "__main__":
    main()
