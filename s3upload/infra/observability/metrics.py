from prometheus_client import Counter, Histogram

# Low-cardinality labels only: never label by bucket or object key.
UPLOADS = Counter(
    "storage_uploads_total",
    "Uploads finished, by path and outcome",
    ["mode", "outcome"],
)

UPLOAD_BYTES = Counter(
    "storage_upload_bytes_total",
    "Payload bytes handed to the storage backend",
    ["mode"],
)

PARTS = Counter(
    "storage_upload_parts_total",
    "Multipart part uploads, by outcome",
    ["outcome"],
)

PART_LATENCY = Histogram(
    "storage_part_upload_duration_seconds",
    "Latency of a single part upload in seconds",
)

ABORTS = Counter(
    "storage_multipart_aborts_total",
    "Multipart session aborts, by outcome",
    ["outcome"],
)
