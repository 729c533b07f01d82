from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

FILE_UPLOADS = Counter(
    "appduka_file_uploads_total",
    "App file uploads to object storage",
    ["status"],
)
FILE_CLEANUP_FAILURES = Counter(
    "appduka_file_cleanup_failures_total",
    "Best-effort file deletions that did not succeed",
)
REVIEWS_SUBMITTED = Counter(
    "appduka_reviews_submitted_total",
    "Reviews created or replaced",
    ["outcome"],
)
STATUS_CHANGES = Counter(
    "appduka_app_status_changes_total",
    "Moderation status transitions",
    ["status"],
)
AI_REQUESTS = Counter(
    "appduka_ai_requests_total",
    "Calls to the generative text service",
    ["kind", "status"],
)
