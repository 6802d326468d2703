"""Prometheus metrics for API service.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- Invoice upload and parsing outcomes
- Spreadsheet exports

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Upload metrics
invoices_uploaded_total = Counter(
    "invoices_uploaded_total",
    "Total invoice files uploaded",
    ["status"],  # accepted, rejected
)

invoice_upload_size_bytes = Histogram(
    "invoice_upload_size_bytes",
    "Invoice upload size in bytes",
    buckets=(1024, 10240, 102400, 1048576, 10485760),  # 1KB to 10MB
)

# Parsing metrics
invoice_parse_duration_seconds = Histogram(
    "invoice_parse_duration_seconds",
    "Duration of one extraction attempt (OCR, structuring and parsing)",
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0),
)

invoices_parsed_total = Counter(
    "invoices_parsed_total",
    "Total extraction attempts by outcome",
    ["status"],  # success, error, skipped
)

# Export metrics
exports_total = Counter(
    "exports_total",
    "Total spreadsheet exports",
    ["layout"],  # detail, summary
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
