"""
Prometheus Metrics for Observability

Tracks pipeline stage latency, conversion outcomes, transfer sizes and API
calls. Exposes /api/v1/metrics endpoint for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
pipeline_latency_seconds = Histogram(
    "pipeline_latency_seconds",
    "Time spent in each pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Total Pipeline Duration
pipeline_total_duration = Histogram(
    "pipeline_total_duration_seconds",
    "Total time for complete pipeline execution",
    labelnames=["status"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0]
)

# Conversions Counter
conversions_total = Counter(
    "webp_conversions_total",
    "Total number of conversion requests processed",
    labelnames=["outcome", "failure_stage"]
)

# Existence short-circuits by source
existence_hits_total = Counter(
    "existence_hits_total",
    "Conversions skipped because the artifact already exists",
    labelnames=["source"]  # "cdn" or "storage"
)

# Bytes moved
downloaded_bytes_total = Counter(
    "downloaded_bytes_total",
    "Total bytes downloaded from source URLs"
)

uploaded_bytes_total = Counter(
    "uploaded_bytes_total",
    "Total bytes written to the object store",
    labelnames=["artifact"]  # "full" or "thumbnail"
)

# API Request Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

app_info = Info(
    "webp_converter_app",
    "Application information"
)


# =============================================================================
# Helpers
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info labels."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("transform"):
            # do work
    """
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.time() - start
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_conversion(outcome: str, duration_seconds: float, failure_stage: str = "none"):
    """Record a finished conversion request."""
    conversions_total.labels(outcome=outcome, failure_stage=failure_stage).inc()
    pipeline_total_duration.labels(status=outcome).observe(duration_seconds)


def record_existence_hit(source: str):
    """Record an existence short-circuit."""
    existence_hits_total.labels(source=source).inc()


def record_download(size_bytes: int):
    """Record bytes downloaded from a source URL."""
    downloaded_bytes_total.inc(size_bytes)


def record_upload(artifact: str, size_bytes: int):
    """Record bytes uploaded for an artifact."""
    uploaded_bytes_total.labels(artifact=artifact).inc(size_bytes)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
