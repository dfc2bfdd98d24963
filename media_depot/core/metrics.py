"""Prometheus metrics shared by workers, the sweeper and the HTTP layer."""

from prometheus_client import Counter, Gauge

ACQUISITIONS_TOTAL = Counter(
    "media_depot_acquisitions_total",
    "Acquisition attempts by outcome",
    labelnames=["outcome"],
)

CACHE_HITS_TOTAL = Counter(
    "media_depot_cache_hits_total",
    "Acquisitions served from an already downloaded file",
)

EVICTIONS_TOTAL = Counter(
    "media_depot_evictions_total",
    "Files and keys removed by the lifecycle engine",
    labelnames=["reason"],
)

REFCOUNT_UNDERFLOWS_TOTAL = Counter(
    "media_depot_refcount_underflows_total",
    "Releases that drove a reference count below zero",
)

ACTIVE_READERS = Gauge(
    "media_depot_active_readers",
    "Readers currently streaming a file from this process",
)

REQUESTS_TOTAL = Counter(
    "media_depot_http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "path"],
)

RESPONSES_TOTAL = Counter(
    "media_depot_http_responses_total",
    "Total number of HTTP responses",
    labelnames=["status_code"],
)
