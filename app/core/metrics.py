from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
)

SCHEDULING_EVENTS = Counter(
    "scheduling_events_total",
    "Scheduling lifecycle events",
    ["event"],
)


def record_event(event: str) -> None:
    SCHEDULING_EVENTS.labels(event=event).inc()


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
