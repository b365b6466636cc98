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

PORT_RESERVATIONS = Counter(
    "splitter_port_reservations_total",
    "Splitter port reservation attempts",
    ["outcome"],
)
PORT_RELEASES = Counter(
    "splitter_port_releases_total",
    "Splitter port release calls",
    ["outcome"],
)
WORKFLOW_FAILURES = Counter(
    "workflow_failures_total",
    "Cross-service workflow steps that failed",
    ["workflow", "step"],
)
REMOTE_CALL_LATENCY = Histogram(
    "service_call_duration_seconds",
    "Latency of calls to other fieldflow services",
    ["service", "method", "outcome"],
)


def observe_remote_call(service: str, method: str, outcome: str, duration: float) -> None:
    REMOTE_CALL_LATENCY.labels(service=service, method=method, outcome=outcome).observe(duration)
