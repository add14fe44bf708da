from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "hibi_requests_total",
    "Total HTTP requests processed by Hibi",
    ("method", "path", "status"),
)

REQUEST_LATENCY = Histogram(
    "hibi_request_latency_seconds",
    "HTTP request latency in seconds",
    ("method", "path"),
)

REQUEST_ERRORS = Counter(
    "hibi_request_errors_total",
    "HTTP requests resulting in server errors",
    ("method", "path", "status"),
)

WEBHOOK_EVENTS = Counter(
    "hibi_webhook_events_total",
    "Telegram webhook events processed",
    ("result",),
)

AI_REQUESTS = Counter(
    "hibi_ai_requests_total",
    "AI attempts per model candidate",
    ("kind", "model", "result"),
)

AI_TOKENS = Counter(
    "hibi_ai_tokens_total",
    "Tokens consumed by AI requests",
    ("direction",),
)

STREAK_REBUILDS = Counter(
    "hibi_streak_rebuilds_total",
    "Cold-start streak reconstructions",
    ("result",),
)

LOGSTORE_PAGES = Counter(
    "hibi_logstore_pages_total",
    "Pages fetched from the log store",
)

REVIEWS_GENERATED = Counter(
    "hibi_reviews_total",
    "Weekly and monthly review attempts",
    ("kind", "result"),
)

PUSH_TRUNCATIONS = Counter(
    "hibi_push_truncations_total",
    "Outbound texts cut to the transport size limit",
)

__all__ = [
    "AI_REQUESTS",
    "AI_TOKENS",
    "LOGSTORE_PAGES",
    "PUSH_TRUNCATIONS",
    "REQUEST_COUNT",
    "REQUEST_ERRORS",
    "REQUEST_LATENCY",
    "REVIEWS_GENERATED",
    "STREAK_REBUILDS",
    "WEBHOOK_EVENTS",
]
