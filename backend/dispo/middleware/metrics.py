"""
Prometheus metrics middleware.

HTTP traffic is counted per route template and caller role; module-level
counters track guard denials and the notification pipeline.
"""

import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

SKIPPED_PATHS = frozenset({"/metrics", "/api/health"})

# ── HTTP ─────────────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "dispo_http_requests_total",
    "HTTP requests by route, caller role and status",
    ["method", "route", "role", "status_code"],
)

http_request_duration_seconds = Histogram(
    "dispo_http_request_duration_seconds",
    "HTTP request latency by route",
    ["method", "route"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

# ── Access control ───────────────────────────────────────────────────────────

guard_denials_total = Counter(
    "dispo_guard_denials_total",
    "Requests rejected by an access guard",
    ["guard", "status_code"],
)

# ── Notifications ────────────────────────────────────────────────────────────

emails_sent_total = Counter(
    "dispo_notification_emails_sent_total",
    "Notification emails handed to the provider",
    ["kind"],
)

emails_failed_total = Counter(
    "dispo_notification_emails_failed_total",
    "Notification emails that could not be delivered",
    ["kind"],
)

digest_runs_total = Counter(
    "dispo_digest_runs_total",
    "Completed daily digest runs",
    ["status"],
)


def _normalize_path(path: str) -> str:
    """Collapse identifiers in a raw path (numeric ids, email addresses).

    e.g. /api/notifications/preferences/a@b.de → /api/notifications/preferences/{id}
    """
    parts = path.strip("/").split("/")
    return "/" + "/".join(
        "{id}" if i > 1 and (part.isdigit() or "@" in part) else part
        for i, part in enumerate(parts)
    )


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    return template or _normalize_path(request.url.path)


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        route = _route_label(request)
        role = getattr(request.state, "role", None) or "anonymous"
        http_requests_total.labels(
            method=request.method, route=route, role=role, status_code=response.status_code,
        ).inc()
        http_request_duration_seconds.labels(method=request.method, route=route).observe(elapsed)
        return response
