"""Lightweight observability helpers (logging + metrics)."""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections import defaultdict
from contextvars import ContextVar
from threading import Lock
from typing import Iterable, Optional, Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

DEFAULT_BUCKETS_MS = [50, 100, 250, 500, 1000, 2500, 5000, 10000]


def get_request_id() -> str | None:
    """Return the current request id if set by middleware."""
    return request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """Attach the current request id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at startup."""
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(name)s [%(request_id)s] %(message)s")
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())


class MetricsBackend(Protocol):
    """Metrics backend interface."""

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        ...

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        ...

    def observe_provider_retry(
        self,
        provider: str,
        operation: str,
        status_code: Optional[int],
    ) -> None:
        ...

    def render_prometheus(self) -> str:
        ...


Labels = tuple[tuple[str, str], ...]

COUNTERS = {
    "http_requests_total": "Total HTTP requests",
    "external_api_requests_total": "External API requests",
    "external_api_retries_total": "Provider calls retried after a failure",
}
SUMMARIES = {
    "http_request_duration_ms": "Request duration in milliseconds",
    "external_api_duration_ms": "External API duration in milliseconds",
}


def _labels(**values: str) -> Labels:
    return tuple(values.items())


def _render_labels(labels: Labels) -> str:
    return ",".join(f'{key}="{value}"' for key, value in labels)


class MetricsCollector:
    """In-process counters and duration summaries, rendered as Prometheus text."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, dict[Labels, int]] = defaultdict(lambda: defaultdict(int))
        # name -> labels -> [sum_ms, count]
        self._summaries: dict[str, dict[Labels, list[float]]] = defaultdict(
            lambda: defaultdict(lambda: [0.0, 0])
        )

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        with self._lock:
            self._counters["http_requests_total"][
                _labels(method=method, path=path, status=str(status_code))
            ] += 1
            self._add_duration(
                "http_request_duration_ms",
                _labels(method=method, path=path),
                duration_ms,
            )

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        with self._lock:
            self._counters["external_api_requests_total"][
                _labels(provider=provider, operation=operation, status=str(status_code))
            ] += 1
            self._add_duration(
                "external_api_duration_ms",
                _labels(provider=provider, operation=operation),
                duration_ms,
            )

    def observe_provider_retry(
        self,
        provider: str,
        operation: str,
        status_code: Optional[int],
    ) -> None:
        """Record that a provider call is about to be retried."""
        with self._lock:
            self._counters["external_api_retries_total"][
                _labels(provider=provider, operation=operation, status=str(status_code))
            ] += 1

    def external_call_count(self, provider: str, operation: str) -> int:
        """Total recorded calls for a provider operation, across statuses."""
        with self._lock:
            return sum(
                count
                for labels, count in self._counters["external_api_requests_total"].items()
                if dict(labels)["provider"] == provider and dict(labels)["operation"] == operation
            )

    def render_prometheus(self) -> str:
        lines: list[str] = []
        with self._lock:
            for name, help_text in COUNTERS.items():
                lines.append(f"# HELP {name} {help_text}")
                lines.append(f"# TYPE {name} counter")
                for labels, count in sorted(self._counters[name].items()):
                    lines.append(f"{name}{{{_render_labels(labels)}}} {count}")
            for name, help_text in SUMMARIES.items():
                lines.append(f"# HELP {name} {help_text}")
                lines.append(f"# TYPE {name} summary")
                for labels, (total, count) in sorted(self._summaries[name].items()):
                    rendered = _render_labels(labels)
                    lines.append(f"{name}_sum{{{rendered}}} {total:.2f}")
                    lines.append(f"{name}_count{{{rendered}}} {count}")
        return "\n".join(lines) + "\n"

    def _add_duration(self, name: str, labels: Labels, duration_ms: float) -> None:
        entry = self._summaries[name][labels]
        entry[0] += duration_ms
        entry[1] += 1


class PrometheusMetrics:
    """prometheus_client backend with latency histograms."""

    def __init__(self, buckets_ms: Iterable[int] = DEFAULT_BUCKETS_MS) -> None:
        self._registry = CollectorRegistry()
        buckets = list(buckets_ms)

        self._http_requests_total = Counter(
            "http_requests_total",
            COUNTERS["http_requests_total"],
            ["method", "path", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            SUMMARIES["http_request_duration_ms"],
            ["method", "path"],
            buckets=buckets,
            registry=self._registry,
        )
        self._external_api_requests_total = Counter(
            "external_api_requests_total",
            COUNTERS["external_api_requests_total"],
            ["provider", "operation", "status"],
            registry=self._registry,
        )
        self._external_api_duration_ms = Histogram(
            "external_api_duration_ms",
            SUMMARIES["external_api_duration_ms"],
            ["provider", "operation"],
            buckets=buckets,
            registry=self._registry,
        )
        self._external_api_retries_total = Counter(
            "external_api_retries_total",
            COUNTERS["external_api_retries_total"],
            ["provider", "operation", "status"],
            registry=self._registry,
        )

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        self._http_requests_total.labels(method, path, str(status_code)).inc()
        self._http_request_duration_ms.labels(method, path).observe(duration_ms)

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        self._external_api_requests_total.labels(provider, operation, str(status_code)).inc()
        self._external_api_duration_ms.labels(provider, operation).observe(duration_ms)

    def observe_provider_retry(
        self,
        provider: str,
        operation: str,
        status_code: Optional[int],
    ) -> None:
        self._external_api_retries_total.labels(provider, operation, str(status_code)).inc()

    def render_prometheus(self) -> str:
        return generate_latest(self._registry).decode("utf-8")


def build_metrics_backend(backend: str) -> MetricsBackend:
    """Build the configured metrics backend ("inmemory" or "prometheus")."""
    if backend == "prometheus":
        return PrometheusMetrics()
    return MetricsCollector()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Attach request_id, log request/response, and emit metrics."""

    def __init__(
        self,
        app: ASGIApp,
        metrics: MetricsBackend | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(app)
        self.metrics = metrics
        self.logger = logger or logging.getLogger("session_rag.request")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code = response.status_code if response else 500

            if response is not None:
                response.headers["X-Request-ID"] = request_id

            route = request.scope.get("route")
            route_path = getattr(route, "path", None)
            # Normalize unmatched paths to avoid label cardinality explosion
            path = route_path or "/__unknown__"

            if self.metrics:
                self.metrics.observe_request(
                    request.method,
                    path,
                    status_code,
                    duration_ms,
                )

            log_payload = {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "route": route_path,
                "status_code": status_code,
                "elapsed_ms": round(duration_ms, 2),
                "client": request.client.host if request.client else None,
            }
            self.logger.info(json.dumps(log_payload))
            request_id_ctx.reset(token)
