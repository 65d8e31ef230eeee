"""Prometheus-style metrics and health endpoints without external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, HTTPServer, ThreadingHTTPServer
from threading import Lock, Thread
import time
from types import TracebackType


@dataclass
class _LabeledCounter:
    value: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self.value += amount


@dataclass
class _LabeledHistogram:
    count: int = 0
    total: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def observe(self, value: float) -> None:
        with self._lock:
            self.count += 1
            self.total += value

    def time(self) -> _Timer:
        return _Timer(self)


@dataclass
class Counter:
    name: str
    description: str
    label_names: tuple[str, ...]
    values: dict[tuple[str, ...], _LabeledCounter] = field(default_factory=dict)

    def labels(self, **labels: str) -> _LabeledCounter:
        key = tuple(labels[name] for name in self.label_names)
        return self.values.setdefault(key, _LabeledCounter())

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} counter"]
        for labels, counter in sorted(self.values.items()):
            lines.append(f"{self.name}{{{_label_str(self.label_names, labels)}}} {counter.value}")
        return lines


@dataclass
class Histogram:
    name: str
    description: str
    label_names: tuple[str, ...]
    values: dict[tuple[str, ...], _LabeledHistogram] = field(default_factory=dict)

    def labels(self, **labels: str) -> _LabeledHistogram:
        key = tuple(labels[name] for name in self.label_names)
        return self.values.setdefault(key, _LabeledHistogram())

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} summary"]
        for labels, histogram in sorted(self.values.items()):
            label_str = _label_str(self.label_names, labels)
            lines.append(f"{self.name}_count{{{label_str}}} {histogram.count}")
            lines.append(f"{self.name}_sum{{{label_str}}} {histogram.total}")
        return lines


def _label_str(names: tuple[str, ...], values: tuple[str, ...]) -> str:
    return ",".join(f'{name}="{value}"' for name, value in zip(names, values))


ANNOTATIONS = Counter(
    name="deploy_annotator_annotations_total",
    description="Annotations created by workload kind and lifecycle phase",
    label_names=("kind", "phase"),
)

RECONCILE_ERRORS = Counter(
    name="deploy_annotator_reconcile_errors_total",
    description="Reconciliations that ended in a requeue after a failure",
    label_names=("kind",),
)

RECONCILE_DURATION = Histogram(
    name="deploy_annotator_reconcile_duration_seconds",
    description="Duration of lifecycle reconciliations",
    label_names=("kind",),
)

REGISTRY: tuple[Counter | Histogram, ...] = (ANNOTATIONS, RECONCILE_ERRORS, RECONCILE_DURATION)


def render_metrics() -> str:
    lines: list[str] = []
    for metric in REGISTRY:
        lines.extend(metric.render())
    return "\n".join(lines) + "\n"


class _MetricsHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/metrics":
            self._reply(render_metrics(), "text/plain; version=0.0.4")
        elif self.path in ("/healthz", "/readyz"):
            self._reply("ok", "text/plain")
        else:
            self.send_response(404)
            self.end_headers()

    def _reply(self, text: str, content_type: str) -> None:
        body = text.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        return None


_servers: dict[int, HTTPServer] = {}


def start_metrics_server(port: int = 8081) -> None:
    """Serve /metrics, /healthz and /readyz on ``port``; idempotent per port."""
    if port in _servers:
        return
    server = ThreadingHTTPServer(("0.0.0.0", port), _MetricsHandler)
    _servers[port] = server
    Thread(target=server.serve_forever, daemon=True).start()


def stop_metrics_servers() -> None:
    for server in _servers.values():
        server.shutdown()
        server.server_close()
    _servers.clear()


class _Timer:
    def __init__(self, histogram: _LabeledHistogram) -> None:
        self._histogram = histogram
        self._start: float | None = None

    def __enter__(self) -> _Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._start is None:
            return
        self._histogram.observe(time.perf_counter() - self._start)
