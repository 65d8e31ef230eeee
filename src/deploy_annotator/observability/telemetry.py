"""Optional OpenTelemetry spans around workload reconciliations."""

from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import Any

from deploy_annotator.contracts.models import WorkloadIdentity

logger = logging.getLogger(__name__)


class _NoOpSpan:
    def __enter__(self) -> _NoOpSpan:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def set_attribute(self, key: str, value: Any) -> None:
        return None


class _NoOpTracer:
    def start_as_current_span(
        self, name: str, attributes: dict[str, Any] | None = None
    ) -> _NoOpSpan:
        return _NoOpSpan()


_NOOP_TRACER = _NoOpTracer()
_provider: Any | None = None


def setup_tracing(
    service_name: str,
    *,
    enabled: bool,
    service_version: str | None = None,
    kinds: Iterable[str] = (),
    exporter: Any | None = None,
) -> None:
    """Install a tracer provider exporting reconcile spans, or stay on the no-op tracer.

    The resource carries the workload kinds this process watches.
    """
    global _provider
    watched = sorted(kinds)
    if not enabled:
        _provider = None
        logger.info("tracing.disabled", extra={"extra": {"service": service_name}})
        return
    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

    attributes: dict[str, Any] = {
        "service.name": service_name,
        "deploy_annotator.kinds": ",".join(watched),
    }
    if service_version:
        attributes["service.version"] = service_version
    provider = TracerProvider(resource=Resource.create(attributes))
    provider.add_span_processor(BatchSpanProcessor(exporter or ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    _provider = provider
    logger.info(
        "tracing.configured", extra={"extra": {"service": service_name, "kinds": watched}}
    )


def shutdown_tracing() -> None:
    """Flush pending spans; a no-op when tracing was never enabled."""
    global _provider
    if _provider is None:
        return
    _provider.shutdown()
    _provider = None


def get_tracer(name: str) -> Any:
    if _provider is None:
        return _NOOP_TRACER
    return _provider.get_tracer(name)


def workload_attributes(identity: WorkloadIdentity) -> dict[str, str]:
    """Kubernetes resource attributes for a span about one workload."""
    kind = identity.kind.value
    return {
        "k8s.namespace.name": identity.namespace,
        f"k8s.{kind}.name": identity.name,
        "deploy_annotator.kind": kind,
    }
