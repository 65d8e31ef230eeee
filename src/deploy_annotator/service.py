"""Process entrypoint: wires configuration, Kubernetes, Grafana and controllers."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
import logging
import platform
import signal
import sys
from threading import Event as ThreadEvent
from types import FrameType

from kubernetes import client, config

from deploy_annotator.config.settings import ConfigError, ControllerSettings, get_settings
from deploy_annotator.kube.cluster import ADAPTERS, KubernetesNamespaceReader
from deploy_annotator.lifecycle.gate import TrackingGate
from deploy_annotator.lifecycle.reconciler import LifecycleReconciler
from deploy_annotator.observability.logging import configure_logging, parse_level
from deploy_annotator.observability.metrics import start_metrics_server, stop_metrics_servers
from deploy_annotator.observability.telemetry import setup_tracing, shutdown_tracing
from deploy_annotator.orchestrator.controller import WorkloadController
from deploy_annotator.orchestrator.watcher import ClusterWatcher
from deploy_annotator.sinks.grafana import GrafanaAnnotationSink

SERVICE_NAME = "deploy-annotator"

logger = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return version(SERVICE_NAME)
    except PackageNotFoundError:
        return "0.0.0+local"


def load_kube_config() -> str:
    """Prefer in-cluster credentials, fall back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        return "in-cluster"
    except config.ConfigException:
        config.load_kube_config()
        return "kubeconfig"


def build_controllers(
    settings: ControllerSettings,
    sink: GrafanaAnnotationSink,
    core_api: client.CoreV1Api,
    apps_api: client.AppsV1Api,
) -> list[WorkloadController]:
    gate = TrackingGate(
        label_key=settings.namespace_label_key, label_value=settings.namespace_label_value
    )
    namespaces = KubernetesNamespaceReader(core_api)
    controllers = []
    for kind in settings.enabled_kinds():
        adapter = ADAPTERS[kind](apps_api)
        reconciler = LifecycleReconciler(
            adapter,
            namespaces,
            sink,
            gate=gate,
            requeue_delay=settings.requeue_delay_seconds,
        )
        controllers.append(
            WorkloadController(adapter, reconciler, workers=settings.max_concurrent_reconciles)
        )
    return controllers


def run(settings: ControllerSettings, stop_event: ThreadEvent) -> None:
    source = load_kube_config()
    logger.info("kube.config_loaded", extra={"extra": {"source": source}})
    core_api = client.CoreV1Api()
    apps_api = client.AppsV1Api()
    sink = GrafanaAnnotationSink(
        settings.grafana_url,
        settings.grafana_api_key,
        http_timeout=settings.http_timeout_seconds,
        call_timeout=settings.sink_timeout_seconds,
    )
    controllers = build_controllers(settings, sink, core_api, apps_api)
    watcher = ClusterWatcher(controllers, core_api=core_api, apps_api=apps_api)
    try:
        for controller in controllers:
            controller.start(stop_event)
        watcher.start(stop_event)
        logger.info(
            "controller.started",
            extra={"extra": {"kinds": [controller.kind.value for controller in controllers]}},
        )
        stop_event.wait()
    finally:
        logger.info("controller.stopping")
        watcher.stop()
        for controller in controllers:
            controller.stop()
        sink.close()


def main() -> int:
    try:
        settings = get_settings()
        settings.enabled_kinds()
    except ConfigError as exc:
        configure_logging()
        logger.error("config.invalid", extra={"extra": {"error": str(exc)}})
        return 1

    configure_logging(parse_level(settings.log_level), settings.log_development)
    setup_tracing(
        SERVICE_NAME,
        enabled=settings.tracing_enabled,
        service_version=_package_version(),
        kinds=[kind.value for kind in settings.enabled_kinds()],
    )
    logger.info(
        "service.starting",
        extra={
            "extra": {
                "version": _package_version(),
                "python": platform.python_version(),
                "metrics_port": settings.metrics_port,
                "health_port": settings.health_port,
            }
        },
    )
    start_metrics_server(settings.metrics_port)
    start_metrics_server(settings.health_port)

    stop_event = ThreadEvent()

    def _shutdown(signum: int, frame: FrameType | None) -> None:
        logger.info("signal.received", extra={"extra": {"signal": signal.Signals(signum).name}})
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    try:
        run(settings, stop_event)
    except Exception:  # noqa: BLE001
        logger.exception("service.failed")
        return 1
    finally:
        stop_metrics_servers()
        shutdown_tracing()
    logger.info("service.stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
