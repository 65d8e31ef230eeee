"""Controller settings assembled from the layered configuration sources."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import lru_cache
import os
from pathlib import Path

from deploy_annotator.config.adapter import (
    ConfigAdapter,
    ConfigSource,
    DotEnvConfigSource,
    EnvConfigSource,
)
from deploy_annotator.contracts.types import WorkloadKind

TRUTHY = {"1", "true", "yes", "y", "on"}
ALL_KINDS = tuple(kind.value for kind in WorkloadKind)


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or unusable."""


def _parse_bool(value: str | None, *, default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUTHY


def _parse_int(value: str | None, *, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_float(value: str | None, *, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _parse_csv(value: str | None, *, fallback: Iterable[str]) -> list[str]:
    if not value:
        return list(fallback)
    return [item.strip().lower() for item in value.split(",") if item.strip()]


@dataclass(slots=True)
class ControllerSettings:
    grafana_url: str
    grafana_api_key: str
    log_level: str = "info"
    log_development: bool = False
    max_concurrent_reconciles: int = 2
    http_timeout_seconds: float = 30.0
    sink_timeout_seconds: float = 20.0
    requeue_delay_seconds: float = 60.0
    namespace_label_key: str = "deployment-annotator"
    namespace_label_value: str = "enabled"
    metrics_port: int = 8081
    health_port: int = 8080
    watch_kinds: list[str] = field(default_factory=lambda: list(ALL_KINDS))
    tracing_enabled: bool = False

    def enabled_kinds(self) -> list[WorkloadKind]:
        """Configured kinds in declaration order, unknown names rejected."""
        unknown = sorted(set(self.watch_kinds) - set(ALL_KINDS))
        if unknown:
            raise ConfigError(f"unknown WATCH_KINDS entries: {', '.join(unknown)}")
        return [kind for kind in WorkloadKind if kind.value in self.watch_kinds]


def default_adapter() -> ConfigAdapter:
    sources: list[ConfigSource] = [EnvConfigSource()]
    sources.append(DotEnvConfigSource(path=Path(os.getenv("DOTENV_PATH", ".env"))))
    return ConfigAdapter(tuple(sources))


def load_settings(adapter: ConfigAdapter) -> ControllerSettings:
    """Build settings from ``adapter``; missing Grafana access is fatal."""
    grafana_url = (adapter.get("GRAFANA_URL") or "").strip()
    grafana_api_key = (adapter.get("GRAFANA_API_KEY") or "").strip()
    if not grafana_url:
        raise ConfigError("GRAFANA_URL is not configured")
    if not grafana_api_key:
        raise ConfigError("GRAFANA_API_KEY is not configured")
    return ControllerSettings(
        grafana_url=grafana_url,
        grafana_api_key=grafana_api_key,
        log_level=(adapter.get("LOG_LEVEL", "info") or "info").strip().lower(),
        log_development=_parse_bool(adapter.get("LOG_DEVELOPMENT")),
        max_concurrent_reconciles=max(
            _parse_int(adapter.get("MAX_CONCURRENT_RECONCILES"), default=2), 1
        ),
        http_timeout_seconds=_parse_float(adapter.get("HTTP_TIMEOUT_SECONDS"), default=30.0),
        sink_timeout_seconds=_parse_float(adapter.get("SINK_TIMEOUT_SECONDS"), default=20.0),
        requeue_delay_seconds=_parse_float(adapter.get("REQUEUE_DELAY_SECONDS"), default=60.0),
        namespace_label_key=adapter.get("NAMESPACE_LABEL_KEY") or "deployment-annotator",
        namespace_label_value=adapter.get("NAMESPACE_LABEL_VALUE") or "enabled",
        metrics_port=_parse_int(adapter.get("METRICS_PORT"), default=8081),
        health_port=_parse_int(adapter.get("HEALTH_PORT"), default=8080),
        watch_kinds=_parse_csv(adapter.get("WATCH_KINDS"), fallback=ALL_KINDS),
        tracing_enabled=_parse_bool(adapter.get("TRACING_ENABLED")),
    )


@lru_cache
def get_settings() -> ControllerSettings:
    return load_settings(default_adapter())
