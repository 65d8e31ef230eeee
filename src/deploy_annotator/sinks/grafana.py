"""Grafana annotations API client."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from deploy_annotator.lifecycle.sanitize import bounded
from deploy_annotator.sinks.base import AnnotationSinkError

DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_CALL_TIMEOUT = 20.0


class GrafanaAnnotationSink:
    """AnnotationSink backed by Grafana's HTTP API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        http_timeout: float = DEFAULT_HTTP_TIMEOUT,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._call_timeout = min(call_timeout, http_timeout)
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=http_timeout,
            transport=transport,
        )

    def create(self, title: str, tags: list[str], body: str, timestamp: datetime) -> int:
        payload = {
            "what": title,
            "tags": tags,
            "data": body,
            "when": int(timestamp.timestamp()),
        }
        data = self._request("POST", "/api/annotations/graphite", payload)
        try:
            return int(data["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise AnnotationSinkError(f"decode: unexpected response {bounded(str(data))}") from exc

    def extend_to_region(self, annotation_id: int, end_timestamp: datetime, tags: list[str]) -> None:
        payload = {
            "timeEnd": int(end_timestamp.timestamp() * 1000),
            "isRegion": True,
            "tags": tags,
        }
        self._request("PATCH", f"/api/annotations/{annotation_id}", payload)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, payload: dict[str, Any]) -> Any:
        try:
            resp = self._client.request(method, path, json=payload, timeout=self._call_timeout)
        except httpx.HTTPError as exc:
            raise AnnotationSinkError(f"send: {exc}") from exc
        if resp.status_code != 200:
            raise AnnotationSinkError(
                f"grafana {resp.status_code}: {bounded(resp.text)}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise AnnotationSinkError(f"decode: {bounded(resp.text)}") from exc
