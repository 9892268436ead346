"""Health and metrics endpoints for the mailbox monitor."""

from __future__ import annotations

import logging
from typing import Any, Callable

from aiohttp import web

logger = logging.getLogger(__name__)

METRIC_PREFIX = "vervain_"


def _flatten(data: dict, prefix: str = "") -> list[tuple[str, float]]:
    items: list[tuple[str, float]] = []
    for key, value in data.items():
        name = f"{prefix}{key}".replace(".", "_").replace("-", "_")
        if isinstance(value, bool):
            items.append((name, int(value)))
        elif isinstance(value, (int, float)):
            items.append((name, value))
        elif isinstance(value, dict):
            items.extend(_flatten(value, f"{name}_"))
    return items


def render_metrics(data: dict[str, Any]) -> str:
    """Render numeric fields (nested dicts flattened) as text metrics."""
    lines = [f"{METRIC_PREFIX}{name} {value}" for name, value in _flatten(data)]
    if not lines:
        lines.append(f'{METRIC_PREFIX}status{{state="empty"}} 1')
    return "\n".join(lines) + "\n"


class HealthServer:
    """Serves ``/healthz`` (JSON) and ``/metrics`` (text) from a status callback."""

    def __init__(
        self,
        host: str,
        port: int,
        status_provider: Callable[[], dict],
        enabled: bool = True,
    ):
        self.host = host
        self.port = port
        self.status_provider = status_provider
        self.enabled = enabled
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        if not self.enabled:
            logger.info("Health server disabled")
            return

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info("Health server listening on %s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    def _snapshot(self) -> dict:
        try:
            return dict(self.status_provider() or {})
        except Exception as exc:
            logger.warning("Status provider failed: %s", exc)
            return {"status": "error", "message": str(exc)}

    async def _handle_health(self, request: web.Request) -> web.Response:
        payload = self._snapshot()
        payload.setdefault("status", "ok")
        return web.json_response(payload)

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        return web.Response(text=render_metrics(self._snapshot()))
