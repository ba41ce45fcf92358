"""HTTP exposition of Prometheus metrics and sync health for the agent."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Callable, Dict, Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

StatusProvider = Callable[[], Dict[str, object]]


async def _handle_metrics(_: web.Request) -> web.Response:
    payload = generate_latest()
    return web.Response(body=payload, headers={"Content-Type": CONTENT_TYPE_LATEST})


def _health_handler(status: Optional[StatusProvider]):
    async def _handle_health(_: web.Request) -> web.Response:
        body: Dict[str, object] = {"status": "ok"}
        if status is not None:
            body.update(status())
        return web.json_response(body)

    return _handle_health


def _resolve_host_port(
    host_override: Optional[str],
    port_override: Optional[int],
) -> tuple[str, int]:
    """Resolve listening address using overrides and environment variables."""

    env_host = os.getenv("AGENT_METRICS_HOST")
    env_port = os.getenv("AGENT_METRICS_PORT")

    host = host_override or env_host or "127.0.0.1"
    if port_override is not None:
        port = port_override
    elif env_port:
        port = int(env_port)
    else:
        port = 9108
    return host, port


def build_app(status: Optional[StatusProvider] = None) -> web.Application:
    app = web.Application()
    app.router.add_get("/metrics", _handle_metrics)
    app.router.add_get("/health", _health_handler(status))
    return app


async def metrics_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    *,
    status: Optional[StatusProvider] = None,
) -> None:
    """Run an aiohttp server that exposes Prometheus metrics and health."""

    listen_host, listen_port = _resolve_host_port(host, port)

    runner = web.AppRunner(build_app(status))
    await runner.setup()
    site = web.TCPSite(runner, listen_host, listen_port)
    await site.start()
    logging.info(
        "Prometheus metrics server listening on %s:%d", listen_host, listen_port
    )

    stop_event = asyncio.Event()
    try:
        await stop_event.wait()
    finally:
        await runner.cleanup()


__all__ = ["build_app", "metrics_server"]
