"""
Realtime publisher: forwards committed ledger events to NATS.
If NATS is not configured, all functions are safe no-ops.
"""
from __future__ import annotations

import asyncio
import json
import os
import threading
from datetime import datetime, timezone
from typing import Any, Optional

from .logging_utils import get_logger

logger = get_logger("playledger.realtime")

_nc = None  # type: ignore
_bg_loop: Optional[asyncio.AbstractEventLoop] = None
_bg_lock = threading.Lock()

try:
    import nats
except Exception:  # pragma: no cover - optional dep
    nats = None  # type: ignore

SUBJECT_PREFIX = "playledger.events"


def enabled() -> bool:
    return nats is not None and bool(os.getenv("NATS_URL"))


async def _connect_once() -> None:
    global _nc
    if _nc or not nats:
        return
    url = os.getenv("NATS_URL")
    if not url:
        return
    try:
        _nc = await nats.connect(url, name="playledger")
    except Exception as exc:
        logger.warning("nats_connect_failed", extra={"url": url, "error": str(exc)})
        _nc = None


def envelope(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "v": 1,
        "type": payload.get("type", "event"),
        "id": os.urandom(8).hex(),
        "ts": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }


async def publish_event(payload: dict[str, Any]) -> None:
    """Publish one event payload on ``playledger.events.<type>``."""
    await _connect_once()
    if not _nc:
        return
    env = envelope(payload)
    try:
        await _nc.publish(f"{SUBJECT_PREFIX}.{env['type']}", json.dumps(env).encode("utf-8"))
    except Exception as exc:
        logger.warning("nats_publish_failed", extra={"event": env["type"], "error": str(exc)})


def publish_event_sync(payload: dict[str, Any]) -> None:
    """Sync helper that runs the async publisher. Safe if no loop or NATS."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(publish_event(payload))
        return
    loop.create_task(publish_event(payload))


def _background_loop() -> asyncio.AbstractEventLoop:
    """Event loop on a daemon thread, started on first use."""
    global _bg_loop
    with _bg_lock:
        if _bg_loop is None:
            _bg_loop = asyncio.new_event_loop()
            threading.Thread(target=_bg_loop.run_forever, name="playledger-nats", daemon=True).start()
        return _bg_loop


def attach(bus, loop: Optional[asyncio.AbstractEventLoop] = None) -> Optional[Any]:
    """Subscribe the NATS sink when NATS_URL is set; returns the unsubscribe handle.

    Publishing is always scheduled on an event loop (``loop`` when it is
    running, else a background one), so ledger operations never wait on
    the network.
    """
    if not enabled():
        return None

    def nats_subscriber(event: Any) -> None:
        target = loop if loop is not None and loop.is_running() else _background_loop()
        asyncio.run_coroutine_threadsafe(publish_event(event.to_dict()), target)

    logger.info("nats_sink_attached", extra={"url": os.getenv("NATS_URL")})
    return bus.subscribe(nats_subscriber)
