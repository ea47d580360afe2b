from __future__ import annotations
import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Callable, Dict, Optional, TypeVar

import websockets
from websockets.exceptions import WebSocketException
from pydantic import ValidationError

from stockfighter.errors import ApiError, DecodeError, StockfighterError, TransportError
from stockfighter.models import Envelope, Execution, Quote, QuoteMessage
from stockfighter.telemetry import Tracer

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _feed_url(ws_base_url: str, account: str, venue: str, feed: str, symbol: Optional[str]) -> str:
    url = f"{ws_base_url.rstrip('/')}/{account}/venues/{venue}/{feed}"
    if symbol:
        url += f"/stocks/{symbol}"
    return url


def tickertape_url(ws_base_url: str, account: str, venue: str, symbol: Optional[str] = None) -> str:
    return _feed_url(ws_base_url, account, venue, "tickertape", symbol)


def executions_url(ws_base_url: str, account: str, venue: str, symbol: Optional[str] = None) -> str:
    return _feed_url(ws_base_url, account, venue, "executions", symbol)


def _loads(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON frame: {e}") from e
    if not isinstance(msg, dict):
        raise DecodeError(f"unexpected frame: {raw!r}")
    try:
        envelope = Envelope.model_validate(msg)
    except ValidationError as e:
        raise DecodeError(f"unexpected frame: {e}") from e
    if "ok" in msg and not envelope.ok:
        raise ApiError(envelope.error or "venue reported ok=false", response=msg)
    return msg


def parse_quote(msg: Dict[str, Any]) -> Quote:
    """Tickertape frames wrap the quote: ``{"ok": true, "quote": {...}}``."""
    try:
        return QuoteMessage.model_validate(msg).quote
    except ValidationError as e:
        raise DecodeError(f"unexpected tickertape frame: {e}") from e


def parse_execution(msg: Dict[str, Any]) -> Execution:
    try:
        return Execution.model_validate(msg)
    except ValidationError as e:
        raise DecodeError(f"unexpected executions frame: {e}") from e


async def subscribe(
    url: str,
    parse: Callable[[Dict[str, Any]], T],
    on_error: Optional[Callable[[StockfighterError], None]] = None,
    tracer: Optional[Tracer] = None,
) -> AsyncIterator[T]:
    """
    Open a feed and yield one decoded message at a time.

    No reconnection: the generator ends when the venue closes the socket
    cleanly, and raises TransportError when the connection fails or drops.
    Errors are passed to ``on_error`` before being raised.
    """
    event: Dict[str, Any] = {"event_type": "stream", "method": "WS", "url": url}
    start = time.monotonic()
    received = 0
    try:
        try:
            async with websockets.connect(url) as ws:
                logger.info("Subscribed to %s", url)
                async for raw in ws:
                    received += 1
                    yield parse(_loads(raw))
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"feed {url} failed: {type(e).__name__}: {e}") from e
    except StockfighterError as e:
        event["error_type"] = type(e).__name__
        event["error_message"] = str(e)
        if on_error is not None:
            on_error(e)
        logger.warning("Feed %s failed after %d messages: %s", url, received, e)
        raise
    finally:
        event["status"] = received
        event["latency_ms"] = round((time.monotonic() - start) * 1000, 1)
        if tracer is not None:
            tracer.log(event)
