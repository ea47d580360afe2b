"""
StockfighterClient: async client for the venue simulator's HTTP API.

One method per remote endpoint. Every call:
- snapshots the current ClientConfig under the lock,
- sends the request with the X-Starfighter-Authorization header,
- decodes the JSON body into the matching model, or the venue's
  ``{"ok": false, "error": ...}`` body into an ApiError,
- records the first error it ever sees in ``client.err`` (sticky, never
  cleared by later calls) and raises it.
"""
from __future__ import annotations
import logging
import threading
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from stockfighter import stream
from stockfighter.errors import ApiError, DecodeError, StockfighterError, TransportError
from stockfighter.models import (
    AllOrdersStatusResult,
    Direction,
    Execution,
    HeartbeatResult,
    Order,
    Orderbook,
    OrderRequest,
    OrderType,
    Quote,
    Stock,
    StocksResult,
)
from stockfighter.settings import Settings, TEST_ACCOUNT, TEST_SYMBOL, TEST_VENUE
from stockfighter.telemetry import Tracer, tracer as default_tracer

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Starfighter-Authorization"
DEFAULT_BASE_URL = "https://api.stockfighter.io/ob/api/"
DEFAULT_WS_BASE_URL = "wss://api.stockfighter.io/ob/api/ws/"

M = TypeVar("M", bound=BaseModel)


class ClientConfig(BaseModel):
    """Immutable connection settings; the client swaps the whole value on change."""
    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    account: str = ""
    venue: str = ""
    symbol: str = ""
    base_url: str = DEFAULT_BASE_URL
    ws_base_url: str = DEFAULT_WS_BASE_URL
    timeout_seconds: float = 30.0

    def replace(self, **changes: Any) -> "ClientConfig":
        return self.model_copy(update=changes)


class StockfighterClient:
    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        tracer: Optional[Tracer] = None,
    ) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._err: Optional[StockfighterError] = None
        self._tracer = tracer or default_tracer
        self._http = httpx.AsyncClient(timeout=config.timeout_seconds, transport=transport)

    # ----- constructors -----
    @classmethod
    def from_settings(cls, s: Settings, **kwargs: Any) -> "StockfighterClient":
        cfg = ClientConfig(
            api_key=s.api.api_key or "",
            account=s.api.account,
            venue=s.api.venue,
            symbol=s.api.symbol,
            base_url=s.api.base_url,
            ws_base_url=s.api.ws_base_url,
            timeout_seconds=s.api.timeout_seconds,
        )
        return cls(cfg, **kwargs)

    @classmethod
    def for_testing(cls, api_key: str = "", **kwargs: Any) -> "StockfighterClient":
        """A client pointed at the practice venue (TESTEX / FOOBAR / EXB123456)."""
        cfg = ClientConfig(api_key=api_key, account=TEST_ACCOUNT, venue=TEST_VENUE, symbol=TEST_SYMBOL)
        return cls(cfg, **kwargs)

    async def __aenter__(self) -> "StockfighterClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ----- configuration -----
    @property
    def config(self) -> ClientConfig:
        with self._lock:
            return self._config

    def _update(self, **changes: Any) -> None:
        with self._lock:
            self._config = self._config.replace(**changes)

    def set_api_key(self, api_key: str) -> None:
        self._update(api_key=api_key)

    def set_account(self, account: str) -> None:
        self._update(account=account)

    def set_venue(self, venue: str) -> None:
        self._update(venue=venue)

    def set_symbol(self, symbol: str) -> None:
        self._update(symbol=symbol)

    def set_base_url(self, base_url: str) -> None:
        self._update(base_url=base_url)

    # ----- sticky error -----
    @property
    def err(self) -> Optional[StockfighterError]:
        """The first error recorded by any call on this client, or None."""
        with self._lock:
            return self._err

    def clear_err(self) -> None:
        with self._lock:
            self._err = None

    def _set_err(self, err: StockfighterError) -> None:
        with self._lock:
            if self._err is None:
                self._err = err

    # ----- plumbing -----
    @staticmethod
    def _url(cfg: ClientConfig, path: str) -> str:
        return cfg.base_url.rstrip("/") + "/" + path

    @staticmethod
    def _headers(cfg: ClientConfig) -> Dict[str, str]:
        return {AUTH_HEADER: cfg.api_key} if cfg.api_key else {}

    @staticmethod
    def _decode(res: httpx.Response) -> Any:
        status = f"{res.status_code} {res.reason_phrase}"
        try:
            payload = res.json()
        except ValueError as e:
            if res.status_code != 200:
                raise ApiError(res.text.strip() or res.reason_phrase, status_code=res.status_code, status=status) from e
            raise DecodeError(f"invalid JSON from {res.request.url}: {e}") from e

        if res.status_code != 200:
            message = payload.get("error", "") if isinstance(payload, dict) else str(payload)
            raise ApiError(message or res.reason_phrase, status_code=res.status_code, status=status, response=payload)
        if isinstance(payload, dict) and payload.get("ok") is False:
            raise ApiError(payload.get("error") or "venue reported ok=false", status_code=res.status_code, status=status, response=payload)
        return payload

    async def _call(
        self,
        method: str,
        endpoint: str,
        cfg: ClientConfig,
        path: str,
        model: Type[M],
        body: Optional[dict] = None,
    ) -> M:
        url = self._url(cfg, path)
        event: Dict[str, Any] = {
            "event_type": "http_call",
            "method": method,
            "endpoint": endpoint,
            "url": url,
            "account": cfg.account,
            "venue": cfg.venue,
            "symbol": cfg.symbol,
        }
        start = time.monotonic()
        try:
            try:
                res = await self._http.request(
                    method, url, headers=self._headers(cfg), json=body, timeout=cfg.timeout_seconds
                )
            except httpx.HTTPError as e:
                raise TransportError(f"{method} {url} failed: {type(e).__name__}: {e}") from e

            event["status"] = res.status_code
            payload = self._decode(res)
            try:
                return model.model_validate(payload)
            except ValidationError as e:
                raise DecodeError(f"unexpected {model.__name__} payload from {url}: {e}") from e
        except StockfighterError as e:
            event["error_type"] = type(e).__name__
            event["error_message"] = str(e)
            self._set_err(e)
            logger.warning("%s %s failed: %s", method, endpoint, e)
            raise
        finally:
            event["latency_ms"] = round((time.monotonic() - start) * 1000, 1)
            self._tracer.log(event)

    async def _heartbeat(self, endpoint: str, cfg: ClientConfig, path: str) -> bool:
        # A 200 with ok=false means "down": recorded in err, reported as False
        try:
            res = await self._call("GET", endpoint, cfg, path, HeartbeatResult)
        except ApiError as e:
            if e.status_code == 200:
                return False
            raise
        return res.ok

    # ----- market data -----
    async def heartbeat(self) -> bool:
        """Whether the API is up."""
        cfg = self.config
        return await self._heartbeat("heartbeat", cfg, "heartbeat")

    async def venue_heartbeat(self) -> bool:
        """Whether the configured venue is up."""
        cfg = self.config
        return await self._heartbeat("venue_heartbeat", cfg, f"venues/{cfg.venue}/heartbeat")

    async def available_stocks(self) -> List[Stock]:
        """Symbols traded on the configured venue."""
        cfg = self.config
        res = await self._call("GET", "available_stocks", cfg, f"venues/{cfg.venue}/stocks", StocksResult)
        return res.symbols

    async def orderbook(self) -> Orderbook:
        cfg = self.config
        return await self._call(
            "GET", "orderbook", cfg, f"venues/{cfg.venue}/stocks/{cfg.symbol}", Orderbook
        )

    async def quote(self) -> Quote:
        cfg = self.config
        return await self._call(
            "GET", "quote", cfg, f"venues/{cfg.venue}/stocks/{cfg.symbol}/quote", Quote
        )

    # ----- orders -----
    async def new_order(self, price: int, quantity: int, direction: Direction, order_type: OrderType) -> Order:
        """
        Submit an order for the configured account, venue and symbol.
        Price is in cents.
        """
        cfg = self.config
        try:
            request = OrderRequest(
                account=cfg.account,
                venue=cfg.venue,
                symbol=cfg.symbol,
                price=price,
                quantity=quantity,
                direction=direction,
                order_type=order_type,
            )
        except ValidationError as e:
            err = StockfighterError(f"invalid order: {e}")
            self._set_err(err)
            raise err from e
        return await self._call(
            "POST",
            "new_order",
            cfg,
            f"venues/{cfg.venue}/stocks/{cfg.symbol}/orders",
            Order,
            body=request.to_wire(),
        )

    async def cancel_order(self, order_id: int) -> Order:
        cfg = self.config
        return await self._call(
            "DELETE", "cancel_order", cfg, f"venues/{cfg.venue}/stocks/{cfg.symbol}/orders/{order_id}", Order
        )

    async def order_status(self, order_id: int) -> Order:
        cfg = self.config
        return await self._call(
            "GET", "order_status", cfg, f"venues/{cfg.venue}/stocks/{cfg.symbol}/orders/{order_id}", Order
        )

    async def account_order_status(self) -> List[Order]:
        """All orders of the configured account on the configured venue."""
        cfg = self.config
        res = await self._call(
            "GET",
            "account_order_status",
            cfg,
            f"venues/{cfg.venue}/accounts/{cfg.account}/orders",
            AllOrdersStatusResult,
        )
        return res.orders

    async def stock_order_status(self) -> List[Order]:
        """All orders of the configured account in the configured symbol."""
        cfg = self.config
        res = await self._call(
            "GET",
            "stock_order_status",
            cfg,
            f"venues/{cfg.venue}/accounts/{cfg.account}/stocks/{cfg.symbol}/orders",
            AllOrdersStatusResult,
        )
        return res.orders

    # ----- websocket feeds -----
    def tickertape(self, symbol: Optional[str] = None) -> AsyncIterator[Quote]:
        """Quotes for the whole venue, or for one symbol when given."""
        cfg = self.config
        return stream.subscribe(
            stream.tickertape_url(cfg.ws_base_url, cfg.account, cfg.venue, symbol),
            stream.parse_quote,
            on_error=self._set_err,
            tracer=self._tracer,
        )

    def executions(self, symbol: Optional[str] = None) -> AsyncIterator[Execution]:
        """Fills on the configured account, venue-wide or for one symbol."""
        cfg = self.config
        return stream.subscribe(
            stream.executions_url(cfg.ws_base_url, cfg.account, cfg.venue, symbol),
            stream.parse_execution,
            on_error=self._set_err,
            tracer=self._tracer,
        )
