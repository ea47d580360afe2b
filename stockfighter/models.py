from __future__ import annotations
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Optional, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

_FRACTION = re.compile(r"(\.\d{6})\d+")


def _trim_fraction(value: Any) -> Any:
    # The venue reports nanoseconds; datetime holds microseconds
    if isinstance(value, str):
        return _FRACTION.sub(r"\1", value, count=1)
    return value


Timestamp = Annotated[Optional[datetime], BeforeValidator(_trim_fraction)]


def _none_as_empty(value: Any) -> Any:
    # Empty lists arrive as null
    return [] if value is None else value


T = TypeVar("T")
NullableList = Annotated[List[T], BeforeValidator(_none_as_empty)]


class OrderType(str, Enum):
    LIMIT = "limit"
    MARKET = "market"
    FILL_OR_KILL = "fill-or-kill"
    IMMEDIATE_OR_CANCEL = "immediate-or-cancel"


class Direction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class WireModel(BaseModel):
    """Base for venue payloads: wire names are aliases, unknown keys are ignored."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OrderRequest(WireModel):
    account: str
    venue: str
    symbol: str
    price: int
    quantity: int = Field(alias="qty")
    direction: Direction
    order_type: OrderType = Field(alias="orderType")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Fill(WireModel):
    """A (partial) fulfillment of an order."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    price: int = 0
    quantity: int = Field(0, alias="qty")
    ts: Timestamp = None


class Order(WireModel):
    account: str = ""
    venue: str = ""
    symbol: str = ""
    price: int = 0
    original_quantity: int = Field(0, alias="originalQty")
    quantity: int = Field(0, alias="qty")
    direction: Optional[Direction] = None
    order_type: Optional[OrderType] = Field(None, alias="orderType")
    id: int = 0
    ts: Timestamp = None
    fills: NullableList[Fill] = []
    total_filled: int = Field(0, alias="totalFilled")
    open: bool = False


class Stock(WireModel):
    name: str = ""
    symbol: str = ""


class OrderbookEntry(WireModel):
    price: int = 0
    quantity: int = Field(0, alias="qty")
    is_buy: bool = Field(False, alias="isBuy")


class Orderbook(WireModel):
    venue: str = ""
    symbol: str = ""
    bids: NullableList[OrderbookEntry] = []
    asks: NullableList[OrderbookEntry] = []
    ts: Timestamp = None


class Quote(WireModel):
    symbol: str = ""
    venue: str = ""
    # bid/ask/last_trade are absent while the corresponding side is empty
    bid: Optional[int] = None
    ask: Optional[int] = None
    bid_size: int = Field(0, alias="bidSize")
    ask_size: int = Field(0, alias="askSize")
    bid_depth: int = Field(0, alias="bidDepth")
    ask_depth: int = Field(0, alias="askDepth")
    last: int = 0
    last_size: int = Field(0, alias="lastSize")
    last_trade: Timestamp = Field(None, alias="lastTrade")
    quote_time: Timestamp = Field(None, alias="quoteTime")


class Execution(WireModel):
    account: str = ""
    venue: str = ""
    symbol: str = ""
    order: Order = Order()
    standing_id: int = Field(0, alias="standingId")
    incoming_id: int = Field(0, alias="incomingId")
    price: int = 0
    filled: int = 0
    filled_at: Timestamp = Field(None, alias="filledAt")
    standing_complete: bool = Field(False, alias="standingComplete")
    incoming_complete: bool = Field(False, alias="incomingComplete")


# --- Response envelopes ---
class Envelope(WireModel):
    ok: bool = False
    error: str = ""


class HeartbeatResult(Envelope):
    venue: str = ""


class StocksResult(Envelope):
    symbols: NullableList[Stock] = []


class AllOrdersStatusResult(Envelope):
    venue: str = ""
    orders: NullableList[Order] = []


class QuoteMessage(Envelope):
    quote: Quote = Quote()
