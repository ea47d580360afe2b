from stockfighter.client import AUTH_HEADER, ClientConfig, StockfighterClient
from stockfighter.errors import ApiError, DecodeError, StockfighterError, TransportError
from stockfighter.models import (
    Direction,
    Execution,
    Fill,
    Order,
    Orderbook,
    OrderbookEntry,
    OrderType,
    Quote,
    Stock,
)

__all__ = [
    "AUTH_HEADER",
    "ApiError",
    "ClientConfig",
    "DecodeError",
    "Direction",
    "Execution",
    "Fill",
    "Order",
    "Orderbook",
    "OrderbookEntry",
    "OrderType",
    "Quote",
    "Stock",
    "StockfighterClient",
    "StockfighterError",
    "TransportError",
]
