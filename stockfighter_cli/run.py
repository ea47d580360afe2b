import asyncio
import argparse
import sys

from stockfighter.client import StockfighterClient
from stockfighter.errors import StockfighterError
from stockfighter.models import Direction, OrderType
from stockfighter.settings import settings
from stockfighter.telemetry import configure_logging


def pretty_print(description, value):
    print(f"{description} {value!r}", flush=True)


async def run_demo(client: StockfighterClient, place_orders: bool = True, ticks: int = 0, wait_seconds: float = 5.0) -> int:
    """Walk through the public calls, then (with an API key) one order round trip."""
    # Market data calls record their failure on client.err; keep going so every
    # endpoint gets exercised, and report at the end.
    quote = None
    for description, call in (
        ("API is up:", client.heartbeat),
        ("venue is up:", client.venue_heartbeat),
        ("available stocks:", client.available_stocks),
        ("current orderbook:", client.orderbook),
        ("quote:", client.quote),
    ):
        try:
            value = await call()
        except StockfighterError as e:
            pretty_print(f"{description.rstrip(':')} failed:", e)
            continue
        pretty_print(description, value)
        if description == "quote:":
            quote = value

    if ticks > 0:
        received = 0
        feed = client.tickertape()
        try:
            async for tick in feed:
                pretty_print("tick:", tick)
                received += 1
                if received >= ticks:
                    break
        except StockfighterError as e:
            pretty_print("tickertape failed:", e)
        finally:
            await feed.aclose()

    if not place_orders or not client.config.api_key:
        return 1 if client.err else 0

    price = quote.last if quote is not None else 0
    try:
        order = await client.new_order(price, 100, Direction.BUY, OrderType.LIMIT)
    except StockfighterError:
        pretty_print("we got an error:", client.err)
        return 1

    pretty_print("created order:", order)
    print(f"waiting for {wait_seconds:g} seconds before querying order status", flush=True)
    await asyncio.sleep(wait_seconds)
    try:
        pretty_print("status of order:", await client.order_status(order.id))
        pretty_print("canceled order:", await client.cancel_order(order.id))
    except StockfighterError:
        pretty_print("we got an error:", client.err)
        return 1
    return 1 if client.err else 0


async def _main(args) -> int:
    if args.test:
        client = StockfighterClient.for_testing(api_key=args.api_key or settings.api.api_key or "")
    else:
        client = StockfighterClient.from_settings(settings)
        if args.api_key:
            client.set_api_key(args.api_key)
    async with client:
        return await run_demo(client, place_orders=not args.no_orders, ticks=args.ticks, wait_seconds=args.wait)


def main():
    parser = argparse.ArgumentParser(description="Stockfighter API demo")
    parser.add_argument("--test", action="store_true", help="use the TESTEX practice venue")
    parser.add_argument("--api-key", default=None)
    parser.add_argument("--no-orders", action="store_true", help="skip calls that need an API key")
    parser.add_argument("--ticks", type=int, default=0, help="number of tickertape quotes to print")
    parser.add_argument("--wait", type=float, default=5.0, help="seconds between placing and querying the order")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    configure_logging(args.log_level)

    try:
        sys.exit(asyncio.run(_main(args)))
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
