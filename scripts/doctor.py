from __future__ import annotations
import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


async def check_api(client) -> int:
    """API and venue heartbeats; neither needs a key."""
    from stockfighter.errors import StockfighterError

    failures = 0
    cfg = client.config
    print(f"1. Checking API at {cfg.base_url} ...")
    try:
        if await client.heartbeat():
            print("   ✅ API is up.")
        else:
            print("   ❌ FAILED: API heartbeat returned ok=false.")
            failures += 1
    except StockfighterError as e:
        print(f"   ❌ FAILED: Could not reach the API: {e}")
        failures += 1

    print(f"2. Checking venue '{cfg.venue}' ...")
    if not cfg.venue:
        print("   ⚪️ SKIPPED: no venue configured. Set STOCKFIGHTER_VENUE or STOCKFIGHTER_ENV=test.")
        return failures
    try:
        if await client.venue_heartbeat():
            print("   ✅ Venue is up.")
        else:
            print("   ❌ FAILED: venue heartbeat returned ok=false.")
            failures += 1
    except StockfighterError as e:
        print(f"   ❌ FAILED: Venue heartbeat failed: {e}")
        failures += 1
    return failures


async def check_api_key(client) -> int:
    """The key is accepted when the account's order list can be read."""
    from stockfighter.errors import ApiError, StockfighterError

    cfg = client.config
    print("3. Checking API key ...")
    if not cfg.api_key:
        print("   ⚪️ SKIPPED: STOCKFIGHTER_API_KEY is not set; order calls will be rejected.")
        return 0
    if not cfg.account or not cfg.venue:
        print("   ⚪️ SKIPPED: account or venue is missing.")
        return 0
    try:
        orders = await client.account_order_status()
        print(f"   ✅ Key accepted for account {cfg.account}. Orders on {cfg.venue}: {len(orders)}")
        return 0
    except ApiError as e:
        print(f"   ❌ FAILED: Venue rejected the key: {e}")
    except StockfighterError as e:
        print(f"   ❌ FAILED: Order status request failed: {type(e).__name__}: {e}")
    return 1


def check_tracing() -> int:
    from stockfighter.settings import settings

    telemetry = settings.telemetry
    print("4. Checking tracing configuration ...")
    print(f"   - Tracing Provider: {telemetry.tracing_provider}")
    if "local" not in telemetry.tracing_provider:
        return 0
    local_path = ROOT / telemetry.local.path
    print(f"   - Local tracing path: {local_path}")
    try:
        local_path.mkdir(parents=True, exist_ok=True)
        (local_path / ".writable_test").touch()
        (local_path / ".writable_test").unlink()
        print("   ✅ Local tracing path is writable.")
        return 0
    except OSError as e:
        print(f"   ❌ FAILED: Local tracing path is not writable: {e}")
        return 1


async def _run(client) -> int:
    async with client:
        failures = await check_api(client)
        failures += await check_api_key(client)
    return failures


def run_diagnostics():
    """
    Runs a series of checks to diagnose common configuration and connectivity issues.
    """
    from stockfighter.client import StockfighterClient
    from stockfighter.settings import settings

    client = StockfighterClient.from_settings(settings)
    failures = asyncio.run(_run(client))
    failures += check_tracing()

    cfg = client.config
    print("5. Active configuration ...")
    print(f"   - Env: {settings.api.env}")
    print(f"   - Account: {cfg.account or '(unset)'}")
    print(f"   - Venue: {cfg.venue or '(unset)'}")
    print(f"   - Symbol: {cfg.symbol or '(unset)'}")

    print("-" * 20)
    if failures > 0:
        print(f"🔴 Found {failures} critical issue(s).")
        sys.exit(1)
    else:
        print("🟢 All checks passed.")


if __name__ == "__main__":
    run_diagnostics()
