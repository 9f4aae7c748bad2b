"""
Entry point for the arbitrage service.

Usage:
    python -m solarb
    solarb  # if installed via pip
"""

import sys


# Try to use uvloop for better performance
try:
    import uvloop

    uvloop.install()
    UVLOOP_ENABLED = True
except ImportError:
    UVLOOP_ENABLED = False


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    import uvicorn

    from solarb import __version__
    from solarb.api.server import create_app
    from solarb.config.settings import get_settings
    from solarb.core.engine import TradingEngine
    from solarb.core.errors import KeyFormatError
    from solarb.telemetry.logger import setup_logging

    # Print banner
    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     SOLANA DEX ARBITRAGE SERVICE v{__version__:<22}      ║
║                                                               ║
║     Raydium <-> Pump.fun, web controlled                      ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )

    # Load settings
    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}")
        print("\nMake sure you have a .env file with:")
        print("  API_SECRET=shared_secret_for_trade_requests")
        print("  CUSTODIAL_SECRET_KEY=[64 comma-separated bytes, JSON array or base58]")
        print("  WHITELIST=mint1,mint2")
        return 1

    use_uvloop = UVLOOP_ENABLED and settings.use_uvloop

    # Print configuration summary
    print("Configuration:")
    print(f"  Mode:           {'DRY RUN' if settings.dry_run else 'LIVE TRADING'}")
    print(f"  Listen:         {settings.host}:{settings.port}")
    print(f"  Tokens:         {len(settings.whitelisted_mints)}")
    print(f"  Min profit:     {settings.min_profit_pct:.2f}%")
    print(f"  Fees+slippage:  {(settings.fee_rate_round_trip + settings.max_slippage) * 100:.2f}%")
    print(f"  Trade size:     {settings.trade_size_sol} SOL")
    print(f"  Loop interval:  {settings.loop_interval_seconds:.0f}s")
    print(f"  uvloop:         {'Enabled' if use_uvloop else 'Disabled'}")
    print()

    if not settings.dry_run:
        print("⚠️  WARNING: Live trading mode enabled!")
        print("    Real transactions will be signed and sent.")
        print()

    async_logger = setup_logging(
        level=settings.log_level,
        secrets=[
            settings.api_secret.get_secret_value(),
            settings.custodial_secret_key.get_secret_value(),
        ],
    )

    try:
        engine = TradingEngine(settings)
    except KeyFormatError as e:
        print(f"Custodial key error: {e}")
        async_logger.stop()
        return 1

    try:
        uvicorn.run(
            create_app(engine),
            host=settings.host,
            port=settings.port,
            loop="uvloop" if use_uvloop else "asyncio",
            log_level=settings.log_level.lower(),
        )
        return 0

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0

    finally:
        async_logger.stop()


if __name__ == "__main__":
    sys.exit(main())
