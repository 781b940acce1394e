"""BOSTrade — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
paper (BingX VST) and live modes.
"""

import logging
import os

from fastapi import FastAPI

from bostrade.api.routers import router

app = FastAPI(title="BOSTrade Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("bostrade")

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


def warn_if_live(mode: str) -> bool:
    """Log a prominent warning when running in live mode.

    Returns ``True`` if *mode* is ``"live"``.
    """
    if mode == "live":
        logger.warning(
            "LIVE TRADING MODE — Real money at risk! Starting in 5 seconds..."
        )
        return True
    return False


def configure_logging(level: str, log_file: str | None = None) -> None:
    """Console logging plus an optional plain-text log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=_LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and start the engine (and API server)."""
    import argparse
    import asyncio
    import dataclasses
    import signal
    import time

    from bostrade.api.routers import configure_routers
    from bostrade.broker.bingx_client import BingXClient
    from bostrade.config import load_config
    from bostrade.engine import TradingEngine
    from bostrade.repos.trade_journal import TradeJournal
    from bostrade.strategy.registry import STRATEGY_REGISTRY, get_strategy

    parser = argparse.ArgumentParser(description="BOSTrade trading bot")
    parser.add_argument(
        "--mode",
        choices=["paper", "live"],
        default=None,
        help="Trading mode; overrides TEST_MODE (paper = BingX VST)",
    )
    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGY_REGISTRY),
        default=None,
        help="Strategy to run; overrides STRATEGY",
    )
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the trading engine without the API server",
    )
    args = parser.parse_args()

    config = load_config()
    overrides = {}
    if args.mode is not None:
        overrides["test_mode"] = args.mode == "paper"
    if args.strategy is not None:
        overrides["strategy"] = args.strategy
    if overrides:
        config = dataclasses.replace(config, **overrides)

    configure_logging(config.log_level, config.log_file)
    mode = "paper" if config.test_mode else "live"

    if warn_if_live(mode):
        time.sleep(5)

    broker = BingXClient(config)
    journal = TradeJournal(config.trades_file)
    engine = TradingEngine(
        config=config,
        broker=broker,
        strategy=get_strategy(config.strategy),
        journal=journal,
    )
    configure_routers(journal=journal, engine=engine)

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received — stopping gracefully.")
        engine.stop()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    if args.engine_only:
        asyncio.run(_run_engine_only(engine, mode))
    else:
        asyncio.run(_run_with_server(engine, mode, config.health_port))


async def _run_with_server(engine, mode: str, port: int = 8080) -> None:
    """Start the API server and the trading engine concurrently."""
    import asyncio
    import uvicorn

    logger.info("Starting BOSTrade in %s mode on %s.", mode, engine.symbol)

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvi_config)

    async def _run_engine():
        await engine.initialize()
        try:
            await engine.run()
        finally:
            server.should_exit = True

    logger.info("Status API available at http://localhost:%d", port)
    results = await asyncio.gather(
        server.serve(),
        _run_engine(),
        return_exceptions=True,
    )
    logger.info("BOSTrade stopped. Results: %s", results)


async def _run_engine_only(engine, mode: str) -> None:
    """Run the trading engine without starting the API server."""
    logger.info("Starting BOSTrade engine (no API) in %s mode.", mode)
    await engine.initialize()
    await engine.run()
    logger.info("BOSTrade engine stopped.")


if __name__ == "__main__":
    _run_cli()
