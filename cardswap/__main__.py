"""
CardSwap CLI.

Usage:
    python3 -m cardswap repl        Interactive session in the terminal
    python3 -m cardswap serve       Start the HTTP API (foreground)
    python3 -m cardswap variants    List product variants
    python3 -m cardswap config      Show effective configuration
"""

import asyncio
import json
import logging
import sys

from .config import get_config, list_variants
from .logger import configure_logging

log = logging.getLogger("cardswap")


async def cmd_repl():
    """Run the interactive REPL."""
    from cli.repl import CardSwapREPL

    config = get_config()
    configure_logging(config, file_only=True)

    repl = CardSwapREPL(config)
    await repl.initialize()
    await repl.run()


async def cmd_serve():
    """Start the HTTP API server."""
    import uvicorn

    config = get_config()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    configure_logging(config, file_only=False)

    print("CardSwap API v1.0.0")
    print(f"  Host: {config.host}:{config.port}")
    print(f"  Variant: {config.variant} ({config.locale})")
    print(f"  Model: {config.image_model} @ {config.image_size}")
    print()

    server_config = uvicorn.Config(
        "api.server:app",
        host=config.host,
        port=config.port,
        log_level="info",
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def cmd_variants():
    for name, v in list_variants().items():
        print(f"  {name:<12} {v['description']}")


async def cmd_config():
    print(json.dumps(get_config().to_dict(), indent=2, ensure_ascii=False))


COMMANDS = {
    "repl": cmd_repl,
    "serve": cmd_serve,
    "variants": cmd_variants,
    "config": cmd_config,
}


def main():
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        print(__doc__)
        sys.exit(1)

    try:
        asyncio.run(COMMANDS[sys.argv[1]]())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
