"""
python -m gemini_proxy: dispatch one envelope from the command line.

Reads an inbound envelope from stdin (or the file given as the first
argument), sends it through the dispatcher with state built from the
environment, and prints the outbound envelope to stdout.

Usage:
    export GOOGLE_API_KEY=...
    echo '{"ListModels": null}' | python -m gemini_proxy
    python -m gemini_proxy request.json
"""

import asyncio
import logging
import sys
from pathlib import Path

from gemini_proxy.core.config import ProxyState, settings
from gemini_proxy.core.exceptions import GeminiProxyError
from gemini_proxy.core.logging import setup_logging
from gemini_proxy.gateway.dispatcher import RequestDispatcher

logger = logging.getLogger("gemini_proxy")


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    setup_logging(settings)

    if not settings.google_api_key:
        logger.error("GOOGLE_API_KEY is not set")
        return 1

    try:
        state = ProxyState.from_settings(settings)
    except GeminiProxyError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    data = Path(argv[0]).read_bytes() if argv else sys.stdin.buffer.read()

    dispatcher = RequestDispatcher(state, base_url=settings.gemini_base_url)
    out = asyncio.run(dispatcher.dispatch(data))

    sys.stdout.write(out.decode("utf-8") + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
