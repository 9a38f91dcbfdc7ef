import asyncio
import logging
import signal

from stockpost.core.config import settings
from stockpost.core.context import build_context
from stockpost.core.telemetry import setup_telemetry


log = logging.getLogger(__name__)


async def main():
    logging.basicConfig(level=logging.INFO)
    setup_telemetry(settings)

    ctx = build_context(settings)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops
            pass

    log.info("poller: started")
    ctx.scheduler.start()
    try:
        await stop.wait()
    finally:
        await ctx.aclose()
        log.info("poller: shut down")


if __name__ == "__main__":
    asyncio.run(main())
