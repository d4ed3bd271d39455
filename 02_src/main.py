"""Main entry point for the conversation core."""

import asyncio
from pathlib import Path

from dotenv import load_dotenv

from inbox_sync import Application, InboxError, Settings
from inbox_sync.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def run(settings: Settings) -> None:
    """Start the core, load the thread list and serve events until cancelled."""
    app = Application(settings)
    await app.start()
    try:
        try:
            threads = await app.controller.load_threads()
            logger.info("Loaded %s thread(s)", len(threads))
        except InboxError as e:
            logger.error("Could not load threads: %s", e)
        await asyncio.Event().wait()
    finally:
        await app.stop()


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    try:
        asyncio.run(run(Settings.from_env()))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
