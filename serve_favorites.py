"""
FiguroAI favorites backend
--------------------------

Serves the favorites-sync API used by the app to keep bookmarks in step
across devices.
"""

import sys

from aiohttp import web
from loguru import logger

from figuro.config import Config
from figuro.server import create_app
from figuro.utils import setup_logger


def main() -> int:
    """Main entry point."""
    config = Config.from_env()
    setup_logger(config.LOG_LEVEL)

    try:
        app = create_app(config)
    except OSError as e:
        logger.error(f"Could not open data directory {config.DATA_DIR}: {e}")
        return 1

    logger.info(f"FiguroAI backend on port {config.SERVER_PORT}")
    logger.info(f"Database: {config.server_db_file}")
    logger.info(f"Media: {config.server_media_dir}")
    web.run_app(app, host=config.SERVER_HOST, port=config.SERVER_PORT, print=None)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n[!] Aborted by user.")
        sys.exit(1)
