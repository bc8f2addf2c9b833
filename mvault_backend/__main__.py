"""
Run the Media Vault server: `python -m mvault_backend`.
"""
from aiohttp import web

from .config import LIBRARY_ROOT, SERVER_HOST, SERVER_PORT, THUMB_CACHE_DIR
from .routes import create_app
from .shared import get_logger

logger = get_logger(__name__)


def main() -> None:
    logger.info("Library root: %s", LIBRARY_ROOT)
    logger.info("Thumbnail cache: %s", THUMB_CACHE_DIR)
    web.run_app(create_app(), host=SERVER_HOST, port=SERVER_PORT, print=None)


if __name__ == "__main__":
    main()
