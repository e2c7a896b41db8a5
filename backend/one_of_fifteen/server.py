import logging

import uvicorn

from .config import get_settings
from .logger import setup_logging

logger = logging.getLogger(__name__)


def main():
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Serving game %s on %s:%d", settings.GAME_ID, settings.HOST, settings.PORT)
    uvicorn.run(
        "backend.one_of_fifteen.main:app",
        host=settings.HOST,
        port=settings.PORT,
        ws_ping_interval=settings.WS_PING_INTERVAL_SECONDS,
        ws_ping_timeout=settings.WS_PING_TIMEOUT_SECONDS,
        log_config=None,
    )


if __name__ == "__main__":
    main()
