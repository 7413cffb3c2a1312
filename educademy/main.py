"""
Educademy realtime server entry point.

Logging is configured before the application is built so that startup
messages go through structlog. Run with ``uvicorn educademy.main:app`` or
``python -m educademy.main``.
"""

import uvicorn

from .app.factory import create_app
from .config import get_config
from .structured_logging.enhanced_logging_config import get_logger, setup_logging

config = get_config()
setup_logging(config.logging.to_dict())

logger = get_logger(__name__)
logger.info("Logging setup completed", environment=config.logging.environment)

app = create_app(config)


def main() -> None:
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
