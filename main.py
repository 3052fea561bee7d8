"""
Entry point: configure logging and serve the API with uvicorn
"""

import logging

import uvicorn

from config import Config

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    Config.log_environment_config()
    logger.info(f"🚀 Starting {Config.PLATFORM_NAME} API on {Config.HOST}:{Config.PORT}")

    from api_server import app

    uvicorn.run(app, host=Config.HOST, port=Config.PORT, log_level=Config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
