"""
Market Gateway main entry
Serves the aggregated market-data API with uvicorn
"""

import uvicorn
from loguru import logger

from market_gateway.api import create_app
from market_gateway.settings import global_settings
from market_gateway.utils import setup_logging


def main() -> None:
    """Main function"""
    setup_logging(global_settings.log_level)
    logger.info(f"Server running on port {global_settings.port}")
    logger.info(f"Environment: {global_settings.environment}")

    uvicorn.run(
        create_app(),
        host="0.0.0.0",
        port=global_settings.port,
        log_level=global_settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
