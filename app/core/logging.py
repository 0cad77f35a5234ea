"""
Logging setup for the API.
"""

import logging
import sys


def setup_logging(log_level: str = "INFO"):
    """Configure the root logger with a single stdout handler."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    )
    root_logger.addHandler(handler)

    # Keep SQL echo out of the application log
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
