#!/usr/bin/env python3
"""
Bank Ledger Entry Point

Starts the FastAPI server with the ledger transaction engine.
"""

import sys

from bank_ledger.api import run_server
from bank_ledger.config import get_config
from bank_ledger.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format)
    logger.info(
        "Starting Bank Ledger on %s:%d (%s storage)",
        config.api_host, config.api_port, config.storage_backend
    )

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=config.api_debug
        )
    except KeyboardInterrupt:
        logger.info("Shutting down Bank Ledger")
    except Exception as e:
        logger.exception("Error starting server: %s", e)
        sys.exit(1)
