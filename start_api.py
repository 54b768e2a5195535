#!/usr/bin/env python3
"""Start the API server."""
import os

import uvicorn

from config import Config
from logging_config import setup_logging

if __name__ == "__main__":
    config = Config.from_env()
    setup_logging(config.log_level)
    uvicorn.run(
        "api.app:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=False,
        log_level=config.log_level.lower(),
    )
