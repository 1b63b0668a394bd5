import logging
import os

# Single named logger shared by every component of the publisher
logger = logging.getLogger("proposal-publisher")
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
logger.propagate = False  # uvicorn installs its own root handler

# Attach the console handler once, even if this module is re-imported
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s - [%(levelname)s] - %(name)s - %(funcName)s() - %(message)s"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
