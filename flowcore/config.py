"""Runtime configuration for flowcore.

Values come from the environment (optionally a .env file) and are read once
at import time.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()  # load environment variables from .env file

# preview projection limits (the only place content may be shortened)
PREVIEW_MAX_CHARS = int(os.getenv("FLOWCORE_PREVIEW_MAX_CHARS", "100"))
PREVIEW_VALUE_MAX_CHARS = int(os.getenv("FLOWCORE_PREVIEW_VALUE_MAX_CHARS", "50"))

# warn (never truncate) when an assembled context gets this large
CONTEXT_TOKEN_WARN_THRESHOLD = int(os.getenv("FLOWCORE_CONTEXT_TOKEN_WARN", "200000"))

# record service used by HttpRecordResolver
RECORD_API_URL = os.getenv("FLOWCORE_RECORD_API_URL", "http://localhost:8000")
RECORD_API_TIMEOUT = float(os.getenv("FLOWCORE_RECORD_API_TIMEOUT", "10.0"))

LOG_LEVEL = os.getenv("FLOWCORE_LOG_LEVEL", "INFO")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the root logger at the configured level."""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
