"""Shared service logger."""

import logging
import re

from config import LOG_LEVEL

_CREDENTIALS = re.compile(r"^(mongodb(?:\+srv)?://)[^@/]*@")

logger = logging.getLogger("mongo_proxy")

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    logger.addHandler(_handler)
    logger.propagate = False

logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))


def redact_uri(uri: str) -> str:
    """Hide the user-info part of a connection string before it is logged."""
    return _CREDENTIALS.sub(r"\1***@", uri or "")
