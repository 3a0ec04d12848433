"""
Default connector for the client cache: builds an ``AsyncMongoClient``
and forces a round-trip so unreachable hosts and bad credentials fail at
connect time instead of on the first operation.
"""

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi

from config import SERVER_SELECTION_TIMEOUT_MS
from errors import BackendConnectionError
from logger import logger, redact_uri


def _build_client(mongo_uri: str) -> AsyncMongoClient:
    return AsyncMongoClient(
        mongo_uri,
        server_api=ServerApi("1", strict=True, deprecation_errors=True),
        serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
    )


async def connect_mongo(mongo_uri: str) -> AsyncMongoClient:
    """Create and test an AsyncMongoClient connection."""
    try:
        client = _build_client(mongo_uri)
    except PyMongoError as e:
        # ConfigurationError / InvalidURI are raised while parsing the URI
        raise BackendConnectionError.from_exception(e) from e

    try:
        await client.admin.command("ping")
    except PyMongoError as e:
        await client.close()
        raise BackendConnectionError.from_exception(e) from e

    logger.info("Connected to %s", redact_uri(mongo_uri))
    return client
