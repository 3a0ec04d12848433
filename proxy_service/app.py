"""
FastAPI Mongo proxy: relays JSON-described operations to MongoDB.

Features:
- One cached client per connection string (bounded, FIFO eviction)
- Concurrent requests for a new connection string share one connect
- Per-operation request validation (400 on missing fields)
- Duplicate-key errors surfaced as 409, other driver errors as 500
"""

import sys
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import db_executor
from client_cache import ClientCache, validate_key
from config import CORS_ORIGINS, HOST, MAX_CACHED_CLIENTS, PORT, require_default_uri
from errors import BackendOperationError, ProxyError
from logger import logger
from mongo_client import connect_mongo
from response_formatter import missing_fields_error
from schemas import (
    DeleteOneRequest,
    FindOneAndUpdateRequest,
    FindOneRequest,
    FindRequest,
    InsertManyRequest,
    InsertOneRequest,
    MongoRequest,
    UpdateOneRequest,
)

VERSION = "1.0.0"

_MISSING_ERROR_TYPES = {"missing", "string_too_short", "too_short"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_key(require_default_uri())
    if getattr(app.state, "client_cache", None) is None:
        app.state.client_cache = ClientCache(connect_mongo, capacity=MAX_CACHED_CLIENTS)
    logger.info("Mongo proxy started (client cache capacity=%d)", app.state.client_cache.capacity)
    try:
        yield
    finally:
        await app.state.client_cache.aclose()
        app.state.client_cache = None


app = FastAPI(title="Mongo Proxy", version=VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_client_cache(request: Request) -> ClientCache:
    return request.app.state.client_cache


# ---------------------- ERROR TRANSLATION ----------------------


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    missing: List[str] = []
    details = []
    for err in exc.errors():
        loc = err.get("loc", ())
        if len(loc) >= 2 and loc[0] == "body" and err.get("type") in _MISSING_ERROR_TYPES:
            field = str(loc[1])
            if field not in missing:
                missing.append(field)
        # "input" would echo the connection string back
        details.append({"loc": loc, "type": err.get("type"), "msg": err.get("msg")})
    return JSONResponse(
        status_code=400,
        content={
            "error": missing_fields_error(missing),
            "details": jsonable_encoder(details),
        },
    )


async def _dispatch(
    op_name: str,
    operation: Callable[[Any, Any], Awaitable[Dict[str, Any]]],
    body: MongoRequest,
    cache: ClientCache,
) -> Dict[str, Any]:
    try:
        client = await cache.acquire(body.mongodb_uri)
        return await operation(client, body)
    except ProxyError:
        raise
    except Exception as e:
        logger.exception("%s on %s.%s failed unexpectedly", op_name, body.db, body.collection)
        raise BackendOperationError.from_exception(e) from e


# ---------------------- ENDPOINTS ----------------------


@app.get("/health")
async def health_check():
    return {"ok": True}


@app.post("/mongo/findOne")
async def mongo_find_one(body: FindOneRequest, cache: ClientCache = Depends(get_client_cache)):
    return await _dispatch("findOne", db_executor.find_one, body, cache)


@app.post("/mongo/insertOne")
async def mongo_insert_one(body: InsertOneRequest, cache: ClientCache = Depends(get_client_cache)):
    return await _dispatch("insertOne", db_executor.insert_one, body, cache)


@app.post("/mongo/updateOne")
async def mongo_update_one(body: UpdateOneRequest, cache: ClientCache = Depends(get_client_cache)):
    return await _dispatch("updateOne", db_executor.update_one, body, cache)


@app.post("/mongo/deleteOne")
async def mongo_delete_one(body: DeleteOneRequest, cache: ClientCache = Depends(get_client_cache)):
    return await _dispatch("deleteOne", db_executor.delete_one, body, cache)


@app.post("/mongo/find")
async def mongo_find(body: FindRequest, cache: ClientCache = Depends(get_client_cache)):
    return await _dispatch("find", db_executor.find, body, cache)


@app.post("/mongo/findOneAndUpdate")
async def mongo_find_one_and_update(
    body: FindOneAndUpdateRequest, cache: ClientCache = Depends(get_client_cache),
):
    return await _dispatch("findOneAndUpdate", db_executor.find_one_and_update, body, cache)


@app.post("/mongo/insertMany")
async def mongo_insert_many(body: InsertManyRequest, cache: ClientCache = Depends(get_client_cache)):
    return await _dispatch("insertMany", db_executor.insert_many, body, cache)


def main() -> None:
    import uvicorn

    try:
        require_default_uri()
    except RuntimeError as e:
        logger.error("%s", e)
        sys.exit(1)

    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
