"""
Database executor: runs the proxied operations against a cached client
and turns driver errors into the proxy's error taxonomy.

Every function takes the client borrowed from the cache and a validated
request model, and returns a JSON-safe dict. The client is never closed
here; the cache owns it.
"""

from typing import Any, Dict, List, Optional, Tuple

from pymongo import ReturnDocument
from pymongo.errors import BulkWriteError, PyMongoError

from errors import (
    DUPLICATE_KEY_CODE,
    BackendOperationError,
    DuplicateKeyError,
    InvalidRequestError,
    ProxyError,
)
from logger import logger
from response_formatter import clean_document, clean_documents, sanitise_value
from schemas import (
    DeleteOneRequest,
    FindOneAndUpdateOptions,
    FindOneAndUpdateRequest,
    FindOneRequest,
    FindOptions,
    FindRequest,
    InsertManyOptions,
    InsertManyRequest,
    InsertOneRequest,
    MongoRequest,
    SortSpec,
    UpdateOneRequest,
    UpdateOptions,
)

# ---------------------- HELPERS ----------------------

_DIRECTIONS = {
    "asc": 1, "ascending": 1,
    "desc": -1, "descending": -1,
}


def _collection(client: Any, request: MongoRequest):
    return client[request.db][request.collection]


def _direction(value: Any) -> Any:
    if isinstance(value, str):
        return _DIRECTIONS.get(value.lower(), value)
    return value


def normalize_sort(sort: Optional[SortSpec]) -> Optional[List[Tuple[str, Any]]]:
    """Turn ``{"a": 1}`` / ``[["a", "desc"]]`` / ``"a"`` into driver sort pairs."""
    if not sort:
        return None
    if isinstance(sort, dict):
        return [(str(k), _direction(v)) for k, v in sort.items()]

    pairs: List[Tuple[str, Any]] = []
    for item in sort:
        if isinstance(item, str):
            pairs.append((item, 1))
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            pairs.append((str(item[0]), _direction(item[1])))
        elif isinstance(item, dict):
            pairs.extend((str(k), _direction(v)) for k, v in item.items())
        else:
            raise InvalidRequestError(f"Invalid sort specification: {item!r}", name="BadSort")
    return pairs


def _has_duplicate_key(exc: PyMongoError) -> bool:
    if getattr(exc, "code", None) == DUPLICATE_KEY_CODE:
        return True
    if isinstance(exc, BulkWriteError):
        write_errors = exc.details.get("writeErrors", []) if exc.details else []
        return any(err.get("code") == DUPLICATE_KEY_CODE for err in write_errors)
    return False


def translate_error(exc: PyMongoError) -> ProxyError:
    """Map a driver error onto ``DuplicateKeyError`` / ``BackendOperationError``."""
    if _has_duplicate_key(exc):
        return DuplicateKeyError(str(exc), name=type(exc).__name__)
    return BackendOperationError.from_exception(exc)


async def _run(op_name: str, request: MongoRequest, coro) -> Any:
    try:
        return await coro
    except PyMongoError as e:
        error = translate_error(e)
        logger.warning(
            "%s on %s.%s failed: %s (code=%s)",
            op_name, request.db, request.collection, error.name, error.code,
        )
        raise error from e


# ---------------------- OPERATIONS ----------------------


async def find_one(client: Any, request: FindOneRequest) -> Dict[str, Any]:
    coll = _collection(client, request)
    doc = await _run("findOne", request, coll.find_one(request.filter))
    return {"doc": clean_document(doc)}


async def insert_one(client: Any, request: InsertOneRequest) -> Dict[str, Any]:
    coll = _collection(client, request)
    # insert_one adds _id to the dict it is given
    document = dict(request.document)
    result = await _run("insertOne", request, coll.insert_one(document))
    return {
        "insertedId": sanitise_value(result.inserted_id),
        "acknowledged": result.acknowledged,
    }


async def update_one(client: Any, request: UpdateOneRequest) -> Dict[str, Any]:
    coll = _collection(client, request)
    options = request.options or UpdateOptions()
    kwargs: Dict[str, Any] = {"upsert": options.upsert}
    if options.array_filters is not None:
        kwargs["array_filters"] = options.array_filters
    if options.hint is not None:
        kwargs["hint"] = options.hint

    result = await _run(
        "updateOne", request, coll.update_one(request.filter, request.update, **kwargs),
    )
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedId": sanitise_value(result.upserted_id),
    }


async def delete_one(client: Any, request: DeleteOneRequest) -> Dict[str, Any]:
    coll = _collection(client, request)
    result = await _run("deleteOne", request, coll.delete_one(request.filter))
    return {
        "acknowledged": result.acknowledged,
        "deletedCount": result.deleted_count,
    }


async def find(client: Any, request: FindRequest) -> Dict[str, Any]:
    """Run a find with the cursor modifiers carried in ``options``.

    ``limit`` of 0 (or absent) means no limit.
    """
    coll = _collection(client, request)
    options = request.options or FindOptions()
    projection = options.projection or options.project

    async def _query() -> List[Dict[str, Any]]:
        cursor = coll.find(request.filter or {}, projection)
        sort = normalize_sort(options.sort)
        if sort:
            cursor = cursor.sort(sort)
        if options.skip:
            cursor = cursor.skip(options.skip)
        if options.limit:
            cursor = cursor.limit(options.limit)
        return await cursor.to_list(None)

    docs = await _run("find", request, _query())
    return {"docs": clean_documents(docs)}


async def find_one_and_update(client: Any, request: FindOneAndUpdateRequest) -> Dict[str, Any]:
    coll = _collection(client, request)
    options = request.options or FindOneAndUpdateOptions()
    kwargs: Dict[str, Any] = {
        "upsert": options.upsert,
        "return_document": (
            ReturnDocument.AFTER if options.returns_updated else ReturnDocument.BEFORE
        ),
    }
    if options.projection is not None:
        kwargs["projection"] = options.projection
    sort = normalize_sort(options.sort)
    if sort:
        kwargs["sort"] = sort
    if options.array_filters is not None:
        kwargs["array_filters"] = options.array_filters

    value = await _run(
        "findOneAndUpdate",
        request,
        coll.find_one_and_update(request.filter, request.update, **kwargs),
    )
    return {"value": clean_document(value)}


async def insert_many(client: Any, request: InsertManyRequest) -> Dict[str, Any]:
    coll = _collection(client, request)
    options = request.options or InsertManyOptions()
    documents = [dict(doc) for doc in request.documents]
    kwargs: Dict[str, Any] = {"ordered": options.ordered}
    if options.bypass_document_validation is not None:
        kwargs["bypass_document_validation"] = options.bypass_document_validation

    result = await _run("insertMany", request, coll.insert_many(documents, **kwargs))
    inserted_ids = [sanitise_value(_id) for _id in result.inserted_ids]
    return {
        "acknowledged": result.acknowledged,
        "insertedCount": len(inserted_ids),
        # keyed by the index of each document in the request
        "insertedIds": {str(i): _id for i, _id in enumerate(inserted_ids)},
    }
