"""In-memory stand-ins for the pieces of the async driver the proxy touches."""

import asyncio
from types import SimpleNamespace

from bson import ObjectId
from pymongo.errors import BulkWriteError, DuplicateKeyError


class FakeHandle:
    """Opaque connection handle handed out by fake connectors."""

    def __init__(self, key):
        self.key = key
        self.closed = False

    def close(self):
        self.closed = True


class CountingConnector:
    """Connector that records calls and can be gated or told to fail."""

    def __init__(self, *, gate=None, fail_times=0, error=None):
        self.calls = []
        self._gate = gate
        self._fail_times = fail_times
        self._error = error

    async def __call__(self, key):
        self.calls.append(key)
        if self._gate is not None:
            await self._gate.wait()
        else:
            await asyncio.sleep(0)
        if self._fail_times > 0:
            self._fail_times -= 1
            raise self._error or OSError("connection refused")
        return FakeHandle(key)


def _matches(doc, flt):
    return all(doc.get(k) == v for k, v in (flt or {}).items())


def _project(doc, projection):
    if not projection:
        return dict(doc)
    keep = {k for k, v in projection.items() if v}
    keep.add("_id")
    return {k: v for k, v in doc.items() if k in keep}


class FakeCursor:
    def __init__(self, docs):
        self._docs = list(docs)

    def sort(self, pairs):
        for key, direction in reversed(pairs):
            self._docs.sort(key=lambda d: d.get(key), reverse=direction == -1)
        return self

    def skip(self, n):
        self._docs = self._docs[n:]
        return self

    def limit(self, n):
        self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        return list(self._docs)


class FakeCollection:
    def __init__(self, unique=None):
        self.docs = []
        self.unique = unique
        self.error = None

    def _check(self):
        if self.error is not None:
            raise self.error

    def _insert(self, doc):
        if self.unique and any(d.get(self.unique) == doc.get(self.unique) for d in self.docs):
            raise DuplicateKeyError(
                f"E11000 duplicate key error dup key: {{ {self.unique}: {doc.get(self.unique)!r} }}",
                11000,
            )
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return doc["_id"]

    async def find_one(self, flt):
        self._check()
        for doc in self.docs:
            if _matches(doc, flt):
                return dict(doc)
        return None

    async def insert_one(self, doc):
        self._check()
        return SimpleNamespace(inserted_id=self._insert(doc), acknowledged=True)

    async def insert_many(self, docs, ordered=True, **kwargs):
        self._check()
        ids = []
        for index, doc in enumerate(docs):
            try:
                ids.append(self._insert(doc))
            except DuplicateKeyError as e:
                raise BulkWriteError({
                    "writeErrors": [{"index": index, "code": 11000, "errmsg": str(e)}],
                    "nInserted": len(ids),
                })
        return SimpleNamespace(inserted_ids=ids, acknowledged=True)

    async def update_one(self, flt, update, upsert=False, **kwargs):
        self._check()
        for doc in self.docs:
            if _matches(doc, flt):
                changed = any(doc.get(k) != v for k, v in update.get("$set", {}).items())
                doc.update(update.get("$set", {}))
                return SimpleNamespace(
                    acknowledged=True, matched_count=1,
                    modified_count=int(changed), upserted_id=None,
                )
        upserted_id = None
        if upsert:
            upserted_id = self._insert({**flt, **update.get("$set", {})})
        return SimpleNamespace(
            acknowledged=True, matched_count=0, modified_count=0, upserted_id=upserted_id,
        )

    async def delete_one(self, flt):
        self._check()
        for doc in self.docs:
            if _matches(doc, flt):
                self.docs.remove(doc)
                return SimpleNamespace(acknowledged=True, deleted_count=1)
        return SimpleNamespace(acknowledged=True, deleted_count=0)

    def find(self, flt, projection=None):
        self._check()
        return FakeCursor(_project(d, projection) for d in self.docs if _matches(d, flt))

    async def find_one_and_update(self, flt, update, return_document=False, **kwargs):
        self._check()
        self.last_kwargs = dict(kwargs, return_document=return_document)
        for doc in self.docs:
            if _matches(doc, flt):
                before = dict(doc)
                doc.update(update.get("$set", {}))
                return dict(doc) if return_document else before
        return None


class FakeClient:
    """``client[db][collection]`` lookup over FakeCollections."""

    def __init__(self, key="mongodb://fake"):
        self.key = key
        self.collections = {}
        self.closed = False

    def collection(self, db, name, **kwargs):
        return self.collections.setdefault((db, name), FakeCollection(**kwargs))

    def __getitem__(self, db):
        client = self

        class _Db:
            def __getitem__(self, name):
                return client.collection(db, name)

        return _Db()

    def close(self):
        self.closed = True
