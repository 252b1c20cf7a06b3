"""
Persistence adapters for the storefront.

Both stores expose the same document-collection API. Documents are plain
dicts; every document returned carries its identifier under ``id`` as an
opaque string, whichever backend produced it. Filters are equality matches
on top-level fields.
"""
import copy
import logging
import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pymongo import MongoClient, ReturnDocument

import config

logger = logging.getLogger(__name__)

SortSpec = Sequence[Tuple[str, int]]


def _sort_key(field: str):
    def key(doc: dict):
        value = doc.get(field)
        # Missing values rank lowest, as in MongoDB
        return (value is not None, value)
    return key


class MemoryStore:
    """In-process collections keyed by incrementing integer ids."""

    kind = "memory"

    def __init__(self):
        self._collections: Dict[str, Dict[str, dict]] = defaultdict(dict)
        self._counters: Dict[str, int] = defaultdict(int)
        self._lock = threading.RLock()

    @staticmethod
    def _matches(doc: dict, filter_q: Optional[dict]) -> bool:
        if not filter_q:
            return True
        return all(doc.get(k) == v for k, v in filter_q.items())

    def create_document(self, collection: str, data: Dict[str, Any]) -> str:
        with self._lock:
            self._counters[collection] += 1
            doc_id = str(self._counters[collection])
            doc = copy.deepcopy(dict(data))
            doc.pop("id", None)
            doc["id"] = doc_id
            self._collections[collection][doc_id] = doc
            return doc_id

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._collections[collection].get(str(doc_id))
            return copy.deepcopy(doc) if doc is not None else None

    def find_one(self, collection: str, filter_q: dict) -> Optional[dict]:
        with self._lock:
            for doc in self._collections[collection].values():
                if self._matches(doc, filter_q):
                    return copy.deepcopy(doc)
        return None

    def get_documents(
        self,
        collection: str,
        filter_q: Optional[dict] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[dict]:
        with self._lock:
            docs = [copy.deepcopy(d) for d in self._collections[collection].values() if self._matches(d, filter_q)]
        # Stable sorts applied last key first give a multi-key ordering
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=_sort_key(field), reverse=direction < 0)
        if limit is not None:
            docs = docs[:limit]
        return docs

    def update_document(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> Optional[dict]:
        with self._lock:
            doc = self._collections[collection].get(str(doc_id))
            if doc is None:
                return None
            updates = copy.deepcopy(dict(fields))
            updates.pop("id", None)
            doc.update(updates)
            return copy.deepcopy(doc)

    def increment(self, collection: str, doc_id: str, field: str, amount: float) -> Optional[dict]:
        with self._lock:
            doc = self._collections[collection].get(str(doc_id))
            if doc is None:
                return None
            doc[field] = doc.get(field, 0) + amount
            return copy.deepcopy(doc)

    def delete_document(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._collections[collection].pop(str(doc_id), None) is not None

    def delete_documents(self, collection: str, filter_q: Optional[dict] = None) -> int:
        with self._lock:
            docs = self._collections[collection]
            doomed = [k for k, d in docs.items() if self._matches(d, filter_q)]
            for k in doomed:
                del docs[k]
            return len(doomed)

    def count_documents(self, collection: str, filter_q: Optional[dict] = None) -> int:
        with self._lock:
            return sum(1 for d in self._collections[collection].values() if self._matches(d, filter_q))

    def collection_names(self) -> List[str]:
        with self._lock:
            return sorted(name for name, docs in self._collections.items() if docs)

    def close(self):
        pass


def _object_id(doc_id: Any) -> Optional[ObjectId]:
    try:
        return ObjectId(str(doc_id))
    except (InvalidId, TypeError):
        return None


def _out(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc["id"] = str(doc.pop("_id"))
    return doc


class MongoStore:
    """MongoDB collections; ids are the string form of the native ObjectId."""

    kind = "mongodb"

    def __init__(self, url: str, name: str, client=None):
        self.client = client if client is not None else MongoClient(url, tz_aware=True)
        self.db = self.client[name]

    @staticmethod
    def _query(filter_q: Optional[dict]) -> dict:
        query = dict(filter_q or {})
        if "id" in query:
            query["_id"] = _object_id(query.pop("id"))
        return query

    def create_document(self, collection: str, data: Dict[str, Any]) -> str:
        doc = dict(data)
        doc.pop("id", None)
        return str(self.db[collection].insert_one(doc).inserted_id)

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        oid = _object_id(doc_id)
        if oid is None:
            return None
        return _out(self.db[collection].find_one({"_id": oid}))

    def find_one(self, collection: str, filter_q: dict) -> Optional[dict]:
        return _out(self.db[collection].find_one(self._query(filter_q)))

    def get_documents(
        self,
        collection: str,
        filter_q: Optional[dict] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[dict]:
        cursor = self.db[collection].find(self._query(filter_q))
        if sort:
            cursor = cursor.sort(list(sort))
        if limit is not None:
            cursor = cursor.limit(limit)
        return [_out(doc) for doc in cursor]

    def update_document(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> Optional[dict]:
        oid = _object_id(doc_id)
        if oid is None:
            return None
        updates = dict(fields)
        updates.pop("id", None)
        if not updates:
            return self.get_document(collection, doc_id)
        doc = self.db[collection].find_one_and_update(
            {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        return _out(doc)

    def increment(self, collection: str, doc_id: str, field: str, amount: float) -> Optional[dict]:
        oid = _object_id(doc_id)
        if oid is None:
            return None
        doc = self.db[collection].find_one_and_update(
            {"_id": oid}, {"$inc": {field: amount}}, return_document=ReturnDocument.AFTER
        )
        return _out(doc)

    def delete_document(self, collection: str, doc_id: str) -> bool:
        oid = _object_id(doc_id)
        if oid is None:
            return False
        return self.db[collection].delete_one({"_id": oid}).deleted_count > 0

    def delete_documents(self, collection: str, filter_q: Optional[dict] = None) -> int:
        return self.db[collection].delete_many(self._query(filter_q)).deleted_count

    def count_documents(self, collection: str, filter_q: Optional[dict] = None) -> int:
        return self.db[collection].count_documents(self._query(filter_q))

    def collection_names(self) -> List[str]:
        return sorted(self.db.list_collection_names())

    def close(self):
        self.client.close()


def open_store():
    """Build the store selected by the environment."""
    if config.DATABASE_URL:
        logger.info("Using MongoDB store %s", config.DATABASE_NAME)
        return MongoStore(config.DATABASE_URL, config.DATABASE_NAME)
    logger.info("DATABASE_URL not set, using in-memory store")
    return MemoryStore()


def get_store(request: Request):
    """Dependency returning the store attached to the running app."""
    return request.app.state.store
