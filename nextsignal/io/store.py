"""Document store abstraction for NextSignal.

The pipeline depends only on the Store interface: insert, point lookup, a
filtered/ordered/limited query, append-to-list, and field update. No
multi-document transactions are assumed.

Implementations:
- InMemoryStore: thread-safe dict of collections, used by tests and demos.
- JsonFileStore: one JSON file per collection, written atomically.
- FirestoreStore (nextsignal.io.firestore_store): Firebase deployment backend.
"""

from __future__ import annotations

import copy
import logging
import operator
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from nextsignal.errors import NotFoundError, StoreError
from nextsignal.io.persistence import load_json, save_json
from nextsignal.utils.date_utils import ensure_utc, parse_timestamp

logger = logging.getLogger(__name__)

# (field, operator, value)
Filter = Tuple[str, str, Any]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    ">": operator.gt,
    "<=": operator.le,
    "<": operator.lt,
}

# Document fields decoded back into datetimes when loaded from JSON files
TIMESTAMP_FIELDS = frozenset({"timestamp", "analyzedAt", "originalTimestamp", "createdAt"})


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


class Store(ABC):
    """Abstract document store.

    Documents are plain dicts. Returned documents always include their id under
    the ``"id"`` key.
    """

    @abstractmethod
    def insert(self, collection: str, doc: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Create a document and return its id.

        Raises:
            StoreError: On I/O failure.
        """

    @abstractmethod
    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document, or None if it does not exist."""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return documents matching every filter, optionally ordered and capped."""

    @abstractmethod
    def append(self, collection: str, doc_id: str, field: str, values: Iterable[Any]) -> None:
        """Append values to a list field; existing entries are never removed.

        Raises:
            NotFoundError: If the document does not exist.
        """

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into an existing document.

        Raises:
            NotFoundError: If the document does not exist.
        """


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


def _matches(doc: Dict[str, Any], filters: Sequence[Filter]) -> bool:
    for field, op, expected in filters:
        compare = _OPERATORS.get(op)
        if compare is None:
            raise StoreError(f"Unsupported filter operator: {op!r}")
        actual = doc.get(field)
        if actual is None:
            if op == "!=" and expected is not None:
                continue
            return False
        try:
            if not compare(_normalize(actual), _normalize(expected)):
                return False
        except TypeError:
            return False
    return True


class InMemoryStore(Store):
    """Thread-safe in-process store.

    Documents are deep-copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def _commit(self, collection: str) -> None:
        """Hook for subclasses that persist after each write."""

    def insert(self, collection: str, doc: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        with self._lock:
            docs = self._collection(collection)
            doc_id = str(doc_id or doc.get("id") or new_document_id())
            stored = copy.deepcopy(doc)
            stored["id"] = doc_id
            docs[doc_id] = stored
            self._commit(collection)
            return doc_id

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            found = [d for d in self._collection(collection).values() if _matches(d, filters)]
            if order_by:
                # Documents missing the order field are excluded, as in Firestore
                found = [d for d in found if d.get(order_by) is not None]
                try:
                    found.sort(key=lambda d: _normalize(d[order_by]), reverse=descending)
                except TypeError as exc:
                    raise StoreError(f"Cannot order {collection} by {order_by}: {exc}") from exc
            if limit is not None:
                found = found[:limit]
            return [copy.deepcopy(d) for d in found]

    def append(self, collection: str, doc_id: str, field: str, values: Iterable[Any]) -> None:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                raise NotFoundError(f"{collection}/{doc_id} does not exist")
            existing = doc.get(field)
            if existing is None:
                existing = []
            elif not isinstance(existing, list):
                raise StoreError(f"{collection}/{doc_id}.{field} is not a list")
            doc[field] = existing + copy.deepcopy(list(values))
            self._commit(collection)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                raise NotFoundError(f"{collection}/{doc_id} does not exist")
            doc.update(copy.deepcopy(fields))
            self._commit(collection)


def _decode_timestamps(obj: Dict[str, Any]) -> Dict[str, Any]:
    for key in TIMESTAMP_FIELDS.intersection(obj):
        parsed = parse_timestamp(obj[key])
        if parsed is not None:
            obj[key] = parsed
    return obj


class JsonFileStore(InMemoryStore):
    """Store backed by one ``<collection>.json`` file per collection.

    Every write rewrites the collection file atomically. Suitable for the CLI
    and single-process deployments.

    Args:
        root: Directory holding the collection files.
    """

    def __init__(self, root: str | Path) -> None:
        super().__init__()
        self.root = Path(root)
        self._loaded: set = set()

    def _path(self, collection: str) -> Path:
        return self.root / f"{collection}.json"

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        if name not in self._loaded:
            path = self._path(name)
            data = load_json(path, object_hook=_decode_timestamps)
            if data is None and path.exists():
                raise StoreError(f"Collection file {path} is unreadable")
            self._collections[name] = data or {}
            self._loaded.add(name)
        return self._collections[name]

    def _commit(self, collection: str) -> None:
        try:
            save_json(self._collections.get(collection, {}), self._path(collection))
        except (OSError, TypeError, ValueError) as exc:
            logger.error("JsonFileStore: failed to write %s: %s", collection, exc)
            # Drop the cache so the next read reflects what is on disk
            self._loaded.discard(collection)
            raise StoreError(f"Failed to write collection {collection}: {exc}") from exc
