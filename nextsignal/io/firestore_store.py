"""Firestore-backed Store for Firebase deployments.

Requires the optional ``firebase-admin`` dependency
(``pip install nextsignal[firestore]``). The Firestore client is created lazily
on first use, so importing this module never touches the network.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from nextsignal.errors import NotFoundError, StoreError
from nextsignal.io.store import Filter, Store

logger = logging.getLogger(__name__)


class FirestoreStore(Store):
    """Store adapter over a ``firebase_admin`` Firestore client.

    Args:
        client: Pre-built Firestore client (tests inject a MagicMock here).
        credentials_path: Service-account JSON used to initialise the default
            Firebase app when no app exists yet. Application default
            credentials are used when omitted.
    """

    def __init__(self, client: Optional[Any] = None, credentials_path: Optional[str] = None) -> None:
        self._client = client
        self.credentials_path = credentials_path

    def _db(self) -> Any:
        if self._client is None:
            try:
                import firebase_admin  # type: ignore[import]
                from firebase_admin import credentials, firestore  # type: ignore[import]
            except ImportError:
                raise ImportError(
                    "firebase-admin is required for FirestoreStore. "
                    "Install with: pip install nextsignal[firestore]"
                )
            if not firebase_admin._apps:
                if self.credentials_path:
                    path = Path(self.credentials_path)
                    if not path.exists():
                        raise StoreError(f"Service account file not found: {path}")
                    firebase_admin.initialize_app(credentials.Certificate(str(path)))
                else:
                    firebase_admin.initialize_app()
            self._client = firestore.client()
        return self._client

    @staticmethod
    def _array_union(values: List[Any]) -> Any:
        from firebase_admin import firestore  # type: ignore[import]

        return firestore.ArrayUnion(values)

    def insert(self, collection: str, doc: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        try:
            coll = self._db().collection(collection)
            ref = coll.document(doc_id) if doc_id else coll.document()
            data = dict(doc)
            data["id"] = ref.id
            ref.set(data)
        except ImportError:
            raise
        except Exception as exc:
            logger.error("FirestoreStore: insert into %s failed: %s", collection, exc)
            raise StoreError(f"Failed to insert into {collection}: {exc}") from exc
        return ref.id

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = self._db().collection(collection).document(doc_id).get()
        except ImportError:
            raise
        except Exception as exc:
            logger.error("FirestoreStore: read %s/%s failed: %s", collection, doc_id, exc)
            raise StoreError(f"Failed to read {collection}/{doc_id}: {exc}") from exc
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return data

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        try:
            q = self._db().collection(collection)
            for field, op, value in filters:
                q = q.where(field, op, value)
            if order_by:
                direction = "DESCENDING" if descending else "ASCENDING"
                q = q.order_by(order_by, direction=direction)
            if limit is not None:
                q = q.limit(limit)
            results = []
            for snapshot in q.stream():
                data = snapshot.to_dict() or {}
                data["id"] = snapshot.id
                results.append(data)
        except ImportError:
            raise
        except Exception as exc:
            logger.error("FirestoreStore: query on %s failed: %s", collection, exc)
            raise StoreError(f"Failed to query {collection}: {exc}") from exc
        return results

    def append(self, collection: str, doc_id: str, field: str, values: Iterable[Any]) -> None:
        self._update_existing(collection, doc_id, {field: self._array_union(list(values))})

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._update_existing(collection, doc_id, dict(fields))

    def _update_existing(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        try:
            ref = self._db().collection(collection).document(doc_id)
            if not ref.get().exists:
                raise NotFoundError(f"{collection}/{doc_id} does not exist")
            ref.update(fields)
        except (ImportError, NotFoundError):
            raise
        except Exception as exc:
            logger.error("FirestoreStore: update of %s/%s failed: %s", collection, doc_id, exc)
            raise StoreError(f"Failed to update {collection}/{doc_id}: {exc}") from exc
