"""Document store collaborator boundary."""
import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class DocumentStore(ABC):
    """Minimal document store the engine reads and writes through.

    Documents are plain dicts keyed by an opaque string id within a
    collection. Implementations return copies, never live references.
    """

    @abstractmethod
    def create_or_replace(self, collection: str, doc_id: str, doc: Dict) -> None:
        """Store ``doc`` under ``doc_id``, replacing any existing document."""

    @abstractmethod
    def read(self, collection: str, doc_id: str) -> Optional[Dict]:
        """Return the document or None."""

    @abstractmethod
    def query_equal(self, collection: str, field: str, value: Any) -> List[Dict]:
        """Return documents whose ``field`` equals ``value``."""

    @abstractmethod
    def create_if_absent(self, collection: str, doc_id: str, doc: Dict) -> bool:
        """Store ``doc`` only if ``doc_id`` is free. Returns False when taken."""

    @abstractmethod
    def update_fields(self, collection: str, doc_id: str, partial: Dict) -> Optional[Dict]:
        """Merge ``partial`` into an existing document; None when missing."""

    @abstractmethod
    def update_fields_if(self, collection: str, doc_id: str, partial: Dict,
                         expected: Dict) -> Optional[Dict]:
        """Merge ``partial`` only while the document matches ``expected``.

        The check and the write are atomic. Returns None when the document
        is missing or no longer matches.
        """

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """Remove a document. Returns False when it did not exist."""

    @abstractmethod
    def scan(self, collection: str) -> List[Dict]:
        """Return every document in the collection."""


class MemoryDocumentStore(DocumentStore):
    """In-process store backed by dictionaries."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict]] = {}
        self._lock = threading.RLock()

    def _bucket(self, collection: str) -> Dict[str, Dict]:
        return self._collections.setdefault(collection, {})

    def create_or_replace(self, collection, doc_id, doc):
        with self._lock:
            self._bucket(collection)[doc_id] = copy.deepcopy(doc)

    def read(self, collection, doc_id):
        with self._lock:
            doc = self._bucket(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def query_equal(self, collection, field, value):
        with self._lock:
            return [
                copy.deepcopy(doc)
                for doc in self._bucket(collection).values()
                if doc.get(field) == value
            ]

    def create_if_absent(self, collection, doc_id, doc):
        with self._lock:
            bucket = self._bucket(collection)
            if doc_id in bucket:
                return False
            bucket[doc_id] = copy.deepcopy(doc)
            return True

    def update_fields(self, collection, doc_id, partial):
        return self.update_fields_if(collection, doc_id, partial, {})

    def update_fields_if(self, collection, doc_id, partial, expected):
        with self._lock:
            doc = self._bucket(collection).get(doc_id)
            if doc is None or any(doc.get(k) != v for k, v in expected.items()):
                return None
            doc.update(copy.deepcopy(partial))
            return copy.deepcopy(doc)

    def delete(self, collection, doc_id):
        with self._lock:
            return self._bucket(collection).pop(doc_id, None) is not None

    def scan(self, collection):
        with self._lock:
            return [copy.deepcopy(doc) for doc in self._bucket(collection).values()]
