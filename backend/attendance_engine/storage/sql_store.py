"""SQLAlchemy-backed document store."""
import copy
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from attendance_engine import db
from attendance_engine.models.document import Document
from attendance_engine.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


class SQLDocumentStore(DocumentStore):
    """Stores documents as JSON rows keyed by (collection, doc_id).

    Rows are versioned, so an update computed from a stale read fails
    instead of overwriting a concurrent write; updates then re-read and
    retry. Must be used inside a Flask application context.
    """

    def __init__(self, max_retries: int = 5):
        self.max_retries = max_retries

    def create_or_replace(self, collection, doc_id, doc):
        row = Document.find(collection, doc_id)
        if row is None:
            row = Document(collection=collection, doc_id=doc_id)
            db.session.add(row)
        row.data = copy.deepcopy(doc)
        db.session.commit()

    def read(self, collection, doc_id) -> Optional[Dict]:
        row = Document.find(collection, doc_id)
        return copy.deepcopy(row.data) if row else None

    def query_equal(self, collection, field, value: Any) -> List[Dict]:
        # JSON path filters differ per backend; filter rows in Python
        return [doc for doc in self.scan(collection) if doc.get(field) == value]

    def create_if_absent(self, collection, doc_id, doc) -> bool:
        db.session.add(Document(collection=collection, doc_id=doc_id, data=copy.deepcopy(doc)))
        try:
            db.session.commit()
        except IntegrityError:
            # uq_documents_collection_doc_id: another writer got there first
            db.session.rollback()
            return False
        return True

    def update_fields(self, collection, doc_id, partial):
        return self.update_fields_if(collection, doc_id, partial, {})

    def update_fields_if(self, collection, doc_id, partial, expected):
        for attempt in range(self.max_retries):
            row = (Document.query
                   .filter_by(collection=collection, doc_id=doc_id)
                   .populate_existing()
                   .first())
            if row is None:
                return None
            if any(row.data.get(k) != v for k, v in expected.items()):
                return None

            data = dict(row.data)
            data.update(copy.deepcopy(partial))
            # reassign so the JSON column is marked dirty
            row.data = data
            try:
                db.session.commit()
            except StaleDataError:
                db.session.rollback()
                logger.debug("Concurrent update of %s/%s, retrying (%d)", collection, doc_id, attempt + 1)
                continue
            return copy.deepcopy(data)

        raise StaleDataError(f"Could not update {collection}/{doc_id} after {self.max_retries} attempts")

    def delete(self, collection, doc_id) -> bool:
        row = Document.find(collection, doc_id)
        if row is None:
            return False
        db.session.delete(row)
        db.session.commit()
        return True

    def scan(self, collection) -> List[Dict]:
        rows = Document.query.filter_by(collection=collection).order_by(Document.id).all()
        return [copy.deepcopy(row.data) for row in rows]
