"""Generic JSON document row backing the SQL document store."""
from attendance_engine import db
from attendance_engine.models.base import BaseModel


class Document(BaseModel):
    """One document of a collection, stored as JSON."""

    __tablename__ = 'documents'
    __table_args__ = (
        db.UniqueConstraint('collection', 'doc_id', name='uq_documents_collection_doc_id'),
    )

    collection = db.Column(db.String(50), nullable=False, index=True)
    doc_id = db.Column(db.String(128), nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)
    version = db.Column(db.Integer, nullable=False)

    # UPDATE ... WHERE version = :read_version; stale writers get StaleDataError
    __mapper_args__ = {'version_id_col': version}

    @classmethod
    def find(cls, collection: str, doc_id: str) -> 'Document':
        return cls.query.filter_by(collection=collection, doc_id=doc_id).first()

    def __repr__(self):
        return f'<Document {self.collection}/{self.doc_id}>'
