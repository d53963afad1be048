"""Storage collaborators."""
from .document_store import DocumentStore, MemoryDocumentStore

__all__ = ['DocumentStore', 'MemoryDocumentStore']
