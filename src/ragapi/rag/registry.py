"""In-memory registry of indexed documents."""

from typing import Optional

from .document import IndexedDocument


class DocumentRegistry:
    """Volatile record of documents indexed by this process.

    Entries are keyed by document id, so concurrent indexing requests
    never collide. Nothing survives a restart.
    """

    def __init__(self) -> None:
        self._documents: dict[str, IndexedDocument] = {}

    def add(self, document: IndexedDocument) -> None:
        self._documents[document.document_id] = document

    def get(self, document_id: str) -> Optional[IndexedDocument]:
        return self._documents.get(document_id)

    def snapshot(self) -> list[IndexedDocument]:
        """Snapshot of all entries in insertion order."""
        return list(self._documents.values())

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)
