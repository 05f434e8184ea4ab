"""
Document persistence for saved edits.

Stores (original_text, edited_text) pairs with their edit settings. The store
is always handed to whoever needs it; nothing in the edit pipeline reaches for
a global instance.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

import aiosqlite
from pydantic import BaseModel, Field

from config import DocumentStoreSettings

logger = logging.getLogger(__name__)

DEFAULT_MAX_SAVED_DOCUMENTS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentNotFoundError(KeyError):
    """Raised when a document id is not in the store."""

    def __init__(self, document_id: str):
        super().__init__(document_id)
        self.document_id = document_id

    def __str__(self) -> str:
        return f"Document '{self.document_id}' not found"


class SavedDocument(BaseModel):
    """A saved original/edited pair"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = Field(..., min_length=1, max_length=200)
    original_text: str
    edited_text: str
    level: str = Field(default="proofread", description="Edit level used to produce edited_text")
    model: Optional[str] = None
    custom_instruction: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class DocumentStore(Protocol):
    async def save(self, document: SavedDocument) -> SavedDocument: ...

    async def get(self, document_id: str) -> SavedDocument: ...

    async def update_texts(self, document_id: str, original_text: str, edited_text: str) -> SavedDocument: ...

    async def list(self, limit: Optional[int] = None) -> List[SavedDocument]: ...

    async def count(self) -> int: ...

    async def delete(self, document_id: str) -> bool: ...


class InMemoryDocumentStore:
    """Process-local store, used for tests and DOCUMENT_STORE_BACKEND=memory."""

    def __init__(self, max_saved_documents: int = DEFAULT_MAX_SAVED_DOCUMENTS):
        self.max_saved_documents = max_saved_documents
        self._documents: Dict[str, Tuple[int, SavedDocument]] = {}
        self._sequence = 0

    async def save(self, document: SavedDocument) -> SavedDocument:
        self._sequence += 1
        self._documents[document.id] = (self._sequence, document.model_copy())
        return document

    async def get(self, document_id: str) -> SavedDocument:
        try:
            return self._documents[document_id][1].model_copy()
        except KeyError:
            raise DocumentNotFoundError(document_id) from None

    async def update_texts(self, document_id: str, original_text: str, edited_text: str) -> SavedDocument:
        if document_id not in self._documents:
            raise DocumentNotFoundError(document_id)
        sequence, stored = self._documents[document_id]
        updated = stored.model_copy(
            update={"original_text": original_text, "edited_text": edited_text, "updated_at": _utcnow()}
        )
        self._documents[document_id] = (sequence, updated)
        return updated.model_copy()

    async def list(self, limit: Optional[int] = None) -> List[SavedDocument]:
        cap = self.max_saved_documents if limit is None else min(limit, self.max_saved_documents)
        ordered = sorted(
            self._documents.values(),
            key=lambda entry: (entry[1].created_at, entry[0]),
            reverse=True,
        )
        return [document.model_copy() for _, document in ordered[:cap]]

    async def count(self) -> int:
        return len(self._documents)

    async def delete(self, document_id: str) -> bool:
        return self._documents.pop(document_id, None) is not None


class SqliteDocumentStore:
    """SQLite-backed store using aiosqlite."""

    def __init__(self, db_path: str, max_saved_documents: int = DEFAULT_MAX_SAVED_DOCUMENTS):
        self.db_path = Path(db_path)
        self.max_saved_documents = max_saved_documents
        self._pool: Optional[aiosqlite.Connection] = None
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open SQLite connection and create schema if needed."""
        async with self._init_lock:
            if self._pool is not None:
                return

            if str(self.db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._pool = await aiosqlite.connect(self.db_path.as_posix())
            await self._pool.execute("PRAGMA journal_mode=DELETE")
            await self._pool.execute("PRAGMA synchronous=NORMAL")
            await self._create_schema()
            await self._pool.commit()
            logger.info("Document store initialized with database at %s", self.db_path)

    async def close(self) -> None:
        """Close SQLite connection."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def _create_schema(self) -> None:
        await self._pool.executescript(
            """
            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                original_text TEXT NOT NULL,
                edited_text TEXT NOT NULL,
                level TEXT,
                model TEXT,
                custom_instruction TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_documents_created
                ON documents(created_at DESC);
            """
        )

    async def _connection(self) -> aiosqlite.Connection:
        if self._pool is None:
            await self.initialize()
        return self._pool

    @staticmethod
    def _row_to_document(row) -> SavedDocument:
        return SavedDocument(
            id=row[0],
            name=row[1],
            original_text=row[2],
            edited_text=row[3],
            level=row[4] or "proofread",
            model=row[5],
            custom_instruction=row[6],
            created_at=datetime.fromisoformat(row[7]),
            updated_at=datetime.fromisoformat(row[8]),
        )

    async def save(self, document: SavedDocument) -> SavedDocument:
        pool = await self._connection()
        await pool.execute(
            """
            INSERT OR REPLACE INTO documents
                (id, name, original_text, edited_text, level, model, custom_instruction, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                document.id,
                document.name,
                document.original_text,
                document.edited_text,
                document.level,
                document.model,
                document.custom_instruction,
                document.created_at.isoformat(),
                document.updated_at.isoformat(),
            ),
        )
        await pool.commit()
        return document

    async def get(self, document_id: str) -> SavedDocument:
        pool = await self._connection()
        async with pool.execute(
            """
            SELECT id, name, original_text, edited_text, level, model, custom_instruction, created_at, updated_at
            FROM documents WHERE id = ?
            """,
            (document_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise DocumentNotFoundError(document_id)
        return self._row_to_document(row)

    async def update_texts(self, document_id: str, original_text: str, edited_text: str) -> SavedDocument:
        pool = await self._connection()
        cursor = await pool.execute(
            "UPDATE documents SET original_text = ?, edited_text = ?, updated_at = ? WHERE id = ?",
            (original_text, edited_text, _utcnow().isoformat(), document_id),
        )
        await pool.commit()
        if cursor.rowcount == 0:
            raise DocumentNotFoundError(document_id)
        return await self.get(document_id)

    async def list(self, limit: Optional[int] = None) -> List[SavedDocument]:
        """Return saved documents, newest first."""
        cap = self.max_saved_documents if limit is None else min(limit, self.max_saved_documents)
        pool = await self._connection()
        async with pool.execute(
            """
            SELECT id, name, original_text, edited_text, level, model, custom_instruction, created_at, updated_at
            FROM documents
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (cap,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_document(row) for row in rows]

    async def count(self) -> int:
        """Number of stored documents, ignoring the listing cap."""
        pool = await self._connection()
        async with pool.execute("SELECT COUNT(*) FROM documents") as cursor:
            row = await cursor.fetchone()
        return row[0]

    async def delete(self, document_id: str) -> bool:
        pool = await self._connection()
        cursor = await pool.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        await pool.commit()
        return cursor.rowcount > 0


def build_document_store(settings: DocumentStoreSettings) -> DocumentStore:
    """Create the store selected by DocumentStoreSettings.backend."""
    if settings.backend == "memory":
        return InMemoryDocumentStore(settings.max_saved_documents)
    if settings.backend == "sqlite":
        return SqliteDocumentStore(settings.db_path, settings.max_saved_documents)
    raise ValueError(f"Unknown document store backend '{settings.backend}'")
