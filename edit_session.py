"""
Edit Session - single-writer orchestration of one document being edited.

Ties the pipeline together for entry points: build the instruction, dispatch
the edit, diff the result into a TrackedDocument, report chunk progress and
persist (original_text, clean_text) pairs through an injected DocumentStore.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from document_store import DocumentStore, SavedDocument
from edit_dispatcher import EditDispatcher
from edit_prompts import EditLevel, build_instruction
from logging_utils import Phase
from models import DocumentEditResult, EditOptions
from tracked_changes import TrackedDocument

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    """Raised when a session operation is not possible in the current state."""


@dataclass
class EditProgress:
    chunks_processed: int = 0
    total_chunks: int = 0
    percentage: int = 0
    elapsed_seconds: float = 0.0
    estimated_remaining_seconds: Optional[float] = None


@dataclass
class SessionEditResult:
    result: DocumentEditResult
    document: TrackedDocument

    @property
    def clean_text(self) -> str:
        return self.document.clean_text()


class EditSession:
    """
    Holds the tracked document currently being reviewed.

    A new edit or a load discards the previous change-group sequence.
    """

    def __init__(
        self,
        dispatcher: EditDispatcher,
        store: Optional[DocumentStore] = None,
        default_models: Optional[Sequence[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.dispatcher = dispatcher
        self.store = store
        self.default_models: List[str] = list(default_models or [])
        self._clock = clock

        self.document: Optional[TrackedDocument] = None
        self.current_document_id: Optional[str] = None
        self.level: str = EditLevel.PROOFREAD.value
        self.custom_instruction: Optional[str] = None
        self.model: Optional[str] = None

        self._processed = 0
        self._total = 0
        self._started: Optional[float] = None

    def _on_progress(self, processed: int, total: int):
        self._processed = processed
        self._total = total

    @property
    def progress(self) -> EditProgress:
        """Chunk progress of the running (or last) edit."""
        if self._started is None:
            return EditProgress()
        elapsed = self._clock() - self._started
        if not self._total:
            return EditProgress(elapsed_seconds=round(elapsed, 1))

        remaining = None
        if self._processed:
            per_chunk = elapsed / self._processed
            remaining = max(0.0, round(per_chunk * self._total - elapsed, 1))
        return EditProgress(
            chunks_processed=self._processed,
            total_chunks=self._total,
            percentage=round(self._processed / self._total * 100),
            elapsed_seconds=round(elapsed, 1),
            estimated_remaining_seconds=remaining,
        )

    async def apply_edit(
        self,
        text: str,
        level=EditLevel.PROOFREAD,
        custom_instruction: Optional[str] = None,
        models: Optional[Sequence[str]] = None,
        options: Optional[EditOptions] = None,
    ) -> SessionEditResult:
        """Edit ``text`` and replace the current tracked document with the result."""
        chosen_models = list(models or self.default_models)
        if not chosen_models:
            raise SessionError("No models configured for editing")

        instruction = build_instruction(level, custom_instruction)
        self._processed = 0
        self._total = 0
        self._started = self._clock()

        result = await self.dispatcher.edit_document(
            text,
            instruction,
            chosen_models,
            options,
            progress_callback=self._on_progress,
        )

        phase_logger = self.dispatcher.phase_logger
        if phase_logger is not None:
            with phase_logger.phase(Phase.DIFF):
                document = TrackedDocument.from_texts(result.original_text, result.edited_text)
                phase_logger.info(f"{document.change_count} change groups")
        else:
            document = TrackedDocument.from_texts(result.original_text, result.edited_text)

        self.document = document
        self.level = EditLevel(level).value
        self.custom_instruction = custom_instruction
        self.model = result.model

        if result.failed_chunk_ids:
            logger.warning("Chunks left unedited: %s", ", ".join(result.failed_chunk_ids))
        return SessionEditResult(result=result, document=document)

    def _require_document(self) -> TrackedDocument:
        if self.document is None:
            raise SessionError("No document in session")
        return self.document

    def _require_store(self) -> DocumentStore:
        if self.store is None:
            raise SessionError("No document store configured")
        return self.store

    def clean_text(self) -> str:
        return self._require_document().clean_text()

    async def save_new(self, name: Optional[str] = None) -> SavedDocument:
        """Persist the current (original, clean) pair as a new saved document."""
        store = self._require_store()
        document = self._require_document()
        if not name or not name.strip():
            existing = await store.count()
            name = f"Document {existing + 1}"

        saved = await store.save(
            SavedDocument(
                name=name.strip(),
                original_text=document.original_text(),
                edited_text=document.clean_text(),
                level=self.level,
                model=self.model,
                custom_instruction=self.custom_instruction,
            )
        )
        self.current_document_id = saved.id
        logger.info("Saved document %s (%s)", saved.name, saved.id)
        return saved

    async def save_progress(self) -> SavedDocument:
        """Update the loaded document with the current clean text."""
        store = self._require_store()
        document = self._require_document()
        if self.current_document_id is None:
            raise SessionError("No document loaded to update")
        return await store.update_texts(self.current_document_id, document.original_text(), document.clean_text())

    async def load(self, document_id: str) -> TrackedDocument:
        """Load a saved pair and regenerate its change groups."""
        store = self._require_store()
        saved = await store.get(document_id)
        self.document = TrackedDocument.from_texts(saved.original_text, saved.edited_text)
        self.current_document_id = saved.id
        self.level = saved.level
        self.model = saved.model
        self.custom_instruction = saved.custom_instruction
        self._started = None
        logger.info("Loaded document %s with %d changes", saved.name, self.document.change_count)
        return self.document
