"""
Data Models for the Longform Editor
===================================

Pydantic models for edit requests, per-call logs and edit results.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from config import ChunkingSettings

MAX_VARIATIONS = 5


class EditOptions(BaseModel):
    """Strategy switches for one edit request"""
    num_variations: int = Field(
        default=1,
        description="Concurrent variations for short inputs (clamped to 1-5)",
    )
    refine: bool = Field(default=False, description="Run the edit -> review -> polish chain")
    editorial_board: bool = Field(
        default=False,
        description="Pass the text sequentially through every model, each editing the previous output",
    )
    base_temperature: float = Field(default=0.3, ge=0.0, le=1.0, description="Temperature for single and first-step calls")
    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings, description="Chunk size knobs")

    @field_validator("num_variations", mode="before")
    @classmethod
    def clamp_variations(cls, v) -> int:
        """Clamp the variation count into the supported range"""
        try:
            value = int(v)
        except (TypeError, ValueError):
            raise ValueError(f"num_variations must be an integer, got {v!r}")
        return max(1, min(MAX_VARIATIONS, value))


class EditAttempt(BaseModel):
    """One backend call made while editing"""
    model: str
    step: str = Field(default="edit", description="edit, variation-N, review, polish or round-N")
    temperature: float
    duration: float = Field(default=0.0, description="Seconds spent in the call")
    success: bool
    error: Optional[str] = None
    input_preview: str = ""
    output_preview: str = ""


class EditOutcome(BaseModel):
    """Result of editing one piece of text"""
    model: str = Field(..., description="Model that produced the result (last successful round for boards)")
    variations: List[str] = Field(..., min_length=1, description="Ordered, deduplicated candidate edits")
    attempts: List[EditAttempt] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return self.variations[0]


class ChunkReport(BaseModel):
    """How one chunk of a long document was handled"""
    chunk_id: str
    word_count: int
    start_offset: int
    end_offset: int
    model: Optional[str] = None
    failed: bool = False
    error: Optional[str] = None


class DocumentEditResult(BaseModel):
    """Result of editing a whole document"""
    original_text: str
    edited_text: str
    variations: List[str] = Field(default_factory=list, description="Candidate edits (single-call mode only)")
    model: Optional[str] = None
    chunked: bool = False
    chunks: List[ChunkReport] = Field(default_factory=list)
    failed_chunk_ids: List[str] = Field(default_factory=list, description="Chunks that fell back to their original text")
    attempts: List[EditAttempt] = Field(default_factory=list)
    duration: float = 0.0

    @property
    def partially_failed(self) -> bool:
        return bool(self.failed_chunk_ids)
