"""
Edit Dispatcher
===============

Sends text plus an instruction to an ordered list of models and returns the
first usable result.

Strategies (first match wins):
    editorial board  - every model edits the previous model's output in turn
    self-refinement  - edit -> self-review -> final polish on one model
    variations       - N concurrent calls at ascending temperatures, deduplicated
    single call      - one call at the base temperature

A model fails when the backend raises ModelCallError or returns nothing but
whitespace once assistant artifacts are stripped. On failure the next model is
tried; when the list is exhausted the last error is raised.

Long documents are chunked and each chunk is edited independently with
bounded concurrency. A chunk whose models all fail keeps its original text.
"""

import asyncio
import logging
import time
from contextlib import nullcontext
from typing import Callable, List, Optional, Sequence

from aggregator import aggregate_chunks
from ai_service import EditBackend, ModelCallError, call_backend
from chunker import Chunk, ChunkingError, chunk_text
from edit_prompts import REFINEMENT_STEP_INSTRUCTION, build_polish_prompt, build_review_prompt, clean_model_output
from logging_utils import Phase, PhaseLogger
from models import ChunkReport, DocumentEditResult, EditAttempt, EditOptions, EditOutcome
from word_count_utils import count_words, normalize_text, preview

logger = logging.getLogger(__name__)

VARIATION_TEMPERATURES = (0.6, 0.7, 0.8, 0.9, 1.0)
REFINEMENT_TEMPERATURE_STEP = 0.1
MAX_CONCURRENT_CHUNK_CALLS = 4
PREVIEW_CHARS = 100

ProgressCallback = Callable[[int, int], None]


class AllModelsExhaustedError(RuntimeError):
    """Every model in the preference list failed; carries the last failure."""

    def __init__(
        self,
        models: Sequence[str],
        last_error: Optional[ModelCallError],
        attempts: Optional[List[EditAttempt]] = None,
    ):
        message = str(last_error) if last_error else "No models available for editing"
        super().__init__(message)
        self.models = list(models)
        self.last_error = last_error
        self.attempts = list(attempts or [])


class EditDispatcher:
    """
    Dispatches edit calls over a model preference list.

    The backend is injected; the dispatcher itself keeps no state between
    calls, so one instance can serve concurrent requests.
    """

    def __init__(self, backend: EditBackend, phase_logger: Optional[PhaseLogger] = None):
        self.backend = backend
        self.phase_logger = phase_logger

    def _phase(self, name: str, sub_label: Optional[str] = None):
        if self.phase_logger is None:
            return nullcontext()
        return self.phase_logger.phase(name, sub_label=sub_label)

    def _warn(self, message: str):
        if self.phase_logger is not None:
            self.phase_logger.warning(message)
        else:
            logger.warning(message)

    async def _call(
        self,
        model: str,
        instruction: str,
        text: str,
        temperature: float,
        step: str,
        attempts: List[EditAttempt],
        source: Optional[str] = None,
    ) -> str:
        """One backend call; records an attempt and raises ModelCallError on failure."""
        if self.phase_logger is not None:
            self.phase_logger.log_request(model, instruction, text, step=step, temperature=temperature)

        started = time.monotonic()
        try:
            raw = await call_backend(self.backend, model=model, instruction=instruction, text=text, temperature=temperature)
            cleaned = clean_model_output(raw, text if source is None else source)
            if not cleaned.strip():
                raise ModelCallError(model, f"{model} returned empty content")
        except ModelCallError as exc:
            duration = time.monotonic() - started
            attempts.append(
                EditAttempt(
                    model=model,
                    step=step,
                    temperature=temperature,
                    duration=round(duration, 3),
                    success=False,
                    error=str(exc),
                    input_preview=preview(text, PREVIEW_CHARS),
                )
            )
            if self.phase_logger is not None:
                self.phase_logger.log_attempt(model, step, False, duration, str(exc))
            else:
                logger.info("Edit call %s on %s failed after %.2fs: %s", step, model, duration, exc)
            raise

        duration = time.monotonic() - started
        attempts.append(
            EditAttempt(
                model=model,
                step=step,
                temperature=temperature,
                duration=round(duration, 3),
                success=True,
                input_preview=preview(text, PREVIEW_CHARS),
                output_preview=preview(cleaned, PREVIEW_CHARS),
            )
        )
        if self.phase_logger is not None:
            self.phase_logger.log_attempt(model, step, True, duration)
            self.phase_logger.log_response(model, cleaned, step=step, temperature=temperature)
        else:
            logger.debug("Edit call %s on %s succeeded in %.2fs", step, model, duration)
        return cleaned

    async def edit_chunk(
        self,
        text: str,
        instruction: str,
        models: Sequence[str],
        options: Optional[EditOptions] = None,
        allow_variations: bool = True,
    ) -> EditOutcome:
        """
        Edit one piece of text with fallback over ``models``.

        Args:
            text: Text to edit
            instruction: Edit instruction
            models: Model preference order; each model is tried at most once
            options: Strategy switches
            allow_variations: False disables variation mode (chunked documents)

        Returns:
            EditOutcome with the winning model and its variations

        Raises:
            AllModelsExhaustedError: every model failed (carries the last error)
        """
        options = options or EditOptions()
        models = list(models)
        attempts: List[EditAttempt] = []

        if options.editorial_board:
            return await self._editorial_board(text, instruction, models, options, attempts)

        word_count = count_words(text)
        use_variations = (
            allow_variations
            and options.num_variations > 1
            and word_count <= options.chunking.large_document_threshold_words
        )
        if allow_variations and options.num_variations > 1 and not use_variations:
            logger.info("Variation mode disabled for %d-word input", word_count)

        last_error: Optional[ModelCallError] = None
        for model in models:
            try:
                if options.refine:
                    with self._phase(Phase.REFINEMENT, sub_label=model):
                        variations = [await self._refine(model, text, instruction, options.base_temperature, attempts)]
                elif use_variations:
                    with self._phase(Phase.VARIATIONS, sub_label=model):
                        variations = await self._variations(model, text, instruction, options.num_variations, attempts)
                else:
                    variations = [await self._call(model, instruction, text, options.base_temperature, "edit", attempts)]
            except ModelCallError as exc:
                last_error = exc
                self._warn(f"Model {model} failed, trying next: {exc}")
                continue
            return EditOutcome(model=model, variations=variations, attempts=attempts)

        raise AllModelsExhaustedError(models, last_error, attempts)

    async def _variations(
        self,
        model: str,
        text: str,
        instruction: str,
        num_variations: int,
        attempts: List[EditAttempt],
    ) -> List[str]:
        """Concurrent calls on one model at ascending temperatures, deduplicated."""
        temperatures = VARIATION_TEMPERATURES[:num_variations]
        results: List[Optional[str]] = [None] * len(temperatures)
        errors: List[Optional[ModelCallError]] = [None] * len(temperatures)
        slot_attempts: List[List[EditAttempt]] = [[] for _ in temperatures]

        async def run(slot: int, temperature: float):
            try:
                results[slot] = await self._call(
                    model, instruction, text, temperature, f"variation-{slot + 1}", slot_attempts[slot]
                )
            except ModelCallError as exc:
                errors[slot] = exc

        await asyncio.gather(*(run(slot, temperature) for slot, temperature in enumerate(temperatures)))
        for slot_log in slot_attempts:
            attempts.extend(slot_log)

        unique: List[str] = []
        seen = set()
        for result in results:
            if result is None:
                continue
            key = result.strip()
            if key in seen:
                continue
            seen.add(key)
            unique.append(key)

        if not unique:
            last_error = next((error for error in reversed(errors) if error is not None), None)
            raise last_error or ModelCallError(model, f"All variations failed for {model}")

        logger.info("%d/%d variations from %s, %d unique", sum(r is not None for r in results), len(results), model, len(unique))
        return unique

    async def _refine(
        self,
        model: str,
        text: str,
        instruction: str,
        base_temperature: float,
        attempts: List[EditAttempt],
    ) -> str:
        """Edit, self-review, polish. Any failing step aborts the chain."""
        review_temperature = round(min(base_temperature + REFINEMENT_TEMPERATURE_STEP, 1.0), 2)
        polish_temperature = round(min(base_temperature + 2 * REFINEMENT_TEMPERATURE_STEP, 1.0), 2)

        current = await self._call(model, instruction, text, base_temperature, "edit", attempts)
        current = await self._call(
            model,
            REFINEMENT_STEP_INSTRUCTION,
            build_review_prompt(text, current, instruction),
            review_temperature,
            "review",
            attempts,
            source=current,
        )
        return await self._call(
            model,
            REFINEMENT_STEP_INSTRUCTION,
            build_polish_prompt(text, current, instruction),
            polish_temperature,
            "polish",
            attempts,
            source=current,
        )

    async def _editorial_board(
        self,
        text: str,
        instruction: str,
        models: List[str],
        options: EditOptions,
        attempts: List[EditAttempt],
    ) -> EditOutcome:
        """Sequential rounds; a failing round is skipped and the text carries on unchanged."""
        current = text
        last_model: Optional[str] = None
        last_error: Optional[ModelCallError] = None

        with self._phase(Phase.EDITORIAL_BOARD, sub_label=f"{len(models)} rounds"):
            for round_number, model in enumerate(models, start=1):
                try:
                    current = await self._call(
                        model, instruction, current, options.base_temperature, f"round-{round_number}", attempts
                    )
                    last_model = model
                except ModelCallError as exc:
                    last_error = exc
                    self._warn(f"Editorial round {round_number} ({model}) failed, continuing: {exc}")

        if last_model is None:
            raise AllModelsExhaustedError(models, last_error, attempts)
        return EditOutcome(model=last_model, variations=[current], attempts=attempts)

    async def edit_document(
        self,
        text: str,
        instruction: str,
        models: Sequence[str],
        options: Optional[EditOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> DocumentEditResult:
        """
        Edit a whole document.

        Documents above the large-document threshold are chunked and edited
        chunk by chunk (fail-open per chunk). Smaller documents are edited in
        one call and failures propagate as AllModelsExhaustedError.
        """
        if not isinstance(text, str):
            raise ChunkingError(f"edit_document expects str, got {type(text).__name__}")

        options = options or EditOptions()
        started = time.monotonic()

        if not text.strip():
            return DocumentEditResult(original_text=text, edited_text=text)

        if count_words(text) > options.chunking.large_document_threshold_words:
            return await self._edit_chunked(text, instruction, list(models), options, progress_callback, started)

        with self._phase(Phase.EDIT):
            outcome = await self.edit_chunk(text, instruction, models, options)
        if progress_callback:
            progress_callback(1, 1)

        return DocumentEditResult(
            original_text=text,
            edited_text=outcome.text,
            variations=outcome.variations,
            model=outcome.model,
            attempts=outcome.attempts,
            duration=round(time.monotonic() - started, 3),
        )

    async def _edit_chunked(
        self,
        text: str,
        instruction: str,
        models: List[str],
        options: EditOptions,
        progress_callback: Optional[ProgressCallback],
        started: float,
    ) -> DocumentEditResult:
        settings = options.chunking
        with self._phase(Phase.CHUNKING):
            chunks = chunk_text(text, settings.target_words, settings.tolerance)
            if self.phase_logger is not None:
                self.phase_logger.info(f"{len(chunks)} chunks from {count_words(text)} words")

        chunk_options = options.model_copy(update={"num_variations": 1})
        results: List[Optional[str]] = [None] * len(chunks)
        reports: List[Optional[ChunkReport]] = [None] * len(chunks)
        slot_attempts: List[List[EditAttempt]] = [[] for _ in chunks]
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_CHUNK_CALLS)
        completed = 0

        async def run(index: int, chunk: Chunk):
            nonlocal completed
            report = ChunkReport(
                chunk_id=chunk.id,
                word_count=chunk.word_count,
                start_offset=chunk.start_offset,
                end_offset=chunk.end_offset,
            )
            async with semaphore:
                try:
                    outcome = await self.edit_chunk(chunk.text, instruction, models, chunk_options, allow_variations=False)
                    results[index] = outcome.text
                    report.model = outcome.model
                    slot_attempts[index] = outcome.attempts
                except AllModelsExhaustedError as exc:
                    results[index] = chunk.text
                    report.failed = True
                    report.error = str(exc)
                    slot_attempts[index] = exc.attempts
                    self._warn(f"{chunk.id} kept its original text: {exc}")
            reports[index] = report
            completed += 1
            if self.phase_logger is not None:
                self.phase_logger.log_chunk_done(chunk.id, completed, len(chunks), failed=report.failed)
            if progress_callback:
                progress_callback(completed, len(chunks))

        with self._phase(Phase.EDIT, sub_label=f"{len(chunks)} chunks"):
            await asyncio.gather(*(run(index, chunk) for index, chunk in enumerate(chunks)))

        with self._phase(Phase.AGGREGATION):
            edited_text = aggregate_chunks(results)

        attempts = [attempt for slot in slot_attempts for attempt in slot]
        failed = [report.chunk_id for report in reports if report.failed]
        models_used = [report.model for report in reports if report.model]

        return DocumentEditResult(
            original_text=normalize_text(text),
            edited_text=edited_text,
            model=models_used[0] if models_used else None,
            chunked=True,
            chunks=reports,
            failed_chunk_ids=failed,
            attempts=attempts,
            duration=round(time.monotonic() - started, 3),
        )
