"""
Command line entrypoint for the Longform Editor.

    python main.py edit chapter.txt --level rewrite --variations 3
    python main.py chunk manuscript.txt
    python main.py diff original.txt edited.txt --html review.html
    python main.py documents
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from colorama import Fore, Style

from config import config
from logging_utils import Phase, create_phase_logger

# Silence noisy third-party loggers to avoid cluttering output
_noisy_loggers = [
    'httpcore',
    'httpx',
    'openai._base_client',
    'anthropic._base_client',
    'aiosqlite',
]

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )
    for logger_name in _noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _write_text(path: str, content: str):
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


def _temperature(value: str) -> float:
    try:
        temperature = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid temperature: {value!r}")
    if not 0.0 <= temperature <= 1.0:
        raise argparse.ArgumentTypeError(f"temperature must be between 0.0 and 1.0, got {temperature}")
    return temperature


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Longform Editor: chunked AI editing with tracked changes")
    parser.add_argument("--verbose", action="store_true", help="Verbose phase logs")
    parser.add_argument(
        "--extra-verbose",
        action="store_true",
        help="Log full prompts, responses and a timing summary (includes --verbose)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    edit = subparsers.add_parser("edit", help="Edit a text file")
    edit.add_argument("file", help="UTF-8 text file to edit")
    edit.add_argument("--level", choices=["proofread", "rewrite", "formal", "custom"], default="proofread")
    edit.add_argument("--instruction", help="Instruction for --level custom")
    edit.add_argument(
        "--model",
        action="append",
        dest="models",
        help="Model to try, repeatable in preference order (default: DEFAULT_MODEL_ORDER)",
    )
    edit.add_argument("--variations", type=int, default=1, help="Concurrent variations for short texts (1-5)")
    edit.add_argument("--refine", action="store_true", help="Edit, self-review and polish on one model")
    edit.add_argument("--board", action="store_true", help="Pass the text through every model in turn")
    edit.add_argument("--temperature", type=_temperature, default=None, help="Base temperature (0.0-1.0)")
    edit.add_argument("--output", help="Write clean text (or HTML when the path ends in .html)")
    edit.add_argument("--tracked", action="store_true", help="Print the coloured tracked-changes view")
    edit.add_argument("--save", metavar="NAME", help="Save the result in the document store")

    chunk = subparsers.add_parser("chunk", help="Show the chunk plan for a text file")
    chunk.add_argument("file")
    chunk.add_argument("--target", type=int, default=None, help="Target words per chunk")
    chunk.add_argument("--tolerance", type=int, default=None, help="Allowed deviation in words")

    diff = subparsers.add_parser("diff", help="Show tracked changes between two files")
    diff.add_argument("original")
    diff.add_argument("edited")
    diff.add_argument("--html", help="Also write an HTML review page to this path")

    subparsers.add_parser("documents", help="List saved documents")
    return parser


def cmd_chunk(args) -> int:
    from chunker import chunk_text, summarize_chunks
    from word_count_utils import preview

    target = args.target or config.CHUNKING.target_words
    tolerance = config.CHUNKING.tolerance if args.tolerance is None else args.tolerance
    chunks = chunk_text(_read_text(args.file), target, tolerance)

    for chunk in chunks:
        print(
            f"{Fore.CYAN}{chunk.id:>10}{Style.RESET_ALL} "
            f"{chunk.word_count:5d} words [{chunk.start_offset}:{chunk.end_offset}] "
            f"{preview(chunk.text, 60)}"
        )
    stats = summarize_chunks(chunks)
    print(
        f"{stats['chunks']} chunks, {stats['total_words']} words "
        f"(min {stats['min_words']}, max {stats['max_words']}, avg {stats['average_words']})"
    )
    return 0


def cmd_diff(args) -> int:
    from tracked_changes import TrackedDocument
    from tracked_render import render_ansi, render_html

    document = TrackedDocument.from_texts(_read_text(args.original), _read_text(args.edited))
    print(render_ansi(document, show_ids=True))
    print(f"\n{document.change_count} change groups")
    if args.html:
        _write_text(args.html, render_html(document, full_document=True))
    return 0


async def _run_edit(args) -> int:
    from ai_service import get_edit_backend
    from document_store import build_document_store
    from edit_dispatcher import AllModelsExhaustedError, EditDispatcher
    from edit_session import EditSession
    from models import EditOptions
    from tracked_render import render_ansi, render_html

    text = _read_text(args.file)
    phase_logger = create_phase_logger(
        session_id=Path(args.file).stem,
        verbose=args.verbose,
        extra_verbose=args.extra_verbose,
    )
    options = EditOptions(
        num_variations=args.variations,
        refine=args.refine,
        editorial_board=args.board,
        base_temperature=config.DEFAULT_TEMPERATURE if args.temperature is None else args.temperature,
        chunking=config.CHUNKING,
    )

    backend = get_edit_backend()
    store = build_document_store(config.DOCUMENT_STORE) if args.save else None
    session = EditSession(
        EditDispatcher(backend, phase_logger=phase_logger),
        store=store,
        default_models=config.DEFAULT_MODEL_ORDER,
    )

    try:
        try:
            outcome = await session.apply_edit(
                text,
                level=args.level,
                custom_instruction=args.instruction,
                models=args.models,
                options=options,
            )
        except AllModelsExhaustedError as exc:
            phase_logger.error(f"Edit failed: {exc}")
            return 1

        with phase_logger.phase(Phase.COMPLETION):
            result = outcome.result
            phase_logger.info(
                f"{outcome.document.change_count} changes, model {result.model}, {result.duration:.1f}s"
            )
            if result.failed_chunk_ids:
                phase_logger.warning(f"Unedited chunks: {', '.join(result.failed_chunk_ids)}")
            if len(result.variations) > 1:
                phase_logger.info(f"{len(result.variations)} variations; showing the first")

            if args.output:
                if args.output.lower().endswith(".html"):
                    _write_text(args.output, render_html(outcome.document, full_document=True))
                else:
                    _write_text(args.output, outcome.clean_text)
            if args.save:
                saved = await session.save_new(args.save)
                phase_logger.info(f"Saved as {saved.id}")

        print(render_ansi(outcome.document) if args.tracked else outcome.clean_text)
        phase_logger.log_timing_summary()
        return 0
    finally:
        close = getattr(backend, "close", None)
        if close is not None:
            await close()
        if store is not None and hasattr(store, "close"):
            await store.close()


async def _run_documents() -> int:
    from document_store import build_document_store

    store = build_document_store(config.DOCUMENT_STORE)
    try:
        documents = await store.list()
    finally:
        if hasattr(store, "close"):
            await store.close()

    if not documents:
        print("No saved documents")
    for document in documents:
        print(f"{document.id}  {document.created_at:%Y-%m-%d %H:%M}  {document.level:<9}  {document.name}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging("DEBUG" if args.verbose or args.extra_verbose else config.LOG_LEVEL)

    if args.command == "chunk":
        return cmd_chunk(args)
    if args.command == "diff":
        return cmd_diff(args)
    if args.command == "documents":
        return asyncio.run(_run_documents())
    if args.level == "custom" and not args.instruction:
        parser.error("--level custom requires --instruction")
    return asyncio.run(_run_edit(args))


if __name__ == "__main__":
    sys.exit(main())
