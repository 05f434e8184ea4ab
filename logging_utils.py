"""
Phase Logging for the Longform Editor
=====================================

Coloured, phase-tracked console logging for the edit pipeline
(chunk -> edit -> aggregate -> diff). Phases can repeat (one EDIT phase per
run, one VARIATIONS phase per model tried), so timings are accumulated per
phase name.
IMPORTANT: No emojis in console output (Windows encoding issues).
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from colorama import Fore, Style, init

# Initialize colorama for Windows
init(autoreset=True)


class Phase:
    """Phase constants for the edit pipeline"""
    CHUNKING = "CHUNKING"
    EDIT = "EDIT"
    VARIATIONS = "VARIATIONS"
    REFINEMENT = "SELF_REFINEMENT"
    EDITORIAL_BOARD = "EDITORIAL_BOARD"
    AGGREGATION = "AGGREGATION"
    DIFF = "DIFF"
    COMPLETION = "COMPLETION"


PHASE_STYLES: Dict[str, Tuple[str, str]] = {
    Phase.CHUNKING: (Fore.CYAN, "[CHK]"),
    Phase.EDIT: (Fore.GREEN, "[EDT]"),
    Phase.VARIATIONS: (Fore.YELLOW, "[VAR]"),
    Phase.REFINEMENT: (Fore.YELLOW, "[REF]"),
    Phase.EDITORIAL_BOARD: (Fore.MAGENTA, "[BRD]"),
    Phase.AGGREGATION: (Fore.BLUE, "[AGG]"),
    Phase.DIFF: (Fore.BLUE, "[DIF]"),
    Phase.COMPLETION: (Fore.GREEN + Style.BRIGHT, "[OK ]"),
}

_UNKNOWN_STYLE = (Fore.WHITE, "[---]")
_RULE = "=" * 60
_DUMP_RULE = "~" * 60


def phase_style(phase_name: Optional[str]) -> Tuple[str, str]:
    """(colour, icon) for a phase; unknown or missing phases get a neutral style."""
    return PHASE_STYLES.get(phase_name, _UNKNOWN_STYLE) if phase_name else _UNKNOWN_STYLE


class TimingTracker:
    """Accumulates elapsed time per phase name across repeated runs"""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._totals: Dict[str, float] = {}
        self._counts: Dict[str, int] = {}
        self._order: List[str] = []

    def record(self, name: str, elapsed: float):
        if name not in self._totals:
            self._order.append(name)
            self._totals[name] = 0.0
            self._counts[name] = 0
        self._totals[name] += elapsed
        self._counts[name] += 1

    @contextmanager
    def measure(self, name: str):
        """Time the enclosed block and record it under ``name``; yields a one-slot list with the result."""
        started = self._clock()
        elapsed = [0.0]
        try:
            yield elapsed
        finally:
            elapsed[0] = self._clock() - started
            self.record(name, elapsed[0])

    def total(self, name: str) -> float:
        return self._totals.get(name, 0.0)

    def count(self, name: str) -> int:
        return self._counts.get(name, 0)

    def summary(self) -> List[Tuple[str, int, float]]:
        """(phase, runs, seconds) in first-seen order."""
        return [(name, self._counts[name], self._totals[name]) for name in self._order]


class PhaseLogger:
    """
    Logger with phase tracking for one editing session

    Usage:
        phase_logger = PhaseLogger(session_id="chapter-3", verbose=True)

        with phase_logger.phase(Phase.CHUNKING):
            phase_logger.info("4200 words -> 9 chunks")

    Verbose mode adds debug lines. Extra-verbose mode also dumps every
    request and response sent through the edit backend and prints a timing
    summary at the end.
    """

    def __init__(
        self,
        session_id: str,
        verbose: bool = False,
        extra_verbose: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        self.session_id = session_id
        self.verbose = verbose or extra_verbose
        self.extra_verbose = extra_verbose
        self.logger = logger or logging.getLogger(__name__)
        self.timings = TimingTracker()
        self._phases: List[str] = []

    @property
    def current_phase(self) -> Optional[str]:
        return self._phases[-1] if self._phases else None

    @contextmanager
    def phase(self, phase_name: str, sub_label: Optional[str] = None):
        """
        Enter a pipeline phase; header on entry, footer with elapsed time on exit

        Example:
            with phase_logger.phase(Phase.VARIATIONS, sub_label="openai/gpt-4o-mini"):
                ...
        """
        color, icon = phase_style(phase_name)
        label = f"{phase_name} - {sub_label}" if sub_label else phase_name
        stamp = datetime.now().strftime("%H:%M:%S")

        self.logger.info(f"{color}{_RULE}{Style.RESET_ALL}")
        self.logger.info(f"{color}{icon} {label} [{self.session_id}] [{stamp}]{Style.RESET_ALL}")
        self._phases.append(phase_name)
        try:
            with self.timings.measure(phase_name) as elapsed:
                yield self
        finally:
            # Concurrent chunk tasks interleave phases; drop this phase's own entry
            last = len(self._phases) - 1 - self._phases[::-1].index(phase_name)
            del self._phases[last]
            self.logger.info(f"{color}{icon} {phase_name} done in {elapsed[0]:.2f}s{Style.RESET_ALL}")

    def _tagged(self, message: str) -> str:
        if not self.current_phase:
            return message
        color, icon = phase_style(self.current_phase)
        return f"{color}{icon}{Style.RESET_ALL} {message}"

    def info(self, message: str):
        self.logger.info(self._tagged(message))

    def debug(self, message: str):
        """Only emitted in verbose mode"""
        if self.verbose:
            self.logger.debug(f"{Style.DIM}{self._tagged(message)}{Style.RESET_ALL}")

    def warning(self, message: str):
        self.logger.warning(f"{Fore.YELLOW}[WARN] {message}{Style.RESET_ALL}")

    def error(self, message: str):
        self.logger.error(f"{Fore.RED}{Style.BRIGHT}[ERROR] {message}{Style.RESET_ALL}")

    def _dump(self, title: str, sections: List[Tuple[str, str]], parameters: Dict[str, Any]):
        color, _ = phase_style(self.current_phase)
        self.logger.info(f"{color}{_DUMP_RULE}{Style.RESET_ALL}")
        self.logger.info(f"{color}[EXTRA_VERBOSE] {title}{Style.RESET_ALL}")
        for key, value in parameters.items():
            self.logger.info(f"  {key}: {value}")
        for heading, body in sections:
            self.logger.info(f"{Fore.CYAN}[{heading}]{Style.RESET_ALL}")
            self.logger.info(body)
        self.logger.info(f"{color}{_DUMP_RULE}{Style.RESET_ALL}")

    def log_request(self, model: str, instruction: str, text: str, **parameters):
        """Dump one edit request (extra-verbose only)"""
        if self.extra_verbose:
            self._dump(f"REQUEST TO {model}", [("INSTRUCTION", instruction), ("TEXT", text)], parameters)

    def log_response(self, model: str, text: str, **parameters):
        """Dump one cleaned edit response (extra-verbose only)"""
        if self.extra_verbose:
            self._dump(f"RESPONSE FROM {model}", [("EDITED", text)], parameters)

    def log_attempt(self, model: str, step: str, success: bool, duration: float, error: Optional[str] = None):
        """One line per backend call"""
        if success:
            self.info(f"{Fore.GREEN}[+]{Style.RESET_ALL} {model} {step} ({duration:.2f}s)")
        else:
            self.info(f"{Fore.RED}[-]{Style.RESET_ALL} {model} {step} ({duration:.2f}s): {error}")

    def log_chunk_done(self, chunk_id: str, done: int, total: int, failed: bool = False):
        """Chunk completion with overall progress"""
        percent = round(done / total * 100) if total else 100
        status = f"{Fore.YELLOW}kept original{Style.RESET_ALL}" if failed else "edited"
        self.info(f"{chunk_id} {status} ({done}/{total}, {percent}%)")

    def log_timing_summary(self):
        """Per-phase totals (extra-verbose only)"""
        if not self.extra_verbose:
            return
        rows = self.timings.summary()
        if not rows:
            return

        header = f"{Fore.WHITE}{Style.BRIGHT}"
        self.logger.info(f"{header}{_RULE}{Style.RESET_ALL}")
        self.logger.info(f"{header}TIMING SUMMARY [{self.session_id}]{Style.RESET_ALL}")
        for name, runs, seconds in rows:
            color, _ = phase_style(name)
            self.logger.info(f"{color}{name:20s} x{runs:<4d} {seconds:8.2f}s{Style.RESET_ALL}")
        self.logger.info(f"{header}{_RULE}{Style.RESET_ALL}")


def create_phase_logger(
    session_id: str,
    verbose: bool = False,
    extra_verbose: bool = False
) -> PhaseLogger:
    """Create a PhaseLogger bound to the module logger"""
    return PhaseLogger(
        session_id=session_id,
        verbose=verbose,
        extra_verbose=extra_verbose
    )
