"""
Phase Logging for the Muse Generation Layer
===========================================

Colored, phase-scoped console logging for a generation turn.
IMPORTANT: No emojis in console output (Windows encoding issues).
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Optional

from colorama import Fore, Style, init

# Initialize colorama for Windows
init(autoreset=True)


class Phase:
    """Phase constants for a generation turn"""
    GENERATION = "WRITING_GENERATION"
    TOOLS = "TOOL_INTERPRETATION"
    SPEECH = "SPEECH_SYNTHESIS"
    IMAGE = "IMAGE_GENERATION"
    VIDEO = "VIDEO_GENERATION"
    LEDGER = "USAGE_LEDGER"


PHASE_COLORS = {
    Phase.GENERATION: Fore.GREEN,
    Phase.TOOLS: Fore.CYAN,
    Phase.SPEECH: Fore.MAGENTA,
    Phase.IMAGE: Fore.BLUE,
    Phase.VIDEO: Fore.RED,
    Phase.LEDGER: Fore.YELLOW,
}

# Text-based icons, no emojis
PHASE_ICONS = {
    Phase.GENERATION: "[GEN]",
    Phase.TOOLS: "[TLS]",
    Phase.SPEECH: "[TTS]",
    Phase.IMAGE: "[IMG]",
    Phase.VIDEO: "[VID]",
    Phase.LEDGER: "[LDG]",
}

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once for console output."""
    root = logging.getLogger()
    if any(getattr(handler, "_muse_handler", False) for handler in root.handlers):
        root.setLevel(level.upper())
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    handler._muse_handler = True
    root.addHandler(handler)
    root.setLevel(level.upper())


class PhaseLogger:
    """
    Logger with phase tracking and visual formatting

    Usage:
        phase_logger = PhaseLogger(session_id="abc123", verbose=True)

        with phase_logger.phase(Phase.GENERATION):
            phase_logger.info("Calling model chain...")
            phase_logger.log_prompt("gemini-3-flash-preview", system_prompt, user_prompt)
    """

    def __init__(
        self,
        session_id: str,
        verbose: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        self.session_id = session_id
        self.verbose = verbose
        self.logger = logger or logging.getLogger(__name__)
        self._current_phase: Optional[str] = None
        self._phase_stack = []
        self._timings: Dict[str, float] = {}

    @contextmanager
    def phase(self, phase_name: str, sub_label: Optional[str] = None):
        """Context manager for phase tracking with automatic timing"""
        self._phase_stack.append(self._current_phase)
        self._current_phase = phase_name
        started = time.time()
        self._print_phase_header(phase_name, sub_label)
        try:
            yield self
        finally:
            elapsed = time.time() - started
            self._timings[phase_name] = self._timings.get(phase_name, 0.0) + elapsed
            self._print_phase_footer(phase_name, elapsed)
            self._current_phase = self._phase_stack.pop() if self._phase_stack else None

    @property
    def current_phase(self) -> Optional[str]:
        return self._current_phase

    def get_timings(self) -> Dict[str, float]:
        return dict(self._timings)

    def _print_phase_header(self, phase_name: str, sub_label: Optional[str] = None):
        color = PHASE_COLORS.get(phase_name, Fore.WHITE)
        icon = PHASE_ICONS.get(phase_name, "[???]")
        timestamp = datetime.now().strftime("%H:%M:%S")
        sub_str = f" - {sub_label}" if sub_label else ""
        self.logger.info(
            f"{color}{icon} {phase_name}{sub_str} [{self.session_id} {timestamp}]{Style.RESET_ALL}"
        )

    def _print_phase_footer(self, phase_name: str, elapsed: float):
        color = PHASE_COLORS.get(phase_name, Fore.WHITE)
        icon = PHASE_ICONS.get(phase_name, "[???]")
        self.logger.info(f"{color}{icon} {phase_name} done ({elapsed:.2f}s){Style.RESET_ALL}")

    def info(self, message: str):
        """Log info message with current phase context"""
        if self._current_phase:
            color = PHASE_COLORS.get(self._current_phase, Fore.WHITE)
            icon = PHASE_ICONS.get(self._current_phase, "[???]")
            self.logger.info(f"{color}{icon}{Style.RESET_ALL} {message}")
        else:
            self.logger.info(message)

    def debug(self, message: str):
        """Log debug message (only if verbose)"""
        if self.verbose:
            self.logger.debug(f"{Fore.WHITE}{Style.DIM}{message}{Style.RESET_ALL}")

    def warning(self, message: str):
        self.logger.warning(f"{Fore.YELLOW}[WARN] {message}{Style.RESET_ALL}")

    def error(self, message: str):
        self.logger.error(f"{Fore.RED}{Style.BRIGHT}[ERROR] {message}{Style.RESET_ALL}")

    def log_prompt(self, model: str, system_prompt: Optional[str], user_prompt: str, **kwargs: Any):
        """Log full prompt (only if verbose)"""
        if not self.verbose:
            return
        color = PHASE_COLORS.get(self._current_phase, Fore.WHITE)
        separator = "~" * 60
        self.logger.info(f"{color}{separator}{Style.RESET_ALL}")
        self.logger.info(f"{color}[VERBOSE] PROMPT TO {model}{Style.RESET_ALL}")
        if system_prompt:
            self.logger.info(f"{Fore.CYAN}[SYSTEM PROMPT]{Style.RESET_ALL}")
            self.logger.info(system_prompt)
        self.logger.info(f"{Fore.GREEN}[USER PROMPT]{Style.RESET_ALL}")
        self.logger.info(user_prompt)
        for key, value in kwargs.items():
            self.logger.info(f"  {key}: {value}")
        self.logger.info(f"{color}{separator}{Style.RESET_ALL}")

    def log_response(self, model: str, response: str, metadata: Optional[Dict[str, Any]] = None):
        """Log full response (only if verbose)"""
        if not self.verbose:
            return
        color = PHASE_COLORS.get(self._current_phase, Fore.WHITE)
        separator = "~" * 60
        self.logger.info(f"{color}{separator}{Style.RESET_ALL}")
        self.logger.info(f"{color}[VERBOSE] RESPONSE FROM {model}{Style.RESET_ALL}")
        for key, value in (metadata or {}).items():
            self.logger.info(f"  {key}: {value}")
        self.logger.info(response)
        self.logger.info(f"{color}{separator}{Style.RESET_ALL}")

    def log_decision(self, decision: str, reason: Optional[str] = None):
        """Log a gate/mutation decision"""
        if decision.upper() in ("ALLOWED", "APPLIED", "OK"):
            color, icon = Fore.GREEN + Style.BRIGHT, "[OK]"
        else:
            color, icon = Fore.RED + Style.BRIGHT, "[BLOCK]"
        self.logger.info(f"{color}{icon} {decision}{Style.RESET_ALL}")
        if reason:
            self.logger.info(f"  Reason: {reason}")


def create_phase_logger(session_id: str, verbose: bool = False) -> PhaseLogger:
    """Create a new PhaseLogger instance"""
    return PhaseLogger(session_id=session_id, verbose=verbose)
