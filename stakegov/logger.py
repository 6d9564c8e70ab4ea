"""
stakegov Logging
================

Standard ``logging`` configured once for the whole package: a ``rich``
console handler on stderr that highlights proposal ids, vote directions,
status labels and error kinds, plus an optional rotating file handler.
Settings come from ``.env`` (see constants.py).

Usage:
    >>> from stakegov.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Proposal #1 created")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "stakegov.log"

GOVERNANCE_THEME = Theme({
    "stakegov.level_error":   "bold red",
    "stakegov.level_warning": "bold yellow",
    "stakegov.logger_name":   "magenta",
    "stakegov.proposal_id":   "bold cyan",
    "stakegov.vote_for":      "bold green",
    "stakegov.vote_against":  "bold red",
    "stakegov.label_final":   "bold magenta",
    "stakegov.label_ready":   "bold green",
    "stakegov.label_pending": "bold yellow",
    "stakegov.error_kind":    "bold red",
    "stakegov.fingerprint":   "dim cyan",
})


class StakegovLogHighlighter(RegexHighlighter):
    """Highlights governance vocabulary in console log lines."""

    base_style = "stakegov."
    highlights = [
        r"(?P<level_error>\b(ERROR|CRITICAL)\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>stakegov[\w.]*)",
        r"(?P<proposal_id>#\d+)",
        r"(?P<vote_for>\bFOR\b)",
        r"(?P<vote_against>\bAGAINST\b)",
        r"(?P<label_final>\b(EXECUTED|CANCELLED)\b)",
        r"(?P<label_ready>\bREADY\b)",
        r"(?P<label_pending>\bPENDING\b)",
        r"(?P<error_kind>\b(NotAuthorized|ProposalNotFound|AlreadyVoted|ProposalNotPassed|"
        r"TimelockNotExpired|ProposalExpired|InvalidContractHash|ConversionFailed)\b)",
        r"(?P<fingerprint>0x[0-9a-f]{64})",
    ]


class TerminalSafeFormatter(logging.Formatter):
    """
    Strips ANSI escapes and control characters from formatted records.

    Proposal titles and identities are caller-supplied and end up in log
    lines (CWE-117).
    """

    _ansi_escape_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    _control_chars_re = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._control_chars_re.sub("", cls._ansi_escape_re.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class LogManager:
    """Configures the root logger exactly once (thread-safe singleton)."""

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._configured = False
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install the console handler and, when enabled, the rotating file
        handler. Later calls are no-ops.

        Args:
            log_level: Level name; defaults to LOG_LEVEL from .env.
            log_file: File handler target; defaults to logs/stakegov.log.
            file_output: Enable the file handler; defaults to LOG_FILE_OUTPUT.
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()

            formatter = TerminalSafeFormatter(
                fmt=str(LOG_FORMAT), datefmt=str(LOG_DATE_FORMAT) + " UTC"
            )
            formatter.converter = time.gmtime

            if LOG_CONSOLE_HIGHLIGHTING:
                console_handler = RichHandler(
                    console=Console(theme=GOVERNANCE_THEME, highlight=False, stderr=True),
                    highlighter=StakegovLogHighlighter(),
                    keywords=[],
                    show_path=False,
                    show_time=False,
                    show_level=False,
                    markup=False,
                )
            else:
                console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            root.addHandler(console_handler)

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)
            if file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.handlers.RotatingFileHandler(
                    filename=str(path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setLevel(level)
                file_handler.setFormatter(formatter)
                root.addHandler(file_handler)

            self._configured = True


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, configuring logging on first use."""
    if not _manager.is_configured:
        _manager.configure()
    return logging.getLogger(name)


_manager.configure()
