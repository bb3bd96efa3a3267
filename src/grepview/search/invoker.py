"""Command-line contract and process handling for the external search tool."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from grepview.config import SearchConfig
from grepview.errors import InvalidInputError, NotFoundError, ProcessError
from grepview.search.models import CompletedSearch, SearchRequest

if TYPE_CHECKING:
    from grepview.session import SearchSession

logger = logging.getLogger(__name__)

BASE_FLAGS: tuple[str, ...] = (
    "--line-number",
    "--with-filename",
    "--no-ignore",
    "--hidden",
    "--text",
    "--stats",
)

_CREATION_FLAGS = subprocess.CREATE_NO_WINDOW if sys.platform == "win32" else 0


def validate_request(request: SearchRequest) -> Path:
    """Check required fields and return the resolved search root."""
    if not request.pattern.strip():
        raise InvalidInputError("Search pattern cannot be empty.")
    if not request.root.strip():
        raise InvalidInputError("Search path cannot be empty.")
    root = Path(request.root.strip())
    if not root.exists():
        raise NotFoundError(f"Path does not exist: {request.root}")
    if not root.is_dir():
        raise InvalidInputError(f"Search path is not a directory: {request.root}")
    return root.resolve()


def build_command(request: SearchRequest, binary: str) -> list[str]:
    """Translate a request into the tool's argv.

    Paths in the output are relative to the search root because the root is
    the working directory and ``.`` is the only path argument.
    """
    command = [binary, *BASE_FLAGS]
    command.append("--case-sensitive" if request.case_sensitive else "--ignore-case")
    if request.whole_phrase:
        command.append("--fixed-strings")
    if request.whole_word:
        command.append("--word-regexp")
    if request.file_filter:
        command.extend(["--glob", request.file_filter])
    command.extend(["--", request.pattern, "."])
    return command


def locate_binary(binary: str) -> str:
    """Return an executable path for ``binary`` or raise ProcessError."""
    located = shutil.which(binary)
    if located is None:
        raise ProcessError(f"Search tool not found: {binary}")
    return located


class SearchTask:
    """One run of the search tool with optional timeout and cancellation.

    ``result()`` blocks the calling thread until the process exits. The
    default timeout is unbounded. ``cancel()`` may be called from another
    thread; the pending ``result()`` then raises ProcessError.
    """

    def __init__(self, command: list[str], cwd: Path, timeout: float | None = None) -> None:
        self._command = tuple(command)
        self._cwd = cwd
        self._timeout = timeout
        self._process: subprocess.Popen[bytes] | None = None
        self._completed: CompletedSearch | None = None
        self._cancelled = False

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._completed is not None or self._cancelled

    def start(self) -> SearchTask:
        """Launch the process if it is not running yet."""
        if self._process is not None or self._cancelled:
            return self
        logger.debug("Starting search in %s: %s", self._cwd, " ".join(self._command))
        try:
            self._process = subprocess.Popen(
                self._command,
                cwd=self._cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                creationflags=_CREATION_FLAGS,
            )
        except OSError as error:
            raise ProcessError(f"Failed to run search tool: {error}") from error
        return self

    def cancel(self) -> None:
        """Stop the process; a pending or later ``result()`` raises."""
        self._cancelled = True
        process = self._process
        if process is not None and process.poll() is None:
            process.kill()
            logger.debug("Search cancelled: %s", " ".join(self._command))

    def result(self, timeout: float | None = None) -> CompletedSearch:
        """Wait for the process and return its captured output."""
        if self._completed is not None:
            return self._completed
        if self._cancelled:
            raise ProcessError("Search was cancelled.")
        self.start()
        process = self._process
        if process is None:
            raise ProcessError("Search was cancelled.")

        effective_timeout = timeout if timeout is not None else self._timeout
        try:
            stdout, stderr = process.communicate(timeout=effective_timeout)
        except subprocess.TimeoutExpired as error:
            process.kill()
            process.communicate()
            raise ProcessError(
                f"Search timed out after {effective_timeout} seconds."
            ) from error
        if self._cancelled:
            raise ProcessError("Search was cancelled.")

        self._completed = CompletedSearch(
            root=str(self._cwd),
            command=self._command,
            returncode=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        logger.debug(
            "Search tool exited with status %s: %s",
            self._completed.returncode,
            " ".join(self._completed.command),
        )
        if self._completed.stderr:
            logger.debug("Search tool stderr: %s", self._completed.stderr.strip())
        return self._completed


class SearchToolInvoker:
    """Builds and runs search tasks for one session."""

    def __init__(self, session: SearchSession, config: SearchConfig | None = None) -> None:
        self._session = session
        self._config = config or SearchConfig()

    def start(self, request: SearchRequest) -> SearchTask:
        """Validate ``request``, record its root and launch the tool."""
        root = validate_request(request)
        self._session.record_search_root(root)
        binary = locate_binary(self._config.binary)
        command = build_command(request, binary)
        logger.debug(
            "Search request: case_sensitive=%s whole_phrase=%s whole_word=%s filter=%r",
            request.case_sensitive,
            request.whole_phrase,
            request.whole_word,
            request.file_filter,
        )
        return SearchTask(command, cwd=root, timeout=self._config.timeout_seconds).start()

    def run(self, request: SearchRequest) -> CompletedSearch:
        """Run the tool to completion and return its output."""
        return self.start(request).result()
