"""Global exception handling for the command-line host."""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from types import TracebackType
from typing import Callable, Optional, Type

from ..core.tensor.errors import TensorDecodeError

logger = logging.getLogger("app.exceptions")


def install_exception_hook(chain: bool = True) -> None:
    """Log uncaught exceptions from the main thread and from worker threads.

    With ``chain`` the previously installed hooks still run for anything other
    than a decode failure, so the interpreter keeps printing tracebacks.
    """

    hook = _ExceptionHook(chain=chain)
    hook.install()


@dataclass
class _ExceptionHook:
    chain: bool = True
    _previous: Optional[Callable] = None
    _previous_thread: Optional[Callable] = None

    def install(self) -> None:
        self._previous = sys.excepthook
        self._previous_thread = threading.excepthook
        sys.excepthook = self._handle_exception
        threading.excepthook = self._handle_thread_exception  # type: ignore[assignment]

    def _handle_exception(
        self,
        exc_type: Type[BaseException],
        exc_value: BaseException,
        exc_traceback: Optional[TracebackType],
    ) -> None:
        if self._report(exc_type, exc_value, exc_traceback, "main thread") and self._previous:
            self._previous(exc_type, exc_value, exc_traceback)

    def _handle_thread_exception(self, args: "threading.ExceptHookArgs") -> None:
        where = args.thread.name if args.thread else "<unknown thread>"
        if self._report(args.exc_type, args.exc_value, args.exc_traceback, where) and self._previous_thread:
            self._previous_thread(args)

    def _report(self, exc_type, exc_value, exc_traceback, where: str) -> bool:
        """Log the exception; return True when the previous hook should also run."""
        if issubclass(exc_type, TensorDecodeError):
            # Malformed frames are expected input; the traceback adds nothing.
            logger.error("Unhandled decode failure in %s (%s): %s", where, exc_type.kind, exc_value)
            return False
        logger.critical(
            "Unhandled exception in %s: %s",
            where,
            exc_value,
            exc_info=(exc_type, exc_value, exc_traceback),
        )
        return self.chain
