from __future__ import annotations

import json
import logging
import sys
from typing import Any, Callable, List, Optional, Protocol, TextIO

from adapters.output.base import to_plain

logger = logging.getLogger(__name__)


class HostContext(Protocol):
    def should_process(self, target: str, action: str) -> bool:
        """Confirm a side effect (such as writing a file) before it happens."""
        ...

    def write_object(self, obj: Any, enumerate_collection: bool) -> None:
        ...

    def warning(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def information(self, message: str) -> None:
        ...

    def verbose(self, message: str) -> None:
        ...

    def debug(self, message: str) -> None:
        ...


class LoggingHostContext:
    """Host that prints objects to a stream and routes diagnostics to logging.

    ``confirm`` is consulted by ``should_process``; without one every action
    is allowed.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        *,
        confirm: Optional[Callable[[str, str], bool]] = None,
    ) -> None:
        self._stream = stream
        self._confirm = confirm

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def should_process(self, target: str, action: str) -> bool:
        if self._confirm is None:
            return True
        return self._confirm(target, action)

    def write_object(self, obj: Any, enumerate_collection: bool) -> None:
        items = obj if enumerate_collection and isinstance(obj, (list, tuple)) else [obj]
        for item in items:
            if isinstance(item, str):
                text = item
            else:
                text = json.dumps(to_plain(item), default=str)
            self.stream.write(text if text.endswith("\n") else f"{text}\n")

    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)

    def information(self, message: str) -> None:
        # Assertion text is user output, not a log record.
        self.stream.write(f"{message}\n")

    def verbose(self, message: str) -> None:
        logger.info(message)

    def debug(self, message: str) -> None:
        logger.debug(message)


class RecordingHostContext:
    """Collects everything written, for tests and embedding callers."""

    def __init__(self, *, allow: bool = True) -> None:
        self.allow = allow
        self.objects: List[Any] = []
        self.warnings: List[str] = []
        self.errors: List[str] = []
        self.information_messages: List[str] = []
        self.verbose_messages: List[str] = []
        self.debug_messages: List[str] = []
        self.confirmations: List[tuple] = []

    def should_process(self, target: str, action: str) -> bool:
        self.confirmations.append((target, action))
        return self.allow

    def write_object(self, obj: Any, enumerate_collection: bool) -> None:
        if enumerate_collection and isinstance(obj, (list, tuple)):
            self.objects.extend(obj)
        else:
            self.objects.append(obj)

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def information(self, message: str) -> None:
        self.information_messages.append(message)

    def verbose(self, message: str) -> None:
        self.verbose_messages.append(message)

    def debug(self, message: str) -> None:
        self.debug_messages.append(message)
