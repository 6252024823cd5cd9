from __future__ import annotations

import json
import os
from typing import Any, Callable, Optional

from common.rule_pipeline.config import PipelineOption

from .base import PipelineWriter, to_plain

ShouldProcess = Callable[[str, str], bool]

WRITE_OUTPUT_ACTION = "Write output file"
OUTPUT_WRITTEN = "Output written to: {0}"


class FileOutputWriter(PipelineWriter):
    """Redirects serialized output to ``path`` instead of the host.

    Each write is confirmed through ``should_process`` first. Diagnostics keep
    flowing to ``inner``; objects only reach ``inner`` too when ``write_host``
    is set.
    """

    def __init__(
        self,
        inner: Optional[PipelineWriter],
        option: PipelineOption,
        *,
        encoding: str,
        path: str,
        should_process: Optional[ShouldProcess] = None,
        write_host: bool = False,
    ):
        super().__init__(inner, option)
        self.encoding = encoding
        self.path = path
        self._should_process = should_process
        self._write_host = write_host
        self._written = False

    def write_object(self, obj: Any, enumerate_collection: bool = False) -> None:
        if isinstance(obj, str):
            self._write_to_file(obj)
        elif enumerate_collection and isinstance(obj, (list, tuple)):
            for item in obj:
                self._write_to_file(_as_line(item))
        else:
            self._write_to_file(_as_line(obj))
        if self._write_host:
            super().write_object(obj, enumerate_collection)

    def _write_to_file(self, text: str) -> None:
        if self._should_process is not None and not self._should_process(self.path, WRITE_OUTPUT_ACTION):
            return
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)
        mode = "a" if self._written else "w"
        with open(self.path, mode, encoding=self.encoding, newline="") as handle:
            handle.write(text)
        if not self._written:
            self.write_information(OUTPUT_WRITTEN.format(self.path))
        self._written = True


def _as_line(obj: Any) -> str:
    value = to_plain(obj)
    if isinstance(value, str):
        return f"{value}\n"
    return json.dumps(value, default=str) + "\n"
