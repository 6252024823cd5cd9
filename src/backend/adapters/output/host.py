from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from common.rule_pipeline.config import PipelineOption

from .base import PipelineWriter

if TYPE_CHECKING:  # pragma: no cover
    from pipelines.host import HostContext


class HostPipelineWriter(PipelineWriter):
    """Terminal writer: hands objects and diagnostics to the host."""

    def __init__(self, host_context: Optional["HostContext"], option: PipelineOption):
        super().__init__(None, option)
        self._host = host_context

    def should_process(self, target: str, action: str) -> bool:
        if self._host is None:
            return True
        return self._host.should_process(target, action)

    def write_object(self, obj: Any, enumerate_collection: bool = False) -> None:
        if self._host is not None:
            self._host.write_object(obj, enumerate_collection)

    def write_warning(self, message: str) -> None:
        if self._host is not None:
            self._host.warning(message)

    def write_error(self, message: str) -> None:
        self._had_errors = True
        if self._host is not None:
            self._host.error(message)

    def write_information(self, message: str) -> None:
        if self._host is not None:
            self._host.information(message)

    def write_verbose(self, message: str) -> None:
        if self._host is not None:
            self._host.verbose(message)

    def write_debug(self, message: str) -> None:
        if self._host is not None:
            self._host.debug(message)
