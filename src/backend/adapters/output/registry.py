from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence, Type

from common.rule_pipeline.config import PipelineOption
from common.rule_pipeline.models import OutputFormat, Source

from .base import PipelineWriter
from .file import FileOutputWriter, ShouldProcess


class WriterRegistry:
    def __init__(self):
        self._writers: Dict[OutputFormat, Type[PipelineWriter]] = {}

    def register(self, fmt: OutputFormat, writer_cls: Type[PipelineWriter]) -> None:
        if fmt in self._writers:
            raise ValueError(f"Duplicate writer registered for format: {fmt.value}")
        self._writers[fmt] = writer_cls

    def get(self, fmt: OutputFormat) -> Optional[Type[PipelineWriter]]:
        return self._writers.get(fmt)


registry = WriterRegistry()


def register_writer(fmt: OutputFormat) -> Callable[[Type[PipelineWriter]], Type[PipelineWriter]]:
    def decorator(writer_cls: Type[PipelineWriter]) -> Type[PipelineWriter]:
        registry.register(fmt, writer_cls)
        return writer_cls

    return decorator


def select_writer(
    output: PipelineWriter,
    option: PipelineOption,
    source: Sequence[Source] = (),
) -> PipelineWriter:
    """Wrap ``output`` in the serializer for ``option.output.format``.

    Formats with no registered writer (including ``None``) write straight to
    ``output``.
    """
    fmt = option.output.format or OutputFormat.NONE
    writer_cls = registry.get(fmt)
    if writer_cls is None:
        return output
    if getattr(writer_cls, "requires_source", False):
        return writer_cls(output, option, source=tuple(source))
    return writer_cls(output, option)


def get_output(
    host_writer: Optional[PipelineWriter],
    option: PipelineOption,
    should_process: Optional[ShouldProcess] = None,
    write_host: bool = False,
) -> PipelineWriter:
    """Return the destination writer: a file writer when an output path is set."""
    if not option.output.path:
        return host_writer
    return FileOutputWriter(
        host_writer,
        option,
        encoding=option.output.get_encoding(),
        path=option.output.path,
        should_process=should_process,
        write_host=write_host,
    )
