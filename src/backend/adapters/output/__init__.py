"""Pipeline output writers: host, file and serialized formats."""

from .assert_writer import AssertOutputWriter
from .base import PipelineWriter, SerializationOutputWriter, to_plain
from .file import FileOutputWriter
from .host import HostPipelineWriter
from .registry import get_output, register_writer, registry, select_writer

# Import built-in formats so they self-register with the writer registry.
from . import formats as _builtin_formats  # noqa: F401

__all__ = [
    "AssertOutputWriter",
    "FileOutputWriter",
    "HostPipelineWriter",
    "PipelineWriter",
    "SerializationOutputWriter",
    "get_output",
    "register_writer",
    "registry",
    "select_writer",
    "to_plain",
]
