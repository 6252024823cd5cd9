"""Serialized output formats; importing registers each writer."""

from .csv_writer import CsvOutputWriter
from .json_writer import JsonOutputWriter, normalize_json_indent
from .markdown_writer import MarkdownOutputWriter
from .nunit3_writer import NUnit3OutputWriter
from .sarif_writer import SarifOutputWriter
from .wide_writer import WideOutputWriter
from .yaml_writer import YamlOutputWriter
