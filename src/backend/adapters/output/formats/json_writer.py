from __future__ import annotations

import json
from typing import Any, Optional

from common.rule_pipeline.config import PipelineOption
from common.rule_pipeline.models import OutputFormat

from ..base import PipelineWriter, SerializationOutputWriter, to_plain
from ..registry import register_writer

MIN_JSON_INDENT = 0
MAX_JSON_INDENT = 4


def normalize_json_indent(value: Optional[int]) -> int:
    if value is None:
        return MIN_JSON_INDENT
    return max(MIN_JSON_INDENT, min(MAX_JSON_INDENT, int(value)))


@register_writer(OutputFormat.JSON)
class JsonOutputWriter(SerializationOutputWriter):
    def __init__(self, inner: Optional[PipelineWriter], option: PipelineOption):
        super().__init__(inner, option)
        self.indent = normalize_json_indent(option.output.json_indent)

    def serialize(self, objects: list[Any]) -> str:
        payload = to_plain(objects)
        if self.indent == 0:
            return json.dumps(payload, separators=(",", ":"), default=str)
        return json.dumps(payload, indent=self.indent, default=str)
