from __future__ import annotations

from typing import Any

import yaml

from common.rule_pipeline.models import OutputFormat

from ..base import SerializationOutputWriter, to_plain
from ..registry import register_writer


@register_writer(OutputFormat.YAML)
class YamlOutputWriter(SerializationOutputWriter):
    def serialize(self, objects: list[Any]) -> str:
        return yaml.safe_dump(to_plain(objects), sort_keys=False, default_flow_style=False)
