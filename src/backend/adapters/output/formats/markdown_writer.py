from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, List

from common.rule_pipeline.models import OutputFormat, RuleOutcome, RuleRecord

from ..base import SerializationOutputWriter, iter_records
from ..registry import register_writer


def _cell(value: str) -> str:
    return (value or "").replace("|", "\\|").replace("\n", " ").strip()


@register_writer(OutputFormat.MARKDOWN)
class MarkdownOutputWriter(SerializationOutputWriter):
    """One section per target with a table of rule outcomes."""

    def serialize(self, objects: list[Any]) -> str:
        by_target: Dict[str, List[RuleRecord]] = OrderedDict()
        for record in iter_records(objects):
            by_target.setdefault(record.target_name, []).append(record)

        lines: List[str] = []
        for target_name, records in by_target.items():
            failed = sum(1 for r in records if r.outcome in (RuleOutcome.FAIL, RuleOutcome.ERROR))
            lines.append(f"## {target_name}")
            lines.append("")
            lines.append(f"Rules: {len(records)}, failed: {failed}")
            lines.append("")
            lines.append("| Rule | Outcome | Synopsis |")
            lines.append("| ---- | ------- | -------- |")
            for record in records:
                lines.append(
                    f"| {_cell(record.rule_name)} | {record.outcome.display()} | {_cell(record.synopsis)} |"
                )
            lines.append("")
        return "\n".join(lines)
