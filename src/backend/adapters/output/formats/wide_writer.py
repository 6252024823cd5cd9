from __future__ import annotations

from typing import Any, List, Sequence

from common.rule_pipeline.models import OutputFormat

from ..base import SerializationOutputWriter, iter_records
from ..registry import register_writer

HEADERS = ("RuleName", "TargetName", "Outcome", "Synopsis")


def _format_row(values: Sequence[str], widths: Sequence[int]) -> str:
    return "  ".join(v.ljust(w) for v, w in zip(values, widths)).rstrip()


@register_writer(OutputFormat.WIDE)
class WideOutputWriter(SerializationOutputWriter):
    """Fixed width table sized to the widest value in each column."""

    def serialize(self, objects: list[Any]) -> str:
        rows: List[Sequence[str]] = [
            (r.rule_name, r.target_name, r.outcome.display(), r.synopsis) for r in iter_records(objects)
        ]
        widths = [len(h) for h in HEADERS]
        for row in rows:
            widths = [max(w, len(v)) for w, v in zip(widths, row)]
        lines = [_format_row(HEADERS, widths), _format_row(["-" * w for w in widths], widths)]
        lines.extend(_format_row(row, widths) for row in rows)
        return "\n".join(lines) + "\n"
