from __future__ import annotations

import csv
import io
from typing import Any

from common.rule_pipeline.models import OutputFormat

from ..base import SerializationOutputWriter, iter_records
from ..registry import register_writer

COLUMNS = (
    "RuleName",
    "TargetName",
    "TargetType",
    "Outcome",
    "OutcomeReason",
    "Synopsis",
    "Recommendation",
)


@register_writer(OutputFormat.CSV)
class CsvOutputWriter(SerializationOutputWriter):
    def serialize(self, objects: list[Any]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(COLUMNS)
        for record in iter_records(objects):
            writer.writerow(
                [
                    record.rule_name,
                    record.target_name,
                    record.target_type,
                    record.outcome.display(),
                    record.outcome_reason,
                    record.synopsis,
                    record.recommendation,
                ]
            )
        return buffer.getvalue()
