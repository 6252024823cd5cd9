from __future__ import annotations

import xml.etree.ElementTree as ET
from collections import OrderedDict
from typing import Any, Dict, List

from common.rule_pipeline.models import OutputFormat, RuleOutcome, RuleRecord

from ..base import SerializationOutputWriter, iter_records
from ..registry import register_writer

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>\n'


def _result_name(outcome: RuleOutcome) -> str:
    if outcome == RuleOutcome.PASS:
        return "Passed"
    if outcome in (RuleOutcome.FAIL, RuleOutcome.ERROR):
        return "Failed"
    return "Skipped"


@register_writer(OutputFormat.NUNIT3)
class NUnit3OutputWriter(SerializationOutputWriter):
    """NUnit 3 test results: one fixture per target and one case per rule."""

    def serialize(self, objects: list[Any]) -> str:
        by_target: Dict[str, List[RuleRecord]] = OrderedDict()
        for record in iter_records(objects):
            by_target.setdefault(record.target_name, []).append(record)

        records = [r for group in by_target.values() for r in group]
        failed = sum(1 for r in records if _result_name(r.outcome) == "Failed")
        passed = sum(1 for r in records if r.outcome == RuleOutcome.PASS)
        root = ET.Element(
            "test-run",
            {
                "testcasecount": str(len(records)),
                "result": "Failed" if failed else "Passed",
                "total": str(len(records)),
                "passed": str(passed),
                "failed": str(failed),
                "skipped": str(len(records) - passed - failed),
            },
        )
        for target_name, group in by_target.items():
            target_failed = sum(1 for r in group if _result_name(r.outcome) == "Failed")
            suite = ET.SubElement(
                root,
                "test-suite",
                {
                    "type": "TestFixture",
                    "name": target_name,
                    "result": "Failed" if target_failed else "Passed",
                    "total": str(len(group)),
                    "failed": str(target_failed),
                },
            )
            for record in group:
                case = ET.SubElement(
                    suite,
                    "test-case",
                    {
                        "name": f"{target_name} -- {record.rule_name}",
                        "result": _result_name(record.outcome),
                    },
                )
                if _result_name(record.outcome) == "Failed":
                    failure = ET.SubElement(case, "failure")
                    message = ET.SubElement(failure, "message")
                    message.text = " ".join(record.reason) or record.outcome_reason or record.synopsis
        ET.indent(root)
        return XML_DECLARATION + ET.tostring(root, encoding="unicode")
