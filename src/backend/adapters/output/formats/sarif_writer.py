from __future__ import annotations

import hashlib
import json
import os
from typing import Any, Dict, List, Optional, Sequence

from common.rule_pipeline import ENGINE_MODULE_NAME, __version__
from common.rule_pipeline.config import PipelineOption
from common.rule_pipeline.models import OutputFormat, RuleOutcome, RuleRecord, Source

from ..base import PipelineWriter, SerializationOutputWriter, iter_records
from ..registry import register_writer

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
SARIF_VERSION = "2.1.0"

_LEVELS = {
    RuleOutcome.FAIL: "error",
    RuleOutcome.ERROR: "error",
    RuleOutcome.PASS: "none",
}
_KINDS = {
    RuleOutcome.FAIL: "fail",
    RuleOutcome.ERROR: "fail",
    RuleOutcome.PASS: "pass",
}


def _file_hash(path: str) -> Optional[str]:
    try:
        with open(path, "rb") as handle:
            return hashlib.sha256(handle.read()).hexdigest()
    except OSError:
        return None


@register_writer(OutputFormat.SARIF)
class SarifOutputWriter(SerializationOutputWriter):
    """SARIF 2.1.0 log with one run for the whole pipeline.

    The run records the rule source files as artifacts, the effective options as
    invocation properties and the repository url as version control provenance.
    """

    requires_source = True

    def __init__(self, inner: Optional[PipelineWriter], option: PipelineOption, *, source: Sequence[Source] = ()):
        super().__init__(inner, option)
        self.source = tuple(source)

    def _artifacts(self) -> List[Dict[str, Any]]:
        artifacts = []
        for source in self.source:
            for file in source.files:
                artifact: Dict[str, Any] = {"location": {"uri": file.path.replace(os.sep, "/")}}
                digest = _file_hash(file.path)
                if digest is not None:
                    artifact["hashes"] = {"sha-256": digest}
                artifacts.append(artifact)
        return artifacts

    def _rule(self, record: RuleRecord) -> Dict[str, Any]:
        rule: Dict[str, Any] = {
            "id": record.rule_id,
            "name": record.rule_name,
            "shortDescription": {"text": record.synopsis or record.rule_name},
        }
        if record.recommendation:
            rule["help"] = {"text": record.recommendation}
        if record.tags:
            rule["properties"] = {"tags": dict(record.tags)}
        return rule

    def _sarif_result(self, record: RuleRecord, rule_index: int) -> Dict[str, Any]:
        message = " ".join(record.reason) or record.outcome_reason or record.synopsis or record.rule_name
        return {
            "ruleId": record.rule_id,
            "ruleIndex": rule_index,
            "kind": _KINDS.get(record.outcome, "notApplicable"),
            "level": _LEVELS.get(record.outcome, "none"),
            "message": {"text": message},
            "locations": [
                {"logicalLocations": [{"name": record.target_name, "kind": record.target_type or "object"}]}
            ],
        }

    def _run(self, records: List[RuleRecord]) -> Dict[str, Any]:
        rules: List[Dict[str, Any]] = []
        index: Dict[str, int] = {}
        results = []
        for record in records:
            if record.rule_id not in index:
                index[record.rule_id] = len(rules)
                rules.append(self._rule(record))
            results.append(self._sarif_result(record, index[record.rule_id]))

        run: Dict[str, Any] = {
            "tool": {
                "driver": {
                    "name": ENGINE_MODULE_NAME,
                    "version": __version__,
                    "rules": rules,
                }
            },
            "invocations": [
                {
                    "executionSuccessful": not any(r.outcome == RuleOutcome.ERROR for r in records),
                    "properties": self.option.model_dump(mode="json", by_alias=True, exclude_none=True),
                }
            ],
            "artifacts": self._artifacts(),
            "results": results,
        }
        if self.option.repository.url:
            run["versionControlProvenance"] = [{"repositoryUri": self.option.repository.url}]
        return run

    def serialize(self, objects: list[Any]) -> str:
        log = {
            "$schema": SARIF_SCHEMA,
            "version": SARIF_VERSION,
            "runs": [self._run(list(iter_records(objects)))],
        }
        return json.dumps(log, indent=2)
