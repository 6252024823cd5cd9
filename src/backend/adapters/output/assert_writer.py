from __future__ import annotations

from typing import Any, List, Optional, Sequence

from common.rule_pipeline import ENGINE_MODULE_NAME, __version__
from common.rule_pipeline.config import PipelineOption
from common.rule_pipeline.models import BannerFormat, InvokeResult, RuleOutcome, RuleRecord, Source

from .base import PipelineWriter


class AssertOutputWriter(PipelineWriter):
    """Human readable assertion output written to the host.

    Results are also forwarded to ``next_writer`` when a serialized format is
    requested alongside the assertion text.
    """

    def __init__(
        self,
        inner: Optional[PipelineWriter],
        option: PipelineOption,
        *,
        source: Sequence[Source] = (),
        next_writer: Optional[PipelineWriter] = None,
    ):
        super().__init__(inner, option)
        self.source = tuple(source)
        self._next = next_writer
        self._total = 0
        self._failed = 0
        self._errors = 0
        self._failed_targets: List[str] = []

    @property
    def failed(self) -> int:
        return self._failed

    @property
    def errors(self) -> int:
        return self._errors

    def _line(self, text: str = "") -> None:
        self.write_information(text)

    def begin(self) -> None:
        banner = self.option.output.banner
        if banner is None:
            banner = BannerFormat.DEFAULT
        if banner & BannerFormat.TITLE:
            self._line(f"{ENGINE_MODULE_NAME} v{__version__}")
        if banner & BannerFormat.SOURCE:
            for source in self.source:
                if source.module is not None:
                    self._line(f"Using module: {source.module.name} v{source.module.version}")
        if banner & BannerFormat.REPOSITORY_INFO and self.option.repository.url:
            self._line(f"Using repository: {self.option.repository.url}")
        if banner:
            self._line()
        if self._next is not None:
            self._next.begin()
        super().begin()

    def _show(self, record: RuleRecord) -> bool:
        wanted = self.option.output.outcome
        if wanted is None:
            wanted = RuleOutcome.PROCESSED
        return bool(record.outcome & wanted)

    def _write_result(self, result: InvokeResult) -> None:
        self._line(f" -> {result.target_name} : {result.target_type}")
        for record in result.records:
            self._total += 1
            if record.outcome == RuleOutcome.FAIL:
                self._failed += 1
            elif record.outcome == RuleOutcome.ERROR:
                self._errors += 1
            if not self._show(record):
                continue
            self._line(f"    [{record.outcome.display().upper()}] {record.rule_name}")
            if record.outcome in (RuleOutcome.FAIL, RuleOutcome.ERROR):
                for reason in record.reason:
                    self._line(f"    | {reason}")
                if record.recommendation:
                    self._line(f"    | RECOMMEND: {record.recommendation}")
        if not result.is_success():
            self._failed_targets.append(result.target_name)
        self._line()

    def write_object(self, obj: Any, enumerate_collection: bool = False) -> None:
        items = obj if enumerate_collection and isinstance(obj, (list, tuple)) else [obj]
        for item in items:
            if isinstance(item, InvokeResult):
                self._write_result(item)
        if self._next is not None:
            self._next.write_object(obj, enumerate_collection)

    def end(self) -> None:
        if self._failed or self._errors:
            self.mark_failure()
        self._line(f"Rules: {self._total}, failed: {self._failed}, errors: {self._errors}")
        if self._next is not None:
            self._next.end()
        super().end()

    def close(self) -> None:
        if self._next is not None:
            self._next.close()
        super().close()
