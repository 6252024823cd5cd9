from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Annotated, Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PlainValidator, field_serializer


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted or member.name.lower() == wanted:
                    return member
        return None


class LanguageMode(_CaseInsensitiveEnum):
    FULL_LANGUAGE = "FullLanguage"
    CONSTRAINED_LANGUAGE = "ConstrainedLanguage"


class InputFormat(_CaseInsensitiveEnum):
    NONE = "None"
    YAML = "Yaml"
    JSON = "Json"
    MARKDOWN = "Markdown"
    FILE = "File"
    DETECT = "Detect"


class OutputFormat(_CaseInsensitiveEnum):
    NONE = "None"
    YAML = "Yaml"
    JSON = "Json"
    MARKDOWN = "Markdown"
    NUNIT3 = "NUnit3"
    CSV = "Csv"
    WIDE = "Wide"
    SARIF = "Sarif"


class OutputEncoding(_CaseInsensitiveEnum):
    DEFAULT = "Default"
    UTF8 = "UTF8"
    UTF7 = "UTF7"
    UNICODE = "Unicode"
    UTF32 = "UTF32"
    ASCII = "ASCII"


class _NamedFlag(IntFlag):
    @classmethod
    def parse(cls, value: object):
        """Accept a member, an int, a name or a comma separated list of names."""
        if value is None or isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, (list, tuple)):
            parts = [str(v) for v in value]
        else:
            parts = str(value).replace("|", ",").split(",")
        result = cls(0)
        by_name = {name.lower(): member for name, member in cls.__members__.items()}
        for part in parts:
            key = part.strip().lower()
            if not key:
                continue
            if key not in by_name:
                raise ValueError(f"'{part.strip()}' is not a valid {cls.__name__}.")
            result |= by_name[key]
        return result

    def display(self) -> str:
        if self.value == 0:
            return "None"
        names = [m.name for m in type(self) if m.value and m.value & (m.value - 1) == 0 and m in self]
        return ", ".join(n.replace("_", " ").title().replace(" ", "") for n in names)


class RuleOutcome(_NamedFlag):
    NONE = 0
    PASS = 1
    FAIL = 2
    ERROR = 4
    PROCESSED = PASS | FAIL | ERROR
    ALL = 255


class BannerFormat(_NamedFlag):
    NONE = 0
    TITLE = 1
    SOURCE = 2
    REPOSITORY_INFO = 4
    DEFAULT = TITLE | SOURCE | REPOSITORY_INFO


OutcomeFlags = Annotated[RuleOutcome, PlainValidator(RuleOutcome.parse)]
BannerFlags = Annotated[BannerFormat, PlainValidator(BannerFormat.parse)]


class ScopeType(_CaseInsensitiveEnum):
    PARAMETER = "Parameter"
    EXPLICIT = "Explicit"
    MODULE = "Module"
    WORKSPACE = "Workspace"


# Higher wins.
SCOPE_PRECEDENCE: Dict[ScopeType, int] = {
    ScopeType.PARAMETER: 40,
    ScopeType.EXPLICIT: 30,
    ScopeType.MODULE: 20,
    ScopeType.WORKSPACE: 10,
}


class SourceType(_CaseInsensitiveEnum):
    SCRIPT = "Script"
    YAML = "Yaml"
    JSON = "Json"


class ModuleInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    version: str = ""
    baseline: Optional[str] = None


class SourceFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    module_name: Optional[str] = None
    type: SourceType = SourceType.YAML
    help_path: Optional[str] = None


class Source(BaseModel):
    """A rule source: a directory of rule files, optionally owned by a module."""

    model_config = ConfigDict(frozen=True)

    path: str
    files: Tuple[SourceFile, ...] = ()
    module: Optional[ModuleInfo] = None


def id_equals(left: Optional[str], right: Optional[str]) -> bool:
    """Compare resource ids case-insensitively.

    Ids may be module qualified (``Module\\Name``). When only one side carries
    a qualifier the unqualified names are compared.
    """
    if left is None or right is None:
        return False
    a = left.strip().casefold()
    b = right.strip().casefold()
    if a == b:
        return True
    a_scoped = "\\" in a
    b_scoped = "\\" in b
    if a_scoped == b_scoped:
        return False
    return a.rsplit("\\", 1)[-1] == b.rsplit("\\", 1)[-1]


@dataclass(frozen=True)
class BaselineRef:
    id: str
    scope: ScopeType


@dataclass(frozen=True)
class TargetSourceInfo:
    file: Optional[str] = None
    line: Optional[int] = None
    position: Optional[int] = None
    type: Optional[str] = None


@dataclass
class TargetObject:
    """An input object plus any identity already attached by the reader."""

    value: Any
    source: Tuple[TargetSourceInfo, ...] = ()
    target_name: Optional[str] = None
    target_type: Optional[str] = None
    path: Optional[str] = None


@dataclass(frozen=True)
class BoundTarget:
    target: TargetObject
    target_name: str
    target_name_path: Optional[str]
    target_type: str
    target_type_path: Optional[str]
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def value(self) -> Any:
        return self.target.value


class RuleRecord(BaseModel):
    rule_id: str
    rule_name: str
    target_name: str
    target_type: str
    outcome: OutcomeFlags = RuleOutcome.NONE
    outcome_reason: str = ""
    synopsis: str = ""
    recommendation: str = ""
    reason: List[str] = Field(default_factory=list)
    tags: Dict[str, str] = Field(default_factory=dict)
    fields: Dict[str, Any] = Field(default_factory=dict)
    source: List[str] = Field(default_factory=list)

    @field_serializer("outcome", when_used="json")
    def _serialize_outcome(self, value: RuleOutcome) -> str:
        return value.display()

    def is_success(self) -> bool:
        return self.outcome in (RuleOutcome.PASS, RuleOutcome.NONE)


class InvokeResult(BaseModel):
    target_name: str
    target_type: str = ""
    records: List[RuleRecord] = Field(default_factory=list)

    def is_success(self) -> bool:
        return all(record.is_success() for record in self.records)


class RuleHelpInfo(BaseModel):
    synopsis: str = ""
    description: str = ""
    recommendation: str = ""
    notes: str = ""
    links: List[str] = Field(default_factory=list)
    online_version: Optional[str] = None


class RuleInfo(BaseModel):
    rule_id: str
    name: str
    module_name: Optional[str] = None
    source_path: Optional[str] = None
    synopsis: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list)
    help: Optional[RuleHelpInfo] = None
