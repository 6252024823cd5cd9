"""Pipeline assembly domain for the rule engine.

This package holds configuration and identity concerns only:
- option models, defaults and the pure merge
- semantic version guard, path filters, binding chains, option context
- no host, writer, or rule execution logic lives here.
"""

__version__ = "0.4.0"
ENGINE_MODULE_NAME = "rule-pipeline"

from .binding import BinderChain, BindingRequest, BindingResult, FunctionBinder
from .config import DEFAULT_OPTION, PipelineOption, merge_option
from .context import Baseline, OptionContext, OptionContextBuilder, PipelineContext, RuleFilter
from .errors import PipelineConfigurationError, PipelineError, PipelineUsageError, RuleFailedError
from .models import (
    BaselineRef,
    InvokeResult,
    LanguageMode,
    ModuleInfo,
    OutputFormat,
    RuleOutcome,
    RuleRecord,
    ScopeType,
    Source,
    TargetObject,
)
from .path_filter import PathFilter, PathFilterBuilder
from .versioning import satisfies, try_parse_constraint, try_parse_version
