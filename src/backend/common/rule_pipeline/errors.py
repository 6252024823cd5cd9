from __future__ import annotations


class PipelineError(RuntimeError):
    pass


class PipelineConfigurationError(PipelineError):
    """An option combination that cannot be used to build a pipeline."""

    def __init__(self, option_name: str, message: str):
        super().__init__(f"Invalid option '{option_name}': {message}")
        self.option_name = option_name
        self.message = message


class PipelineUsageError(PipelineError):
    pass


class RuleFailedError(PipelineError):
    def __init__(self, message: str, *, failed: int = 0, errors: int = 0):
        super().__init__(message)
        self.failed = failed
        self.errors = errors


CONSTRAINED_TARGET_BINDING = (
    "Custom target binding functions are not supported when the language mode is ConstrainedLanguage."
)
