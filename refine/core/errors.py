"""
Exception hierarchy for the refinement pipeline.

Failures fall in three groups:
- structural: a single raw record cannot be mapped (RecordSkipped)
- configuration: a dataset mapping is invalid (MappingConfigError)
- infrastructural: an external collaborator is unavailable (NameMatchingUnavailable)
"""


class RefineError(Exception):
    """Base class for all refinement errors."""


class RecordSkipped(RefineError):
    """Raised when a raw record fails a structural precondition and must be skipped."""

    def __init__(self, rule_name: str, column: str, message: str):
        self.rule_name = rule_name
        self.column = column
        self.message = message
        super().__init__(f"[{rule_name}] {column}: {message}")


class MappingConfigError(RefineError, ValueError):
    """Raised when a dataset mapping definition is invalid."""


class NameMatchingUnavailable(RefineError, RuntimeError):
    """Raised when the name matching service cannot be reached or answers garbage."""
