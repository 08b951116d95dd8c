"""
PartialCascadeError - Raised when a later cascade step fails after earlier writes.

Carries a PartialFailureReport describing what was written, what was rolled
back, and what is left for operator repair.
"""

from dataclasses import dataclass, field


@dataclass
class PartialFailureReport:
    operation: str
    completed_steps: list[str] = field(default_factory=list)
    rolled_back: list[str] = field(default_factory=list)
    unrecovered: list[str] = field(default_factory=list)
    cause: str = ""

    @property
    def needs_repair(self) -> bool:
        """True when rows written by the failed call are still present."""
        return bool(self.unrecovered)


class PartialCascadeError(Exception):
    """A multi-step cascade failed part way through."""

    def __init__(self, message: str, report: PartialFailureReport):
        super().__init__(message)
        self.report = report
