"""
Result Reporting

Outward publication of the gate verdict.
"""

from .base import CompositeReporter, GateReport, ResultReporter
from .console import ConsoleReporter, OutputLevel
from .github import GitHubStatusReporter

__all__ = [
    "CompositeReporter",
    "ConsoleReporter",
    "GateReport",
    "GitHubStatusReporter",
    "OutputLevel",
    "ResultReporter",
]
