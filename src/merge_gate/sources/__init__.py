"""
Check Status Sources

Gateways to the external systems that checks report into.
"""

from .base import CheckStatusSource
from .github import GitHubAPIError, GitHubChecksSource
from .mock import ScriptedStatusSource

__all__ = [
    "CheckStatusSource",
    "GitHubAPIError",
    "GitHubChecksSource",
    "ScriptedStatusSource",
]
