"""
GitHub Status Reporter

Publishes the gate verdict as a single commit status that branch protection
can require.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .base import GateReport, ResultReporter
from ..main import ReportingError, RunStatus

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"

# TIMED_OUT is published as `error` so it reads differently from a rejection
_STATUS_STATES = {
    RunStatus.SUCCEEDED: "success",
    RunStatus.FAILED: "failure",
    RunStatus.TIMED_OUT: "error",
}


class GitHubStatusReporter(ResultReporter):
    """Posts the verdict to POST /repos/{repo}/statuses/{sha}"""

    name = "github"

    def __init__(
        self,
        repository: str,
        sha: str,
        token: str,
        context: str = "merge-gate",
        target_url: Optional[str] = None,
        api_url: str = "https://api.github.com",
        timeout_ms: int = 10000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not repository or "/" not in repository:
            raise ValueError(f"repository must look like 'owner/name', got {repository!r}")
        if not sha:
            raise ValueError("sha is required to publish a commit status")

        self.repository = repository
        self.sha = sha
        self.token = token
        self.context = context
        self.target_url = target_url
        self.api_url = api_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self._transport = transport

    def build_payload(self, report: GateReport) -> Dict[str, Any]:
        state = _STATUS_STATES.get(report.status)
        if state is None:
            raise ReportingError(f"Refusing to publish non-terminal status {report.status.value}")

        payload = {
            "state": state,
            "context": self.context,
            "description": report.summary(),
        }
        if self.target_url:
            payload["target_url"] = self.target_url
        return payload

    async def publish(self, report: GateReport) -> None:
        payload = self.build_payload(report)
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                headers=headers,
                timeout=self.timeout_ms / 1000,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"/repos/{self.repository}/statuses/{self.sha}",
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"[{report.run_id}] status publish error: {e}")
            raise ReportingError(f"Could not publish commit status: {e}") from e

        if response.status_code not in (200, 201):
            logger.error(
                f"[{report.run_id}] status publish failed: HTTP {response.status_code}"
            )
            raise ReportingError(
                f"GitHub rejected commit status with HTTP {response.status_code}"
            )

        logger.info(
            f"[{report.run_id}] Published {self.context}={payload['state']} "
            f"on {self.repository}@{self.sha[:7]}"
        )
