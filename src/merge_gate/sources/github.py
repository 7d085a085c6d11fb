"""
GitHub Status Source

Reads check state from the GitHub Checks API, falling back to legacy commit
statuses for checks that report through the Statuses API (e.g. external
review bots).
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .base import CheckStatusSource
from ..main import CheckObservation, CheckState

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"

# Check run `status` values before completion
_RUN_STATUS_MAP = {
    "queued": CheckState.PENDING,
    "requested": CheckState.PENDING,
    "waiting": CheckState.PENDING,
    "pending": CheckState.PENDING,
    "in_progress": CheckState.IN_PROGRESS,
}

# Conclusions of a completed check run that let the merge through
_PASSING_CONCLUSIONS = {"success", "neutral", "skipped"}

_COMMIT_STATUS_MAP = {
    "success": CheckState.SUCCESS,
    "pending": CheckState.PENDING,
    "failure": CheckState.FAILURE,
    "error": CheckState.FAILURE,
}


class GitHubAPIError(Exception):
    """Unexpected response from the GitHub API"""

    def __init__(self, status_code: int, message: str = ""):
        super().__init__(f"GitHub API returned {status_code}: {message}".rstrip(": "))
        self.status_code = status_code


class GitHubChecksSource(CheckStatusSource):
    """
    Check status source backed by the GitHub REST API.

    One fetch issues at most two GET requests: the check runs for the name,
    then the combined commit status when no check run exists.
    """

    name = "github"

    def __init__(
        self,
        repository: str,
        ref: str,
        token: str = "",
        api_url: str = "https://api.github.com",
        timeout_ms: int = 10000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not repository or "/" not in repository:
            raise ValueError(f"repository must look like 'owner/name', got {repository!r}")
        if not ref:
            raise ValueError("ref (commit SHA or branch) is required")

        self.repository = repository
        self.ref = ref
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        return httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self.timeout_ms / 1000,
            transport=self._transport,
        )

    async def fetch(self, check_name: str) -> CheckObservation:
        """Current state of `check_name` on the configured ref"""
        try:
            async with self._client() as client:
                observation = await self._from_check_runs(client, check_name)
                if observation is None:
                    observation = await self._from_commit_status(client, check_name)
        except (httpx.HTTPError, GitHubAPIError) as e:
            logger.warning(f"[{check_name}] status fetch failed: {e}")
            return self._observe(check_name, CheckState.ERROR, str(e))

        if observation is None:
            return self._observe(check_name, CheckState.NOT_FOUND, "no check run or status reported")
        return observation

    async def _from_check_runs(
        self,
        client: httpx.AsyncClient,
        check_name: str,
    ) -> Optional[CheckObservation]:
        response = await client.get(
            f"/repos/{self.repository}/commits/{self.ref}/check-runs",
            params={"check_name": check_name, "filter": "latest"},
        )
        if response.status_code == 404:
            return None
        _raise_for_status(response)

        runs: List[Dict[str, Any]] = response.json().get("check_runs", [])
        if not runs:
            return None

        run = max(runs, key=lambda r: r.get("id", 0))
        status = run.get("status", "")
        detail = run.get("html_url") or ""

        if status == "completed":
            conclusion = (run.get("conclusion") or "").lower()
            state = CheckState.SUCCESS if conclusion in _PASSING_CONCLUSIONS else CheckState.FAILURE
            return self._observe(check_name, state, f"conclusion={conclusion} {detail}".strip())

        state = _RUN_STATUS_MAP.get(status, CheckState.PENDING)
        return self._observe(check_name, state, f"status={status} {detail}".strip())

    async def _from_commit_status(
        self,
        client: httpx.AsyncClient,
        check_name: str,
    ) -> Optional[CheckObservation]:
        response = await client.get(f"/repos/{self.repository}/commits/{self.ref}/status")
        if response.status_code == 404:
            return None
        _raise_for_status(response)

        # Statuses are returned newest first
        for status in response.json().get("statuses", []):
            if status.get("context") != check_name:
                continue
            raw_state = (status.get("state") or "").lower()
            state = _COMMIT_STATUS_MAP.get(raw_state, CheckState.PENDING)
            return self._observe(check_name, state, status.get("description") or "")

        return None

    async def health_check(self) -> Dict[str, Any]:
        """Check API reachability and rate limit headroom"""
        try:
            async with self._client() as client:
                response = await client.get("/rate_limit")
            if response.status_code != 200:
                return {"status": "unhealthy", "source": self.name, "http_status": response.status_code}
            core = response.json().get("resources", {}).get("core", {})
            return {
                "status": "healthy",
                "source": self.name,
                "rate_limit_remaining": core.get("remaining"),
            }
        except httpx.HTTPError as e:
            return {"status": "unhealthy", "source": self.name, "error": str(e)}


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code >= 400:
        message = ""
        try:
            message = response.json().get("message", "")
        except ValueError:
            message = response.text[:200]
        raise GitHubAPIError(response.status_code, message)
