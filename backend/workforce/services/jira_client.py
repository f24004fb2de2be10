"""
Jira Client - issue and sprint retrieval over the Jira Cloud REST API (v3)

Authentication is HTTP basic with the account email and an API token.
HTTP failures are raised as httpx exceptions (HTTPStatusError carries the
response status) so workforce.services.jira_sync can categorize them.

Usage:
    client = JiraClient("company.atlassian.net", "me@company.com", token)
    issues = await client.search_issues("PROJ")
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

ISSUE_FIELDS = [
    "summary", "description", "status", "timeestimate", "timespent",
    "sprint", "customfield_10020", "parent", "issuetype",
]

# Sprint ordering for display: active first, then future, then closed
SPRINT_STATE_ORDER = {"active": 0, "future": 1, "closed": 2}


@dataclass
class Issue:
    """
    A Jira issue reduced to what milestone sync needs.

    Attributes:
        time_estimate: Original estimate in seconds (None when unset)
        time_spent: Logged time in seconds (None when unset)
    """
    key: str
    summary: str
    description: str = ""
    status: str = "To Do"
    time_estimate: Optional[int] = None
    time_spent: Optional[int] = None
    epic_key: Optional[str] = None
    sprint_id: Optional[str] = None
    sprint_name: Optional[str] = None


@dataclass
class Sprint:
    id: str
    name: str
    state: str = "active"
    goal: Optional[str] = None


def adf_to_text(node: Any) -> str:
    """Flatten an Atlassian Document Format tree (or plain string) to text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(adf_to_text(child) for child in node)
    if not isinstance(node, dict):
        return ""

    node_type = node.get("type")
    if node_type == "text":
        return node.get("text", "")
    if node_type == "hardBreak":
        return "\n"

    text = adf_to_text(node.get("content", []))
    if node_type in ("paragraph", "heading", "listItem", "codeBlock", "blockquote"):
        return text.strip() + "\n"
    return text


def _first_sprint(fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    sprint_data = fields.get("sprint") or fields.get("customfield_10020")
    if not sprint_data:
        return None
    sprints = sprint_data if isinstance(sprint_data, list) else [sprint_data]
    # Prefer the active sprint when an issue rolled over several
    for sprint in sprints:
        if isinstance(sprint, dict) and sprint.get("state") == "active":
            return sprint
    return sprints[-1] if isinstance(sprints[-1], dict) else None


def parse_issue(data: Dict[str, Any]) -> Issue:
    fields = data.get("fields") or {}
    status = (fields.get("status") or {}).get("name") or "To Do"

    epic_key = None
    parent = fields.get("parent")
    if parent:
        epic_key = parent.get("key")

    sprint = _first_sprint(fields)

    return Issue(
        key=data["key"],
        summary=fields.get("summary") or data["key"],
        description=adf_to_text(fields.get("description")).strip(),
        status=status,
        time_estimate=fields.get("timeestimate"),
        time_spent=fields.get("timespent"),
        epic_key=epic_key,
        sprint_id=str(sprint["id"]) if sprint and sprint.get("id") is not None else None,
        sprint_name=sprint.get("name") if sprint else None,
    )


class JiraClient:
    """
    Minimal async Jira Cloud client.

    Attributes:
        base_url: https://<domain>
        page_size: Issues fetched per search request
    """

    def __init__(
        self,
        domain: str,
        email: str,
        api_token: str,
        timeout: float = 30.0,
        page_size: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = domain if domain.startswith("http") else f"https://{domain}"
        self.base_url = self.base_url.rstrip("/")
        self.auth = httpx.BasicAuth(email, api_token)
        self.timeout = timeout
        self.page_size = page_size
        self._transport = transport

    @classmethod
    def from_credentials(cls, credentials: Dict[str, str], **kwargs) -> "JiraClient":
        return cls(credentials["domain"], credentials["email"], credentials["api_token"], **kwargs)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=self.auth,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    async def _search(self, client: httpx.AsyncClient, jql: str, fields: List[str]) -> List[Dict[str, Any]]:
        issues: List[Dict[str, Any]] = []
        start_at = 0

        while True:
            response = await client.get(
                "/rest/api/3/search",
                params={
                    "jql": jql,
                    "startAt": start_at,
                    "maxResults": self.page_size,
                    "fields": ",".join(fields),
                },
            )
            response.raise_for_status()
            data = response.json()

            page = data.get("issues", [])
            issues.extend(page)

            total = data.get("total", len(issues))
            start_at += len(page)
            if not page or start_at >= total:
                break

        return issues

    async def test_connection(self) -> Dict[str, Any]:
        """Current user for the credentials; raises on auth failure."""
        async with self._client() as client:
            response = await client.get("/rest/api/3/myself")
            response.raise_for_status()
            return response.json()

    async def search_issues(self, project_key: str) -> List[Issue]:
        """All non-epic issues of a project."""
        jql = f'project = "{project_key}" AND issuetype != Epic ORDER BY created ASC'
        async with self._client() as client:
            raw = await self._search(client, jql, ISSUE_FIELDS)

        issues = []
        for item in raw:
            try:
                issues.append(parse_issue(item))
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed Jira issue in {project_key}: {e}")
        logger.info(f"Fetched {len(issues)} issues from Jira project {project_key}")
        return issues

    async def fetch_sprints(self, project_key: str) -> List[Sprint]:
        """Distinct sprints referenced by a project's issues."""
        jql = f'project = "{project_key}" AND sprint is not EMPTY ORDER BY created DESC'
        async with self._client() as client:
            raw = await self._search(client, jql, ["sprint", "customfield_10020"])

        sprints: Dict[str, Sprint] = {}
        for item in raw:
            fields = item.get("fields") or {}
            sprint_data = fields.get("sprint") or fields.get("customfield_10020") or []
            if isinstance(sprint_data, dict):
                sprint_data = [sprint_data]
            for sprint in sprint_data:
                if not isinstance(sprint, dict) or sprint.get("id") is None:
                    continue
                sprint_id = str(sprint["id"])
                if sprint_id not in sprints:
                    sprints[sprint_id] = Sprint(
                        id=sprint_id,
                        name=sprint.get("name") or f"Sprint {sprint_id}",
                        state=sprint.get("state") or "active",
                        goal=sprint.get("goal"),
                    )

        return sorted(
            sprints.values(),
            key=lambda s: (SPRINT_STATE_ORDER.get(s.state, 3), s.name),
        )
