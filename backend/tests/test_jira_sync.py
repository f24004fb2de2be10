"""
Tests for Jira Sync

Tests cover:
- Error categorization (network, 429, auth, 404, 5xx, other 4xx, unknown)
- User-facing error messages
- Logged sync lifecycle: success / partial / failed, finalized exactly once
- Idempotent issue import (matched by issue key, then by name)
- Estimated hours and status mapping
- JiraClient parsing and pagination over a mocked transport
"""

import httpx
import pytest

from workforce.models import MilestoneStatus
from workforce.services.fit_scoring import FitScoringEngine
from workforce.services.jira_client import Issue, JiraClient, adf_to_text, parse_issue
from workforce.services.jira_sync import (
    SyncContext,
    SyncOutcome,
    categorize_sync_error,
    estimated_hours_from_issue,
    get_sync_error_message,
    milestone_status_from_issue,
    run_logged_sync,
    sync_jira_project,
    sync_project_issues,
)
from workforce.storage import SyncLogFinalizedError

JIRA_URL = "https://acme.atlassian.net/rest/api/3/search"


def http_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", JIRA_URL)
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(f"HTTP {status_code} from Jira", request=request, response=response)


def raw_issue(key, summary, status="To Do", estimate=None, spent=None, description=None):
    return {
        "key": key,
        "fields": {
            "summary": summary,
            "description": description,
            "status": {"name": status},
            "timeestimate": estimate,
            "timespent": spent,
        },
    }


class FlakyEngine(FitScoringEngine):
    """Rule-based engine that cannot build a skill map for one summary."""

    def __init__(self, broken_name: str):
        super().__init__(judge=None)
        self.broken_name = broken_name

    async def generate_skill_map(self, name, description=""):
        if name == self.broken_name:
            raise RuntimeError("skill map exploded")
        return await super().generate_skill_map(name, description)


class TestCategorizeSyncError:
    """Test retryability classification."""

    def test_network_error(self):
        error = httpx.ConnectError("connection refused", request=httpx.Request("GET", JIRA_URL))
        assert categorize_sync_error(error) == (True, "network_error")

    def test_econnrefused_message(self):
        assert categorize_sync_error(RuntimeError("connect ECONNREFUSED 10.0.0.1:443")) == (True, "network_error")

    @pytest.mark.parametrize("status,expected", [
        (429, (True, "rate_limit")),
        (401, (False, "authentication_error")),
        (403, (False, "authentication_error")),
        (404, (False, "not_found")),
        (500, (True, "server_error")),
        (503, (True, "server_error")),
        (400, (False, "client_error")),
        (422, (False, "client_error")),
    ])
    def test_http_status(self, status, expected):
        assert categorize_sync_error(http_error(status)) == expected

    def test_unknown_error_is_retryable(self):
        assert categorize_sync_error(ValueError("weird")) == (True, "unknown_error")


class TestSyncErrorMessage:
    """Test user-facing messages."""

    def test_auth(self):
        assert "credentials" in get_sync_error_message("HTTP 401 from Jira", False)

    def test_not_connected(self):
        assert "credentials" in get_sync_error_message("Jira not connected for this business", True)

    def test_rate_limit(self):
        assert "rate limit" in get_sync_error_message("HTTP 429 from Jira", True)

    def test_generic_retryable(self):
        assert get_sync_error_message("boom", True) == (
            "Jira sync failed: boom. You can try again using the Retry button."
        )

    def test_generic_not_retryable(self):
        assert get_sync_error_message("boom", False).endswith("Please check your Jira configuration.")


class TestRunLoggedSync:
    """Test sync log lifecycle."""

    @pytest.fixture
    def context(self):
        return SyncContext(business_user_id="biz-1", sync_type="import_projects")

    @pytest.mark.asyncio
    async def test_success(self, storage, context):
        async def operation():
            return SyncOutcome(created=2, updated=1)

        result = await run_logged_sync(storage, context, operation)

        assert result.success is True
        assert result.status == "success"
        assert result.message == "Synced 3 tasks from Jira (2 new, 1 updated)"
        sync_log = await storage.get_sync_log(result.log_id)
        assert sync_log.status == "success"
        assert sync_log.milestones_created == 2
        assert sync_log.milestones_updated == 1
        assert sync_log.error is None
        assert sync_log.completed_at is not None

    @pytest.mark.asyncio
    async def test_partial(self, storage, context):
        async def operation():
            return SyncOutcome(created=1, failed=1, errors=["WF-2: boom"])

        result = await run_logged_sync(storage, context, operation)

        assert result.status == "partial"
        assert result.can_retry is True
        sync_log = await storage.get_sync_log(result.log_id)
        assert sync_log.error == "WF-2: boom"
        assert sync_log.error_details == {"type": "partial_failure", "failed": 1}

    @pytest.mark.asyncio
    async def test_failure_is_categorized(self, storage, context):
        async def operation():
            raise http_error(401)

        result = await run_logged_sync(storage, context, operation)

        assert result.success is False
        assert result.status == "failed"
        assert result.can_retry is False
        assert result.message == "Jira connection failed. Please check your Jira credentials in settings."
        sync_log = await storage.get_sync_log(result.log_id)
        assert sync_log.error_details["type"] == "authentication_error"
        assert sync_log.error_details["status_code"] == 401
        assert sync_log.can_retry is False

    @pytest.mark.asyncio
    async def test_log_is_immutable_once_finalized(self, storage, context):
        async def operation():
            return SyncOutcome()

        result = await run_logged_sync(storage, context, operation)

        with pytest.raises(SyncLogFinalizedError):
            await storage.update_sync_log(result.log_id, status="failed")

    @pytest.mark.asyncio
    async def test_project_sync_fields_updated(self, storage, factory):
        project = await factory.project(jira_project_key="WF")
        context = SyncContext(business_user_id="biz-1", sync_type="sync_project", project_id=project.id)

        async def operation():
            raise http_error(503)

        await run_logged_sync(storage, context, operation)

        project = await storage.get_project(project.id)
        assert project.last_jira_sync_status == "failed"
        assert project.last_jira_sync_error == "HTTP 503 from Jira"
        assert project.last_jira_sync_at is not None


class TestIssueMapping:
    """Test issue -> milestone field mapping."""

    @pytest.mark.parametrize("seconds,hours", [(5400, 2), (36000, 10), (600, 1), (None, 40), (0, 40)])
    def test_estimated_hours(self, seconds, hours):
        assert estimated_hours_from_issue(Issue(key="WF-1", summary="x", time_estimate=seconds)) == hours

    def test_done_wins_over_delay(self):
        issue = Issue(key="WF-1", summary="x", status="Done")
        assert milestone_status_from_issue(issue, 50) == MilestoneStatus.COMPLETED.value

    def test_high_delay_is_delayed(self):
        issue = Issue(key="WF-1", summary="x", status="In Progress")
        assert milestone_status_from_issue(issue, 25) == MilestoneStatus.DELAYED.value

    def test_in_progress(self):
        issue = Issue(key="WF-1", summary="x", status="In Review")
        assert milestone_status_from_issue(issue, 0) == MilestoneStatus.IN_PROGRESS.value

    def test_default_pending(self):
        assert milestone_status_from_issue(Issue(key="WF-1", summary="x"), 20) == MilestoneStatus.PENDING.value


class TestSyncProjectIssues:
    """Test idempotent import."""

    @pytest.mark.asyncio
    async def test_creates_then_updates(self, storage, factory, fallback_engine):
        candidate = await factory.candidate()
        project = await factory.project(jira_project_key="WF")
        issues = [
            Issue(key="WF-1", summary="Python API", status="In Progress", time_estimate=36000, time_spent=45000),
            Issue(key="WF-2", summary="React dashboard", time_estimate=7200),
        ]

        first = await sync_project_issues(storage, project, issues, fallback_engine)
        second = await sync_project_issues(storage, project, issues, fallback_engine)

        assert (first.created, first.updated, first.failed) == (2, 0, 0)
        assert (second.created, second.updated, second.failed) == (0, 2, 0)

        milestones = await storage.list_milestones(project.id)
        assert len(milestones) == 2
        by_key = {m.jira_issue_key: m for m in milestones}
        assert by_key["WF-1"].delay_percentage == 25
        assert by_key["WF-1"].status == MilestoneStatus.DELAYED.value
        assert by_key["WF-1"].estimated_hours == 10
        assert "python" in by_key["WF-1"].skill_map["required_skills"]
        assert by_key["WF-2"].estimated_hours == 2

        assert len(await storage.list_fit_scores_for_candidate(candidate.id)) == 2

    @pytest.mark.asyncio
    async def test_matches_existing_milestone_by_name(self, storage, factory, fallback_engine):
        project = await factory.project(jira_project_key="WF")
        existing = await factory.milestone(project=project, name="Python API")

        outcome = await sync_project_issues(
            storage, project, [Issue(key="WF-9", summary="Python API")], fallback_engine
        )

        assert outcome.updated == 1
        milestone = await storage.get_milestone(existing.id)
        assert milestone.jira_issue_key == "WF-9"

    @pytest.mark.asyncio
    async def test_same_summary_issues_keep_separate_milestones(self, storage, factory, fallback_engine):
        project = await factory.project(jira_project_key="WF")
        issues = [Issue(key="WF-1", summary="Python API"), Issue(key="WF-2", summary="Python API")]

        first = await sync_project_issues(storage, project, issues, fallback_engine)
        second = await sync_project_issues(storage, project, issues, fallback_engine)

        assert (first.created, first.updated) == (2, 0)
        assert (second.created, second.updated) == (0, 2)
        milestones = await storage.list_milestones(project.id)
        assert sorted(m.jira_issue_key for m in milestones) == ["WF-1", "WF-2"]

    @pytest.mark.asyncio
    async def test_name_match_skips_milestone_linked_elsewhere(self, storage, factory, fallback_engine):
        project = await factory.project(jira_project_key="WF")
        linked = await factory.milestone(project=project, name="Python API", jira_issue_key="WF-1")

        outcome = await sync_project_issues(
            storage, project, [Issue(key="WF-9", summary="Python API")], fallback_engine
        )

        assert outcome.created == 1
        assert (await storage.get_milestone(linked.id)).jira_issue_key == "WF-1"

    @pytest.mark.asyncio
    async def test_one_bad_issue_does_not_abort(self, storage, factory):
        project = await factory.project(jira_project_key="WF")
        issues = [Issue(key="WF-1", summary="Broken"), Issue(key="WF-2", summary="Python API")]

        outcome = await sync_project_issues(storage, project, issues, FlakyEngine("Broken"))

        assert outcome.created == 1
        assert outcome.failed == 1
        assert outcome.errors == ["WF-1: skill map exploded"]


def mock_jira_transport(pages, status_code=200):
    """Transport serving search pages in order and recording requests."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"errorMessages": ["nope"]})
        start_at = int(request.url.params.get("startAt", 0))
        return httpx.Response(200, json=pages[start_at])

    return httpx.MockTransport(handler), requests


class TestJiraClient:
    """Test the REST client against a mocked transport."""

    def test_adf_to_text(self):
        doc = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "Build the"}, {"type": "text", "text": " API"}]},
                {"type": "paragraph", "content": [{"type": "text", "text": "Use Postgres"}]},
            ],
        }
        assert adf_to_text(doc) == "Build the API\nUse Postgres\n"

    def test_parse_issue_prefers_active_sprint(self):
        data = raw_issue("WF-1", "Python API", status="In Progress", estimate=36000, spent=3600)
        data["fields"]["parent"] = {"key": "WF-EPIC"}
        data["fields"]["customfield_10020"] = [
            {"id": 7, "name": "Sprint 7", "state": "closed"},
            {"id": 8, "name": "Sprint 8", "state": "active"},
        ]

        issue = parse_issue(data)

        assert issue.status == "In Progress"
        assert issue.time_estimate == 36000
        assert issue.epic_key == "WF-EPIC"
        assert (issue.sprint_id, issue.sprint_name) == ("8", "Sprint 8")

    @pytest.mark.asyncio
    async def test_search_paginates(self):
        pages = {
            0: {"issues": [raw_issue("WF-1", "Python API")], "total": 2},
            1: {"issues": [raw_issue("WF-2", "React dashboard")], "total": 2},
        }
        transport, requests = mock_jira_transport(pages)
        client = JiraClient("acme.atlassian.net", "ops@acme.io", "token", page_size=1, transport=transport)

        issues = await client.search_issues("WF")

        assert [i.key for i in issues] == ["WF-1", "WF-2"]
        assert len(requests) == 2
        assert requests[0].url.host == "acme.atlassian.net"
        assert requests[0].headers["Authorization"].startswith("Basic ")
        assert 'project = "WF"' in requests[0].url.params["jql"]

    @pytest.mark.asyncio
    async def test_http_error_raised(self):
        transport, _ = mock_jira_transport({}, status_code=401)
        client = JiraClient("acme.atlassian.net", "ops@acme.io", "bad", transport=transport)

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await client.search_issues("WF")

        assert categorize_sync_error(exc_info.value) == (False, "authentication_error")


class TestSyncJiraProject:
    """Test the full logged project sync."""

    @pytest.mark.asyncio
    async def test_end_to_end(self, storage, factory, fallback_engine):
        await factory.candidate()
        project = await factory.project(jira_project_key="WF")
        await storage.save_jira_settings("biz-1", "acme.atlassian.net", "ops@acme.io", "token")
        transport, _ = mock_jira_transport({0: {"issues": [raw_issue("WF-1", "Python API")], "total": 1}})
        client = JiraClient("acme.atlassian.net", "ops@acme.io", "token", transport=transport)

        result = await sync_jira_project(storage, project, fallback_engine, client=client)

        assert result.success is True
        assert result.created == 1
        assert (await storage.get_project(project.id)).last_jira_sync_status == "success"
        assert (await storage.get_jira_settings("biz-1")).last_synced_at is not None
        logs = await storage.list_sync_logs("biz-1")
        assert [log.sync_type for log in logs] == ["sync_project"]

    @pytest.mark.asyncio
    async def test_not_connected(self, storage, factory, fallback_engine):
        project = await factory.project(jira_project_key="WF")

        result = await sync_jira_project(storage, project, fallback_engine)

        assert result.success is False
        assert result.message == "Jira connection failed. Please check your Jira credentials in settings."

    @pytest.mark.asyncio
    async def test_unlinked_project(self, storage, factory, fallback_engine):
        project = await factory.project()
        with pytest.raises(ValueError):
            await sync_jira_project(storage, project, fallback_engine)
