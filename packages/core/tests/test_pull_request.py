"""Tests for the PyGithub-backed code-host client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from github import GithubException

from prscribe_core.gh.pull_request import GitHubClient, get_file_content, get_readme, get_review_comments
from prscribe_core.identifiers import from_repo

T1 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
T2 = datetime(2026, 1, 2, 9, 0, tzinfo=timezone.utc)


def _contents(text: str):
    c = MagicMock()
    c.decoded_content = text.encode()
    return c


def _comment(login, body, created_at, path=None):
    c = MagicMock()
    c.user.login = login
    c.body = body
    c.created_at = created_at
    c.path = path
    return c


def _file(filename, status="modified", patch="+x"):
    f = MagicMock()
    f.filename = filename
    f.status = status
    f.additions = 1
    f.deletions = 0
    f.patch = patch
    return f


def _pull():
    pr = MagicMock()
    pr.title = "Add x"
    pr.number = 42
    pr.body = None
    pr.user.login = "alice"
    pr.state = "closed"
    pr.html_url = "https://github.com/octo/app/pull/42"
    pr.created_at = T1
    pr.updated_at = T2
    pr.closed_at = T2
    pr.merged_at = T2
    pr.head.sha = "abc123"
    pr.base.ref = "main"
    pr.get_files.return_value = [_file("src/x.py"), _file("old.py", status="removed", patch=None)]
    pr.get_review_comments.return_value = [_comment("bob", "nit", T2, path="src/x.py")]
    pr.get_issue_comments.return_value = [_comment("carol", "LGTM?", T1)]
    return pr


class TestHelpers:
    def test_get_file_content_decodes(self):
        repo = MagicMock()
        repo.get_contents.return_value = _contents("print('hi')")
        assert get_file_content(repo, "a.py", "sha") == "print('hi')"
        repo.get_contents.assert_called_once_with("a.py", ref="sha")

    def test_get_file_content_degrades_on_error(self):
        repo = MagicMock()
        repo.get_contents.side_effect = GithubException(404, {"message": "Not Found"}, None)
        assert get_file_content(repo, "a.py", "sha") == ""

    def test_get_file_content_directory_is_empty(self):
        repo = MagicMock()
        repo.get_contents.return_value = [_contents("x")]
        assert get_file_content(repo, "src", "sha") == ""

    def test_get_readme_degrades_on_error(self):
        repo = MagicMock()
        repo.get_readme.side_effect = GithubException(404, {"message": "Not Found"}, None)
        assert get_readme(repo) == ""

    def test_review_comments_merged_oldest_first(self):
        comments = get_review_comments(_pull())
        assert [c.author for c in comments] == ["carol", "bob"]
        assert comments[1].path == "src/x.py"
        assert comments[0].path == ""

    def test_deleted_user_shown_as_ghost(self):
        pr = MagicMock()
        c = _comment("x", "hello", T1)
        c.user = None
        pr.get_review_comments.return_value = [c]
        pr.get_issue_comments.return_value = []
        assert get_review_comments(pr)[0].author == "ghost"


class TestGitHubClient:
    @pytest.mark.asyncio
    async def test_fetch_session_builds_snapshot(self):
        with patch("prscribe_core.gh.pull_request.Github") as mock_gh:
            repo = mock_gh.return_value.get_repo.return_value
            repo.get_pull.return_value = _pull()
            repo.get_contents.side_effect = lambda path, ref: _contents(f"content of {path}@{ref}")
            repo.get_readme.return_value = _contents("# App")

            snapshot = await GitHubClient("ghp").fetch_session(from_repo("octo/app", 42), instruction_path="AGENTS.md")

        mock_gh.return_value.get_repo.assert_called_once_with("octo/app")
        repo.get_pull.assert_called_once_with(42)
        assert snapshot.title == "Add x"
        assert snapshot.body == ""
        assert snapshot.author == "alice"
        assert snapshot.merge_status == "merged"
        assert snapshot.head_sha == "abc123"
        assert snapshot.base_ref == "main"
        assert snapshot.created_at == T1.isoformat()
        assert [f.filename for f in snapshot.files] == ["src/x.py", "old.py"]
        assert snapshot.files[0].content == "content of src/x.py@abc123"
        assert snapshot.files[1].content == ""
        assert snapshot.files[1].patch == ""
        assert snapshot.instructions == "content of AGENTS.md@abc123"
        assert snapshot.readme == "# App"
        assert len(snapshot.review_comments) == 2

    @pytest.mark.asyncio
    async def test_fetch_session_without_instruction_path(self):
        with patch("prscribe_core.gh.pull_request.Github") as mock_gh:
            repo = mock_gh.return_value.get_repo.return_value
            repo.get_pull.return_value = _pull()
            repo.get_contents.return_value = _contents("x")
            repo.get_readme.return_value = _contents("")

            snapshot = await GitHubClient("ghp").fetch_session(from_repo("octo/app", 42))

        assert snapshot.instructions == ""

    @pytest.mark.asyncio
    async def test_pull_fetch_errors_propagate(self):
        with patch("prscribe_core.gh.pull_request.Github") as mock_gh:
            repo = mock_gh.return_value.get_repo.return_value
            repo.get_pull.side_effect = GithubException(404, {"message": "Not Found"}, None)
            with pytest.raises(GithubException):
                await GitHubClient("ghp").fetch_session(from_repo("octo/app", 42))

    @pytest.mark.asyncio
    async def test_fetch_review_comments(self):
        with patch("prscribe_core.gh.pull_request.Github") as mock_gh:
            mock_gh.return_value.get_repo.return_value.get_pull.return_value = _pull()
            comments = await GitHubClient("ghp").fetch_review_comments(from_repo("octo/app", 42))
        assert [c.body for c in comments] == ["LGTM?", "nit"]

    def test_enterprise_base_url(self):
        with patch("prscribe_core.gh.pull_request.Github") as mock_gh:
            GitHubClient("ghp", base_url="https://ghe.local/api/v3")
        assert mock_gh.call_args.kwargs["base_url"] == "https://ghe.local/api/v3"

    def test_anonymous_client_without_token(self):
        with patch("prscribe_core.gh.pull_request.Github") as mock_gh:
            GitHubClient(None)
        mock_gh.assert_called_once_with()
