"""GitHub code-host client built on PyGithub.

PyGithub is synchronous, so every fetch runs in a worker thread via
asyncio.to_thread. The thread only touches PyGithub objects it created;
results come back as store dataclasses.
"""

from __future__ import annotations

import asyncio
import logging

from github import Auth, Github, GithubException

from prscribe_store.models import FileDiff, ReviewComment, SessionSnapshot

from prscribe_core.identifiers import SessionIdentifier

logger = logging.getLogger(__name__)


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _login(user) -> str:
    return user.login if user is not None else "ghost"


def get_file_content(repo, path: str, ref: str) -> str:
    """Return the decoded text of ``path`` at ``ref``, or "" if it cannot be read."""
    try:
        contents = repo.get_contents(path, ref=ref)
    except GithubException as e:
        logger.debug("Could not read %s@%s: %s", path, ref, e)
        return ""
    if isinstance(contents, list):
        return ""
    return contents.decoded_content.decode("utf-8", errors="replace")


def get_readme(repo, ref: str | None = None) -> str:
    try:
        readme = repo.get_readme(ref=ref) if ref else repo.get_readme()
    except GithubException as e:
        logger.debug("No README for %s: %s", repo.full_name, e)
        return ""
    return readme.decoded_content.decode("utf-8", errors="replace")


def get_review_comments(pr) -> list[ReviewComment]:
    """Inline review comments and conversation comments, oldest first."""
    comments = [
        ReviewComment(author=_login(c.user), body=c.body or "", path=c.path or "", created_at=_iso(c.created_at) or "")
        for c in pr.get_review_comments()
    ]
    comments += [
        ReviewComment(author=_login(c.user), body=c.body or "", created_at=_iso(c.created_at) or "")
        for c in pr.get_issue_comments()
    ]
    return sorted(comments, key=lambda c: c.created_at)


class GitHubClient:
    def __init__(self, token: str | None, base_url: str | None = None):
        kwargs = {"auth": Auth.Token(token)} if token else {}
        if base_url:
            kwargs["base_url"] = base_url
        self._gh = Github(**kwargs)

    async def fetch_session(self, identifier: SessionIdentifier, instruction_path: str | None = None) -> SessionSnapshot:
        """Fetch metadata, diffs, head contents and comments of one pull request.

        Unreadable file contents and a missing README degrade to empty text;
        failures to fetch the pull request itself propagate.
        """
        return await asyncio.to_thread(self._fetch_session, identifier, instruction_path)

    async def fetch_review_comments(self, identifier: SessionIdentifier) -> list[ReviewComment]:
        def _fetch() -> list[ReviewComment]:
            pr = self._gh.get_repo(identifier.full_name).get_pull(identifier.number)
            return get_review_comments(pr)

        return await asyncio.to_thread(_fetch)

    def close(self) -> None:
        self._gh.close()

    def _fetch_session(self, identifier: SessionIdentifier, instruction_path: str | None) -> SessionSnapshot:
        repo = self._gh.get_repo(identifier.full_name)
        pr = repo.get_pull(identifier.number)
        head_sha = pr.head.sha

        files = []
        for f in pr.get_files():
            content = "" if f.status == "removed" else get_file_content(repo, f.filename, head_sha)
            files.append(
                FileDiff(
                    filename=f.filename,
                    status=f.status,
                    additions=f.additions,
                    deletions=f.deletions,
                    patch=f.patch or "",
                    content=content,
                )
            )
        logger.debug("Fetched %d files for %s#%d", len(files), identifier.full_name, identifier.number)

        return SessionSnapshot(
            title=pr.title,
            number=pr.number,
            body=pr.body or "",
            author=_login(pr.user),
            state=pr.state,
            html_url=pr.html_url,
            created_at=_iso(pr.created_at) or "",
            updated_at=_iso(pr.updated_at) or "",
            closed_at=_iso(pr.closed_at),
            merged_at=_iso(pr.merged_at),
            head_sha=head_sha,
            base_ref=pr.base.ref,
            files=files,
            review_comments=get_review_comments(pr),
            instructions=get_file_content(repo, instruction_path, head_sha) if instruction_path else "",
            readme=get_readme(repo),
        )
