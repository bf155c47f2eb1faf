"""Session identifiers and the cache key derived from them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from prscribe_core.errors import InvalidInputError

_PULL_PATH_RE = re.compile(r"^/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pull/(?P<number>\d+)")


@dataclass(frozen=True)
class SessionIdentifier:
    domain: str
    owner: str
    repo: str
    number: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def session_key(identifier: SessionIdentifier) -> str:
    """Return the cache key, e.g. ``github.com/octo/app/42``."""
    return f"{identifier.domain}/{identifier.owner}/{identifier.repo}/{identifier.number}"


def parse_pr_url(url: str) -> SessionIdentifier:
    """Parse ``https://<domain>/<owner>/<repo>/pull/<n>``."""
    parsed = urlparse(url.strip())
    match = _PULL_PATH_RE.match(parsed.path or "")
    if not parsed.netloc or not match:
        raise InvalidInputError(f"Not a pull request URL: {url!r}")
    return SessionIdentifier(
        domain=parsed.netloc.lower(),
        owner=match.group("owner"),
        repo=match.group("repo"),
        number=int(match.group("number")),
    )


def from_repo(repo: str, number: int, domain: str = "github.com") -> SessionIdentifier:
    """Build an identifier from ``owner/name`` and a PR number."""
    parts = repo.strip().strip("/").split("/")
    if len(parts) != 2 or not all(parts):
        raise InvalidInputError(f"Repository must be 'owner/name', got {repo!r}")
    if number < 1:
        raise InvalidInputError(f"Pull request number must be positive, got {number}")
    return SessionIdentifier(domain=domain, owner=parts[0], repo=parts[1], number=number)
