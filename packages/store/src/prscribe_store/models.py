"""Review session data models.

Decoupled from prscribe_core so the store layer can be used independently:
the cache never needs to know how a snapshot was fetched or how a checklist
was generated. Every model maps to and from plain JSON-compatible dicts;
from_dict tolerates missing fields so records written by older releases
still load.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Literal

Sender = Literal["user", "assistant"]


@dataclass
class FileDiff:
    """One changed file in a pull request, with its patch and head content."""

    filename: str
    status: str = "modified"
    additions: int = 0
    deletions: int = 0
    patch: str = ""
    content: str = ""

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "status": self.status,
            "additions": self.additions,
            "deletions": self.deletions,
            "patch": self.patch,
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, d: dict) -> FileDiff:
        return cls(
            filename=d.get("filename", ""),
            status=d.get("status", "modified"),
            additions=d.get("additions", 0),
            deletions=d.get("deletions", 0),
            patch=d.get("patch") or "",
            content=d.get("content") or "",
        )


@dataclass
class ReviewComment:
    """An inline comment a human reviewer left on the pull request."""

    author: str
    body: str
    path: str = ""
    created_at: str = ""

    def to_dict(self) -> dict:
        return {"author": self.author, "body": self.body, "path": self.path, "created_at": self.created_at}

    @classmethod
    def from_dict(cls, d: dict) -> ReviewComment:
        return cls(
            author=d.get("author", ""),
            body=d.get("body", ""),
            path=d.get("path", ""),
            created_at=d.get("created_at", ""),
        )


@dataclass
class SessionSnapshot:
    """The fetched view of a pull request, immutable per fetch.

    A refresh replaces the whole snapshot; nothing edits one in place.
    """

    title: str
    number: int
    body: str = ""
    author: str = ""
    state: str = "open"
    html_url: str = ""
    created_at: str = ""
    updated_at: str = ""
    closed_at: str | None = None
    merged_at: str | None = None
    head_sha: str = ""
    base_ref: str = ""
    files: list[FileDiff] = field(default_factory=list)
    review_comments: list[ReviewComment] = field(default_factory=list)
    instructions: str = ""
    readme: str = ""

    @property
    def merge_status(self) -> str:
        if self.merged_at:
            return "merged"
        if self.closed_at:
            return "closed"
        return "open"

    def find_file(self, filename: str) -> FileDiff | None:
        return next((f for f in self.files if f.filename == filename), None)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "number": self.number,
            "body": self.body,
            "author": self.author,
            "state": self.state,
            "html_url": self.html_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "closed_at": self.closed_at,
            "merged_at": self.merged_at,
            "head_sha": self.head_sha,
            "base_ref": self.base_ref,
            "files": [f.to_dict() for f in self.files],
            "review_comments": [c.to_dict() for c in self.review_comments],
            "instructions": self.instructions,
            "readme": self.readme,
        }

    @classmethod
    def from_dict(cls, d: dict) -> SessionSnapshot:
        return cls(
            title=d.get("title", ""),
            number=d.get("number", 0),
            body=d.get("body") or "",
            author=d.get("author", ""),
            state=d.get("state", "open"),
            html_url=d.get("html_url", ""),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
            closed_at=d.get("closed_at"),
            merged_at=d.get("merged_at"),
            head_sha=d.get("head_sha", ""),
            base_ref=d.get("base_ref", ""),
            files=[FileDiff.from_dict(f) for f in d.get("files", [])],
            review_comments=[ReviewComment.from_dict(c) for c in d.get("review_comments", [])],
            instructions=d.get("instructions") or "",
            readme=d.get("readme") or "",
        )


@dataclass
class ChecklistItem:
    id: str
    description: str
    is_checked: bool = False


@dataclass
class FileChecklist:
    """The AI-generated review checklist for one file."""

    filename: str
    explanation: str
    items: list[ChecklistItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "explanation": self.explanation,
            "items": [{"id": i.id, "description": i.description, "is_checked": i.is_checked} for i in self.items],
        }

    @classmethod
    def from_dict(cls, d: dict) -> FileChecklist:
        return cls(
            filename=d.get("filename", ""),
            explanation=d.get("explanation", ""),
            items=[
                ChecklistItem(
                    id=i.get("id", ""),
                    description=i.get("description", ""),
                    is_checked=bool(i.get("is_checked", False)),
                )
                for i in d.get("items", [])
            ],
        )


@dataclass
class AnalysisResult:
    """AI-derived data layered on top of a snapshot.

    Updated independently of the snapshot: generating one file's checklist
    or a summary never requires re-fetching the pull request.
    """

    checklists: list[FileChecklist] = field(default_factory=list)
    summary: str = ""
    model: str = ""
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def checklist_for(self, filename: str) -> FileChecklist | None:
        return next((c for c in self.checklists if c.filename == filename), None)

    def with_checklist(self, checklist: FileChecklist) -> AnalysisResult:
        """Return a copy with ``checklist`` replacing the one for the same file."""
        others = [c for c in self.checklists if c.filename != checklist.filename]
        return replace(
            self,
            checklists=others + [checklist],
            generated_at=datetime.now(timezone.utc).isoformat(),
        )

    def with_item_toggled(self, filename: str, item_id: str) -> AnalysisResult:
        """Return a copy with one checklist item's ``is_checked`` flipped.

        Raises KeyError if ``filename`` has no checklist or the checklist has
        no item ``item_id``.
        """
        checklist = self.checklist_for(filename)
        if checklist is None:
            raise KeyError(filename)
        if not any(i.id == item_id for i in checklist.items):
            raise KeyError(item_id)
        items = [replace(i, is_checked=not i.is_checked) if i.id == item_id else i for i in checklist.items]
        toggled = replace(checklist, items=items)
        return replace(self, checklists=[toggled if c.filename == filename else c for c in self.checklists])

    def with_summary(self, summary: str) -> AnalysisResult:
        return replace(self, summary=summary, generated_at=datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return {
            "checklists": [c.to_dict() for c in self.checklists],
            "summary": self.summary,
            "model": self.model,
            "generated_at": self.generated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> AnalysisResult:
        return cls(
            checklists=[FileChecklist.from_dict(c) for c in d.get("checklists", [])],
            summary=d.get("summary", ""),
            model=d.get("model", ""),
            generated_at=d.get("generated_at", ""),
        )


@dataclass
class SessionRecord:
    """One cached review session.

    ``saved_at`` (epoch seconds) is rewritten on every save, including
    analysis-only updates, and is the only ordering key for eviction.
    """

    key: str
    snapshot: SessionSnapshot
    analysis: AnalysisResult | None = None
    saved_at: float = 0.0

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "snapshot": self.snapshot.to_dict(),
            "analysis": self.analysis.to_dict() if self.analysis is not None else None,
            "saved_at": self.saved_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> SessionRecord:
        analysis = d.get("analysis")
        return cls(
            key=d.get("key", ""),
            snapshot=SessionSnapshot.from_dict(d.get("snapshot") or {}),
            analysis=AnalysisResult.from_dict(analysis) if analysis else None,
            saved_at=float(d.get("saved_at", 0.0)),
        )


@dataclass
class ChatTurn:
    """A single message in a per-file discussion."""

    sender: Sender
    text: str

    def to_dict(self) -> dict:
        return {"sender": self.sender, "text": self.text}

    @classmethod
    def from_dict(cls, d: dict) -> ChatTurn:
        sender = d.get("sender", "assistant")
        return cls(sender="user" if sender == "user" else "assistant", text=d.get("text", ""))


# file path -> ordered turns
ChatTranscript = dict[str, list[ChatTurn]]


@dataclass
class RecencyEntry:
    """A row of the "recently viewed" listing."""

    key: str
    title: str
    touched_at: float

    def to_dict(self) -> dict:
        return {"key": self.key, "title": self.title, "touched_at": self.touched_at}

    @classmethod
    def from_dict(cls, d: dict) -> RecencyEntry:
        return cls(key=d.get("key", ""), title=d.get("title", ""), touched_at=float(d.get("touched_at", 0.0)))
