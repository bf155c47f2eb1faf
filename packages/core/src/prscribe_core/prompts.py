"""Provider-agnostic prompt composition.

Every builder takes the cached snapshot and returns plain strings or
``{"role", "content"}`` message lists. Nothing here knows which model will
receive the prompt; providers only reshape the message list.
"""

from __future__ import annotations

from prscribe_store.models import ChatTurn, FileDiff, ReviewComment, SessionSnapshot

from prscribe_core.config import language_label

STRUCTURED_SYSTEM_PROMPT = (
    "You are a senior software developer conducting a thorough code review. "
    "You provide detailed, actionable feedback in JSON format as requested."
)

MAX_CHECKLIST_ITEMS = 3


def _one_line(text: str) -> str:
    return (text or "").replace("\n", " ")


def format_comments(comments: list[ReviewComment], with_path: bool = False) -> str:
    """Render reviewer comments as one bullet per comment."""
    lines = []
    for c in comments:
        line = f"- [{c.author} at {c.created_at}]: {_one_line(c.body)}"
        if with_path and c.path:
            line += f" (file: {c.path})"
        lines.append(line)
    return "\n".join(lines)


def build_checklist_prompt(snapshot: SessionSnapshot, file: FileDiff, locale: str) -> str:
    """Build the per-file checklist prompt sent to structured generation."""
    lang = language_label(locale)
    patch = f"Patch:\n{file.patch}" if file.patch else "No patch available"
    comments = format_comments(snapshot.review_comments)
    if comments:
        comments = f"\n\nReview Comments (for reviewer context):\n{comments}"

    return f"""File: {file.filename} ({file.status})
Changes: +{file.additions} -{file.deletions}
{patch}

Analyze this pull request file and provide your response in {lang}.

You are a code review assistant.
For the changed file, generate a checklist of specific review items.

Checklist items must:
- Be concise and focused on meaningful implementation details such as logic, edge cases,
  maintainability, or structural impact.
- Avoid vague or superficial items like "Please ensure the function works correctly".

Must:
* Background and problem being solved
* Code correctness
* Potential bugs
* Performance concerns
* Security vulnerabilities
* Naming that will not hinder future maintenance

Want:
* Minor formatting issues such as indentation or spacing
* Consistency with the existing implementation style
* Comments or documentation that could be improved

Do not generate checklist items unless there is a specific, meaningful point to review.

Rules:
* Max checklist items per file: {MAX_CHECKLIST_ITEMS}
* Core logic, UI components, specifications and tests: detailed items ("Check that..."), isChecked false.
* Mock data, slices and type definitions: one item "Low risk - review not required.", isChecked true.
* Dist and other build artifacts: one item "Build artifact - review not required.", isChecked true.
* No specific issues to review: exactly one item "No issues found", isChecked true.
* Provide a meaningful explanation for every file, summarizing why it changed and its role in the PR.

PR Title: {snapshot.title}
PR Description: {snapshot.body}
PR Comments: {comments or "No comments provided."}
Repository README: {snapshot.readme or "No README provided."}
Repository information: {snapshot.instructions or "No instructions provided."}

Format your response as a JSON object with the following structure:
{{
  "filename": "{file.filename}",
  "explanation": "<why this file changed and its role in the PR>",
  "checklistItems": [
    {{"id": "item_0", "description": "Check that...", "isChecked": false}}
  ]
}}

Important: All text content inside the JSON must be in {lang}. Keep the JSON structure and field names in English.
"""


def build_chat_system_prompt(snapshot: SessionSnapshot, file: FileDiff, locale: str) -> str:
    """System prompt for a per-file discussion, with explicit section markers."""
    pr_info = f"title: {snapshot.title}\ndescription: {snapshot.body}\nauthor: {snapshot.author}"
    file_info = f"\nfilename: {file.filename}\ndiff:\n{file.patch}\nfull code:\n{file.content}"
    all_diffs = "\n--- all diff ---\n" + "\n\n".join(f"【{f.filename}】\n{f.patch}" for f in snapshot.files)
    instructions = f"\n--- Repository Information ---\n{snapshot.instructions}"
    readme = f"\n--- README Content ---\n{snapshot.readme}"
    comments = ""
    if snapshot.review_comments:
        comments = "\n--- Review Comments (for reviewer context) ---\n" + format_comments(
            snapshot.review_comments, with_path=True
        )

    return (
        f"You are a senior software developer conducting a thorough code review in {language_label(locale)}. "
        "You provide detailed, actionable feedback as an AI reviewer.\n"
        f"{pr_info}{file_info}{all_diffs}{instructions}{readme}{comments}"
    )


def build_chat_messages(
    snapshot: SessionSnapshot,
    file: FileDiff,
    history: list[ChatTurn],
    locale: str,
) -> list[dict]:
    messages = [{"role": "system", "content": build_chat_system_prompt(snapshot, file, locale)}]
    messages.extend({"role": turn.sender, "content": turn.text} for turn in history)
    return messages


SUMMARY_INSTRUCTION = """Summarize the content of this pull request concisely from the following five perspectives:
1. Background
2. Problem
3. Solution
4. Implementation
5. Review Highlight Timeline

For the "Review Highlight Timeline" section:
- Instead of listing every event, summarize the review activity for each day.
- For each day, give a brief summary of the main review points, status changes and important feedback.
- Clearly indicate the current review status (e.g. "in review", "changes requested", "approved").
- If possible, infer the overall review progress and any blockers."""


def build_summary_messages(snapshot: SessionSnapshot, locale: str) -> list[dict]:
    diff = "\n\n".join(f.patch for f in snapshot.files if f.patch)
    comments = ""
    if snapshot.review_comments:
        comments = "\n--- Review Comments (for reviewer context) ---\n" + format_comments(snapshot.review_comments)

    system = (
        "This is a pull request summary generation task. "
        f"You will generate a concise summary of the pull request content in {language_label(locale)}.\n\n"
        f"PR Author: {snapshot.author or 'Unknown'}\n"
        f"PR Title: {snapshot.title}\n"
        f"PR Description: {snapshot.body}\n"
        f"PR diff: {diff}\n"
        f"Repository README: {snapshot.readme}\n"
        f"Repository information: {snapshot.instructions}\n"
        f"PR Merge Status: {snapshot.merge_status}{comments}"
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": SUMMARY_INSTRUCTION},
    ]
