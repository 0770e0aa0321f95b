"""
Worklog normalization: ADF comment flattening and conversion of raw Jira
worklog records into sorted WorklogEntry values for the requesting user.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dateutil.parser import isoparse

from .errors import PreconditionViolation

SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class RichTextNode:
    """One node of an Atlassian Document Format tree."""
    text: Optional[str] = None
    content: Tuple["RichTextNode", ...] = field(default_factory=tuple)


def _node_parts(node: Any) -> Tuple[str, List[Any]]:
    """Return (own text, children) for a RichTextNode or a raw ADF dict."""
    if isinstance(node, RichTextNode):
        return node.text or "", list(node.content)
    if isinstance(node, Mapping):
        text = node.get("text")
        return (text if isinstance(text, str) else ""), list(node.get("content") or [])
    return "", []


def adf_to_text(adf: Any) -> str:
    """Concatenate the text of every node of an ADF tree.

    A node contributes its children's text first, in order, followed by its
    own ``text``. None yields an empty string. The walk uses an explicit
    stack, so arbitrarily deep documents are fine; cyclic input is not.
    """
    if adf is None:
        return ""
    parts: List[str] = []
    stack: List[Tuple[Any, bool]] = [(adf, False)]
    while stack:
        node, expanded = stack.pop()
        text, children = _node_parts(node)
        if expanded:
            parts.append(text)
            continue
        stack.append((node, True))
        for child in reversed(children):
            stack.append((child, False))
    return "".join(parts)


@dataclass(frozen=True)
class WorklogEntry:
    started: datetime
    issue_key: str
    hours_spent: float
    comment: str

    @property
    def day(self):
        """Calendar day of ``started`` in the worklog's own UTC offset."""
        return self.started.date()


def _same_identity(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.strip().casefold() == b.strip().casefold()


def normalize_worklog(wl: Dict[str, Any], issues_by_id: Mapping[str, Mapping[str, Any]]) -> WorklogEntry:
    """Convert one raw Jira worklog into a WorklogEntry.

    Raises:
        PreconditionViolation: if the worklog's issueId is not in issues_by_id.
    """
    issue_id = wl.get("issueId")
    try:
        issue = issues_by_id[str(issue_id)]
    except KeyError:
        raise PreconditionViolation(
            f"worklog {wl.get('id', '?')} references issue id {issue_id!r} missing from the search result"
        ) from None

    seconds = wl.get("timeSpentSeconds") or 0
    comment = wl.get("comment")
    if comment is None:
        text = ""
    elif isinstance(comment, str):
        # Jira Server returns plain strings instead of ADF
        text = comment
    else:
        text = adf_to_text(comment)

    return WorklogEntry(
        started=isoparse(wl["started"]),
        issue_key=issue["key"],
        hours_spent=seconds / SECONDS_PER_HOUR,
        comment=text,
    )


def normalize_worklogs(worklogs_by_issue: Mapping[str, Mapping[str, Any]],
                       issues_by_id: Mapping[str, Mapping[str, Any]],
                       user_email: str) -> List[WorklogEntry]:
    """Flatten per-issue worklog payloads into the user's own entries.

    Args:
        worklogs_by_issue: issue key -> worklog response payload (``{"worklogs": [...]}``).
        issues_by_id: issue id -> issue object from the search that produced the keys.
        user_email: identity of the requesting user; other authors are skipped.

    Returns:
        List[WorklogEntry]: entries sorted ascending by ``started``.
    """
    entries: List[WorklogEntry] = []
    for payload in worklogs_by_issue.values():
        for wl in payload.get("worklogs", []):
            author_email = (wl.get("author") or {}).get("emailAddress")
            if not _same_identity(author_email, user_email):
                continue
            entries.append(normalize_worklog(wl, issues_by_id))
    entries.sort(key=lambda e: e.started)
    return entries


def entries_in_period(entries: List[WorklogEntry], start: date, end: date) -> List[WorklogEntry]:
    """Keep entries whose day (in their own offset) lies in [start, end]."""
    return [e for e in entries if start <= e.day <= end]
