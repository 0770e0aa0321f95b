"""
Aggregation of normalized worklog entries into report tables.

A table is a list of rows: the header first, then data rows, then exactly one
``Total`` row whose hours equal the sum of the entries' hours.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Union

from .worklogs import WorklogEntry

Cell = Union[str, float]
Row = List[Cell]

DETAILED_HEADER = ["Date", "Issue", "Hours spent", "Comment"]
TOTAL_LABEL = "Total"


@dataclass(frozen=True)
class SummaryLayout:
    """Header and total formatting of a daily-summary table."""
    hours_header: str
    comma_total: bool

    @property
    def header(self) -> Row:
        return ["Date", self.hours_header, "Issues"]


# delimited text output: raw numeric total
TEXT_LAYOUT = SummaryLayout(hours_header="Hours", comma_total=False)
# printable document: total shown with a decimal comma
DOCUMENT_LAYOUT = SummaryLayout(hours_header="Hours spent", comma_total=True)


@dataclass
class DailySummary:
    day: date
    total_hours: float = 0.0
    issue_keys: List[str] = field(default_factory=list)

    def add(self, entry: WorklogEntry) -> None:
        self.total_hours += entry.hours_spent
        if entry.issue_key not in self.issue_keys:
            self.issue_keys.append(entry.issue_key)


def format_hours(value: float) -> str:
    """Render hours with a decimal comma, e.g. 1.5 -> '1,5'."""
    return str(float(value)).replace(".", ",")


def _chronological(entries: Iterable[WorklogEntry]) -> List[WorklogEntry]:
    return sorted(entries, key=lambda e: e.started)


def total_hours(entries: Iterable[WorklogEntry]) -> float:
    return sum((e.hours_spent for e in entries), 0.0)


def build_detailed_table(entries: Iterable[WorklogEntry]) -> List[Row]:
    """One row per worklog entry, oldest first, plus the total row."""
    ordered = _chronological(entries)
    rows: List[Row] = [list(DETAILED_HEADER)]
    for e in ordered:
        rows.append([e.day.isoformat(), e.issue_key, format_hours(e.hours_spent), e.comment])
    rows.append([TOTAL_LABEL, "", format_hours(total_hours(ordered)), ""])
    return rows


def summarize_by_day(entries: Iterable[WorklogEntry]) -> List[DailySummary]:
    """Fold entries into one DailySummary per day.

    Entries are folded ordered by (day, started) into an insertion-ordered
    dict, so summaries come out in ascending day order even when entries
    carry different UTC offsets.
    """
    summaries: Dict[date, DailySummary] = {}
    for e in sorted(entries, key=lambda e: (e.day, e.started)):
        summary = summaries.get(e.day)
        if summary is None:
            summary = summaries[e.day] = DailySummary(day=e.day)
        summary.add(e)
    return list(summaries.values())


def build_daily_summary_table(entries: Iterable[WorklogEntry],
                              layout: SummaryLayout=TEXT_LAYOUT) -> List[Row]:
    """One row per day with summed hours and the distinct issues touched."""
    ordered = _chronological(entries)
    summaries = summarize_by_day(ordered)
    rows: List[Row] = [layout.header]
    for s in summaries:
        rows.append([s.day.isoformat(), s.total_hours, ", ".join(s.issue_keys)])
    total = total_hours(ordered)
    rows.append([TOTAL_LABEL, format_hours(total) if layout.comma_total else total, ""])
    return rows
