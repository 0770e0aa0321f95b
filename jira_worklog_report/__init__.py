"""
jira_worklog_report package

Fetches the current user's Jira worklogs for a report period, aggregates them
(daily summary or one row per worklog) and renders PDF, CSV or .xlsx output.
"""

from .aggregate import (  # noqa: F401
    DOCUMENT_LAYOUT,
    TEXT_LAYOUT,
    DailySummary,
    SummaryLayout,
    build_daily_summary_table,
    build_detailed_table,
    format_hours,
    summarize_by_day,
)
from .errors import (  # noqa: F401
    ConfigurationError,
    PreconditionViolation,
    RemoteOperationError,
    RenderingError,
    ReportError,
)
from .fetch import RateLimiter, fetch_worklogs_throttled  # noqa: F401
from .worklogs import RichTextNode, WorklogEntry, adf_to_text, normalize_worklogs  # noqa: F401

__version__ = "1.0.0"


def main() -> None:
    """Package entrypoint. Delegates to core.main()."""
    from .core import main as _main
    _main()
