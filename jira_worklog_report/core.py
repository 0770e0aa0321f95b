"""
jira-worklog-report
- Collects the current user's Jira worklogs for the report period and renders
  them as a PDF (default), CSV on stdout, or an .xlsx workbook.
- Two layouts: daily summary (one row per day) or detailed (one row per worklog).

Report period: from the 16th on, the current month up to today; before that,
the whole previous month. start_date/end_date in config.ini override it.
"""

import argparse
import configparser
import os
import sys
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Any, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
import urllib3

from .aggregate import (
    DOCUMENT_LAYOUT,
    TEXT_LAYOUT,
    build_daily_summary_table,
    build_detailed_table,
)
from .errors import (
    ConfigurationError,
    PreconditionViolation,
    RemoteOperationError,
    RenderingError,
)
from .fetch import DEFAULT_MAX_WORKERS, REQUESTS_PER_SECOND, fetch_worklogs_throttled
from .jira import (
    epoch_millis,
    jql_for_period,
    make_session,
    post_search_jql,
    session_worklog_fetcher,
)
from .render import build_html, render_pdf, write_bytes, write_csv, write_xlsx
from .worklogs import WorklogEntry, entries_in_period, normalize_worklogs

DEFAULT_TZ = timezone.utc
# worklog days use each worklog's own offset (up to +-14h); fetch one extra UTC day each side
FETCH_MARGIN = timedelta(days=1)
REPORT_CUTOFF_DAY = 16
PDF_OUT_NAME = "worklog.pdf"
DEFAULT_LOCALE = "pl"
SEARCH_FIELDS = ["id"]

EXIT_CONFIG = 2
EXIT_REMOTE = 3
EXIT_RENDER = 4


def previous_month_bounds(today: date) -> Tuple[date, date]:
    """First and last day (inclusive) of the month before today's."""
    first_this_month = today.replace(day=1)
    return first_this_month - relativedelta(months=1), first_this_month - timedelta(days=1)


def default_report_period(today: date) -> Tuple[date, date]:
    """Return the (start, end) dates, both inclusive, to report on.

    From day REPORT_CUTOFF_DAY on, the current month so far; otherwise the
    whole previous month.
    """
    if today.day >= REPORT_CUTOFF_DAY:
        return today.replace(day=1), today
    return previous_month_bounds(today)


def parse_config_date(s: str) -> Optional[date]:
    """Parse a config date string (YYYY-MM-DD).

    Returns None for empty strings or when parsing fails.
    """
    if not s:
        return None
    try:
        return datetime.strptime(s.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def compute_period(today: date, start_str: str="", end_str: str="") -> Tuple[date, date]:
    """
    Compute the inclusive report period.

    Logic:
    - Both bounds default to default_report_period(today).
    - A valid start_str / end_str (YYYY-MM-DD) replaces the matching bound.
    - Safety: if end falls before start, end is set to start.
    """
    start, end = default_report_period(today)
    start = parse_config_date(start_str) or start
    end = parse_config_date(end_str) or end
    if end < start:
        end = start
    return start, end


def default_out_name(prefix: str="jira-worklog-report", ext: str=".xlsx") -> str:
    """Generate a timestamped output filename '<prefix>-YYYY-MM-DD-HHMM<ext>'."""
    ts = datetime.now().strftime("%Y-%m-%d-%H%M")
    return f"{prefix}-{ts}{ext}"


def parse_args(argv: Optional[List[str]]=None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed command-line options provided via CLI.
    """
    def app_dir() -> str:
        """Return the application directory.

        When running as a PyInstaller-frozen executable, this points to the
        directory of the bundled executable. Otherwise, it returns the directory
        of this source file.
        """
        if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
            return os.path.dirname(sys.executable)
        return os.path.dirname(os.path.abspath(__file__))

    default_cfg = os.path.join(app_dir(), "config.ini")

    p = argparse.ArgumentParser(description="Report your own Jira worklogs for the current or previous month.")
    p.add_argument("--config", default=default_cfg, help=f"Path to config.ini (default: {default_cfg})")
    p.add_argument("--format", choices=("pdf", "csv", "xlsx"), default="pdf",
                   help="Output format: pdf (file), csv (stdout) or xlsx (file). Default pdf")
    p.add_argument("--mode", choices=("daily", "detailed"), default="daily",
                   help="daily: one row per day; detailed: one row per worklog. Default daily")
    p.add_argument("--out", default="", help=f"Output file for pdf/xlsx (default: {PDF_OUT_NAME} or a timestamped .xlsx)")
    p.add_argument("--verbose", action="store_true", help="Verbose diagnostics on stderr")
    p.add_argument("--max-workers", type=int, default=None,
                   help=f"Threads for worklog fetching (default: config or {DEFAULT_MAX_WORKERS})")
    p.add_argument("--rate", type=float, default=None,
                   help=f"Worklog requests started per second (default: config or {REQUESTS_PER_SECOND})")
    p.add_argument("--timeout", type=int, default=120, help="Per-request timeout in seconds (default=120)")
    p.add_argument("--insecure", action="store_true", help="DISABLE SSL verification (NOT RECOMMENDED)")
    return p.parse_args(argv)


def vprint(verbose: bool, *args, **kwargs):
    """Print arguments to stderr only when verbose is True."""
    if verbose:
        kwargs.setdefault("file", sys.stderr)
        print(*args, **kwargs)


def _positive(value: str, name: str, cast):
    try:
        parsed = cast(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return parsed


def read_config(path: str) -> Dict[str, Any]:
    """Read and validate configuration from an INI file.

    Missing [jira] keys fall back to environment variables (JIRA_BASE_URL,
    JIRA_EMAIL, JIRA_API_TOKEN, JIRA_START_DATE, JIRA_END_DATE,
    JIRA_DOCUMENT_TITLE).

    Args:
        path: Path to config.ini. A missing file is allowed when the
            environment supplies the required values.

    Returns:
        Dict[str, Any]: Normalized configuration values required to run.

    Raises:
        ConfigurationError: if base_url, email or api_token is missing, or a
            numeric option is invalid.
    """
    cp = configparser.ConfigParser()
    cp.read(path, encoding="utf-8")
    sec = cp["jira"] if "jira" in cp else {}
    base_url = (sec.get("base_url", "").strip() or os.environ.get("JIRA_BASE_URL", "")).strip().rstrip("/")
    email    = (sec.get("email", "").strip() or os.environ.get("JIRA_EMAIL", "")).strip()
    token    = (sec.get("api_token", "").strip() or os.environ.get("JIRA_API_TOKEN", "")).strip()
    if not (base_url and email and token):
        raise ConfigurationError(
            "base_url, email and api_token are required ([jira] in config.ini or environment variables)."
        )

    verify_ssl = sec.get("verify_ssl", "true").strip().lower() in ("1", "true", "yes", "on")
    ca_bundle  = sec.get("ca_bundle", "").strip()
    http_proxy  = sec.get("http_proxy", "").strip()
    https_proxy = sec.get("https_proxy", "").strip()

    start_date = sec.get("start_date", "").strip() or os.environ.get("JIRA_START_DATE", "").strip()
    end_date   = sec.get("end_date", "").strip() or os.environ.get("JIRA_END_DATE", "").strip()
    title      = sec.get("document_title", "").strip() or os.environ.get("JIRA_DOCUMENT_TITLE", "").strip()
    locale     = sec.get("locale", "").strip() or DEFAULT_LOCALE

    rate_raw = sec.get("requests_per_second", "").strip()
    workers_raw = sec.get("max_workers", "").strip()

    return {
        "base_url": base_url,
        "email": email,
        "token": token,
        "verify_ssl": verify_ssl,
        "ca_bundle": ca_bundle,
        "http_proxy": http_proxy,
        "https_proxy": https_proxy,
        "start_date": start_date,
        "end_date": end_date,
        "document_title": title,
        "locale": locale,
        "requests_per_second": _positive(rate_raw, "requests_per_second", float) if rate_raw else REQUESTS_PER_SECOND,
        "max_workers": _positive(workers_raw, "max_workers", int) if workers_raw else DEFAULT_MAX_WORKERS,
    }


def collect_entries(cfg: Dict[str, Any], period: Tuple[date, date], session_factory,
                    timeout: int, max_workers: int, rate: float, verbose: bool=False) -> List[WorklogEntry]:
    """Search the period's issues, fetch their worklogs and normalize them.

    Raises:
        RemoteOperationError: if the search or any worklog fetch fails.
        PreconditionViolation: if a worklog points at an issue the search did not return.
    """
    start, end = period
    jql = jql_for_period(start, end)
    vprint(verbose, "JQL:", jql)

    with session_factory() as ses:
        issues = post_search_jql(ses, cfg["base_url"], jql, SEARCH_FIELDS, timeout=timeout, verbose=verbose)
    vprint(verbose, f"Issues with worklogs: {len(issues)}")

    # built once before fetching, read-only afterwards
    issues_by_id = {str(issue["id"]): issue for issue in issues}

    fetch = session_worklog_fetcher(cfg["base_url"], session_factory, timeout)
    worklogs_by_issue = fetch_worklogs_throttled(
        fetch,
        [issue["key"] for issue in issues],
        since=epoch_millis(start - FETCH_MARGIN, DEFAULT_TZ),
        until=epoch_millis(end + timedelta(days=1) + FETCH_MARGIN, DEFAULT_TZ),
        requests_per_second=rate,
        max_workers=max_workers,
        progress=True,
    )
    entries = normalize_worklogs(worklogs_by_issue, issues_by_id, cfg["email"])
    return entries_in_period(entries, start, end)


def build_table(entries: List[WorklogEntry], mode: str, fmt: str):
    """Pick the aggregation for mode and the summary layout for the output format."""
    if mode == "detailed":
        return build_detailed_table(entries)
    layout = TEXT_LAYOUT if fmt == "csv" else DOCUMENT_LAYOUT
    return build_daily_summary_table(entries, layout)


def main(argv: Optional[List[str]]=None):
    """Program entry point to orchestrate extraction, aggregation and output."""
    args = parse_args(argv)
    try:
        cfg = read_config(args.config)
        rate = _positive(args.rate, "--rate", float) if args.rate is not None else cfg["requests_per_second"]
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG)

    verify_val = False if args.insecure else bool(cfg.get("verify_ssl", True))
    ca_bundle = cfg.get("ca_bundle", "")
    if not verify_val and not ca_bundle:
        sys.stderr.write("WARNING: SSL certificate verification is DISABLED. Use only for testing.\n")
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    verbose = args.verbose
    max_workers = max(1, args.max_workers if args.max_workers is not None else cfg["max_workers"])

    period = compute_period(date.today(), cfg.get("start_date", ""), cfg.get("end_date", ""))
    vprint(verbose, f"Report period: {period[0].isoformat()} to {period[1].isoformat()} (inclusive)")

    def session_factory():
        """Factory to create a configured requests.Session for concurrent calls."""
        return make_session(cfg["email"], cfg["token"], verify=verify_val, ca_bundle=ca_bundle,
                            http_proxy=cfg.get("http_proxy", ""), https_proxy=cfg.get("https_proxy", ""))

    try:
        entries = collect_entries(cfg, period, session_factory, timeout=args.timeout,
                                  max_workers=max_workers, rate=rate, verbose=verbose)
    except (RemoteOperationError, PreconditionViolation) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_REMOTE)

    table = build_table(entries, args.mode, args.format)

    try:
        if args.format == "csv":
            write_csv(table, sys.stdout)
            out_path = "<stdout>"
        elif args.format == "xlsx":
            out_path = args.out.strip() or default_out_name()
            if not out_path.lower().endswith(".xlsx"):
                out_path += ".xlsx"
            write_xlsx(table, out_path)
        else:
            out_path = args.out.strip() or PDF_OUT_NAME
            html_content = build_html(table, period[0], cfg.get("document_title", ""), cfg.get("locale", DEFAULT_LOCALE))
            write_bytes(out_path, render_pdf(html_content))
    except RenderingError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_RENDER)

    print(f"Done. Worklogs reported: {len(entries)}, output: {out_path}", file=sys.stderr)


if __name__ == "__main__":
    main()
