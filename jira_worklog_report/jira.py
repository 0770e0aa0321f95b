"""
Jira REST v3 access: session setup, retrying HTTP helpers, issue search and
per-issue worklog retrieval.
"""

import sys
import time
from datetime import date, datetime, time as dt_time
from typing import Dict, Any, List, Optional

import requests

from .errors import RemoteOperationError

SEARCH_PAGE_SIZE = 100
WORKLOG_PAGE_SIZE = 100


def make_session(email: str, token: str, verify: Optional[bool]=True, ca_bundle: Optional[str]="",
                 http_proxy: str="", https_proxy: str="") -> requests.Session:
    """Create a configured requests.Session for Jira API access.

    Applies basic auth with email/token, JSON headers, optional proxies,
    and SSL verification or custom CA bundle.

    Args:
        email: Jira account email (username).
        token: Jira API token (password).
        verify: Whether to verify SSL certs (ignored if ca_bundle provided).
        ca_bundle: Path to CA bundle to use for SSL verification.
        http_proxy: HTTP proxy URL.
        https_proxy: HTTPS proxy URL.

    Returns:
        requests.Session: Configured session instance.
    """
    s = requests.Session()
    s.auth = (email, token)
    s.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
    if http_proxy or https_proxy:
        proxies = {}
        if http_proxy:
            proxies["http"] = http_proxy
        if https_proxy:
            proxies["https"] = https_proxy
        s.proxies.update(proxies)
    if ca_bundle:
        s.verify = ca_bundle
    else:
        s.verify = verify
    return s


def _retry_wait(r, tries: int, backoff_base: float) -> float:
    """Seconds to wait before the next attempt, honouring Retry-After."""
    retry_after = r.headers.get("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            pass
    return backoff_base * (2 ** (tries - 1))


def http_get_with_retry(session: requests.Session, url: str, params: Optional[Dict[str, Any]]=None,
                        timeout: int=120, max_tries: int=5, backoff_base: float=0.5) -> requests.Response:
    """HTTP GET with retry/backoff on 429 and 5xx responses.

    Honors Retry-After header when present; returns the final response even if
    it is an error after exhausting retries. Other 4xx responses are returned
    immediately since repeating them cannot succeed.
    """
    tries = 0
    while True:
        tries += 1
        r = session.get(url, params=params, timeout=timeout)
        if (r.status_code == 429 or 500 <= r.status_code < 600) and tries < max_tries:
            time.sleep(_retry_wait(r, tries, backoff_base))
            continue
        return r


def http_post_with_retry(session: requests.Session, url: str, json: Dict[str, Any],
                         timeout: int = 120, max_tries: int = 5, backoff_base: float = 0.5) -> requests.Response:
    """HTTP POST with retry/backoff on 429 and 5xx responses. Returns the final response."""
    tries = 0
    while True:
        tries += 1
        r = session.post(url, json=json, timeout=timeout)
        if (r.status_code == 429 or 500 <= r.status_code < 600) and tries < max_tries:
            time.sleep(_retry_wait(r, tries, backoff_base))
            continue
        return r


def _raise_for_status(r: requests.Response, what: str) -> None:
    try:
        r.raise_for_status()
    except requests.HTTPError as e:
        body = (getattr(r, "text", "") or "")[:500]
        raise RemoteOperationError(
            f"{what} failed ({getattr(r, 'status_code', 'N/A')}): {body}"
        ) from e


def _response_json(r: requests.Response, what: str) -> Dict[str, Any]:
    """Check the status and decode the JSON body, as RemoteOperationError on failure."""
    _raise_for_status(r, what)
    try:
        return r.json()
    except ValueError as e:
        raise RemoteOperationError(f"{what} returned a non-JSON body: {e}") from e


def jql_for_period(date_from: date, date_to: date) -> str:
    """Build JQL for issues carrying the current user's worklogs in [date_from, date_to] (inclusive)."""
    return (
        f'worklogDate >= "{date_from.isoformat()}" AND worklogDate <= "{date_to.isoformat()}"'
        " AND worklogAuthor = currentUser()"
    )


def post_search_jql(session: requests.Session, base_url: str, jql: str, fields: List[str], timeout: int, verbose=False) -> List[Dict[str, Any]]:
    """Query Jira using POST /search/jql and paginate using nextPageToken.

    Args:
        session: Configured requests session.
        base_url: Jira base URL.
        jql: JQL string to execute.
        fields: List of fields to request in the response.
        timeout: Per-request timeout.
        verbose: Whether to log each page.

    Returns:
        List[Dict[str, Any]]: Aggregated list of issue objects.

    Raises:
        RemoteOperationError: when any page request fails, times out or
            returns a body that is not JSON.
    """
    url = f"{base_url}/rest/api/3/search/jql"
    next_token: Optional[str] = None
    issues_all: List[Dict[str, Any]] = []
    while True:
        body = {"jql": jql, "fields": fields, "maxResults": SEARCH_PAGE_SIZE}
        if next_token:
            body["nextPageToken"] = next_token
        try:
            r = http_post_with_retry(session, url, json=body, timeout=timeout, backoff_base=0.0)
        except requests.RequestException as e:
            raise RemoteOperationError(f"search/jql failed: {e}") from e
        data = _response_json(r, "search/jql")
        issues = data.get("issues", [])
        issues_all.extend(issues)
        if verbose:
            print(f"search/jql: +{len(issues)} issues", file=sys.stderr)
        next_token = data.get("nextPageToken")
        if not next_token or not issues:
            break
    return issues_all


def epoch_millis(d: date, tz) -> int:
    """Epoch milliseconds of midnight starting day d in tz."""
    return int(datetime.combine(d, dt_time.min, tzinfo=tz).timestamp() * 1000)


def fetch_issue_worklogs(session: requests.Session, base_url: str, issue_key: str,
                         started_after: int, started_before: Optional[int]=None,
                         timeout: int=120) -> Dict[str, Any]:
    """Fetch every worklog of one issue started inside the given window.

    Pages through /issue/{key}/worklog with startAt/maxResults until the
    reported total is reached and returns a single payload
    ``{"worklogs": [...], "total": n}``.

    Args:
        session: Configured requests session.
        base_url: Jira base URL.
        issue_key: Issue key, e.g. ``AB-1``.
        started_after: Lower bound in epoch milliseconds.
        started_before: Optional upper bound in epoch milliseconds.
        timeout: Per-request timeout seconds.

    Raises:
        RemoteOperationError: when any page request fails, times out or
            returns a body that is not JSON.
    """
    url = f"{base_url}/rest/api/3/issue/{issue_key}/worklog"
    worklogs: List[Dict[str, Any]] = []
    start_at = 0
    while True:
        params: Dict[str, Any] = {
            "startAt": start_at,
            "maxResults": WORKLOG_PAGE_SIZE,
            "startedAfter": started_after,
        }
        if started_before is not None:
            params["startedBefore"] = started_before
        try:
            r = http_get_with_retry(session, url, params=params, timeout=timeout)
        except requests.RequestException as e:
            raise RemoteOperationError(f"worklog of {issue_key} failed: {e}") from e
        data = _response_json(r, f"worklog of {issue_key}")
        page = data.get("worklogs", [])
        worklogs.extend(page)
        start_at += len(page)
        if not page or start_at >= data.get("total", 0):
            break
    return {"worklogs": worklogs, "total": len(worklogs)}


def session_worklog_fetcher(base_url: str, session_factory, timeout: int):
    """Return fetch(issue_key, since, until) bound to a per-thread session.

    requests.Session is not thread-safe; each call opens its own session
    from session_factory and closes it when done.
    """
    def fetch(issue_key: str, since: int, until: Optional[int]=None) -> Dict[str, Any]:
        with session_factory() as sess:
            return fetch_issue_worklogs(sess, base_url, issue_key, since, until, timeout=timeout)
    return fetch
