import os
import sys
# Ensure project root is importable for tests, regardless of runner CWD
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import types
from typing import Any, Dict, Optional

import pytest
import requests


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_data: Optional[Any] = None,
        text: str = "",
        headers: Optional[Dict[str, str]] = None,
        raise_for_status_exc: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text
        self.headers = headers or {}
        self._raise_exc = raise_for_status_exc

    def json(self):
        return self._json_data

    def raise_for_status(self):
        if self._raise_exc is not None:
            raise self._raise_exc
        if 400 <= self.status_code:
            err = requests.HTTPError(f"HTTP {self.status_code}")
            # attach minimal response info for code under test
            err.response = types.SimpleNamespace(status_code=self.status_code, text=self.text)
            raise err


class FakeSession:
    """Session stub serving queued responses and recording every call."""

    def __init__(self, get_responses=(), post_responses=()):
        self.get_responses = list(get_responses)
        self.post_responses = list(post_responses)
        self.calls = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.calls.append(("GET", url, dict(params or {})))
        return self.get_responses.pop(0)

    def post(self, url, json=None, timeout=None):
        self.calls.append(("POST", url, dict(json or {})))
        return self.post_responses.pop(0)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False


def make_http_error(status: int) -> requests.HTTPError:
    err = requests.HTTPError(f"HTTP {status}")
    err.response = types.SimpleNamespace(status_code=status, text=f"{status} error")
    return err


def make_worklog(issue_id="10001", email="user@example.com", started="2025-10-10T09:00:00.000+0000",
                 seconds=3600, comment=None, wl_id="1"):
    wl = {
        "id": wl_id,
        "issueId": issue_id,
        "author": {"emailAddress": email, "displayName": email.split("@")[0]},
        "started": started,
        "timeSpentSeconds": seconds,
    }
    if comment is not None:
        wl["comment"] = comment
    return wl


@pytest.fixture
def no_sleep(monkeypatch):
    """Make time.sleep a no-op for faster retry tests."""
    monkeypatch.setattr("time.sleep", lambda *_args, **_kwargs: None)
    yield


@pytest.fixture
def tmp_config_file(tmp_path):
    """Create a minimal valid config.ini and return its path."""
    p = tmp_path / "config.ini"
    p.write_text(
        "[jira]\n"
        "base_url = https://example.atlassian.net\n"
        "email = user@example.com\n"
        "api_token = token123\n"
        "verify_ssl = true\n",
        encoding="utf-8",
    )
    return p


@pytest.fixture
def clean_jira_env(monkeypatch):
    """Remove JIRA_* environment fallbacks so config tests are deterministic."""
    for name in ("JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN", "JIRA_START_DATE",
                 "JIRA_END_DATE", "JIRA_DOCUMENT_TITLE"):
        monkeypatch.delenv(name, raising=False)
    yield


# Expose utilities for tests
__all__ = ["FakeResponse", "FakeSession", "make_http_error", "make_worklog"]
