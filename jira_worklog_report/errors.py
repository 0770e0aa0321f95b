"""Exceptions raised by the worklog report pipeline."""


class ReportError(Exception):
    """Base class for every failure that aborts a report run."""


class ConfigurationError(ReportError):
    """Required connection or identity settings are missing."""


class PreconditionViolation(ReportError):
    """A worklog references an issue that the search did not return."""


class RemoteOperationError(ReportError):
    """A Jira request failed; the whole batch is abandoned."""


class RenderingError(ReportError):
    """The report could not be rendered or written to disk."""
