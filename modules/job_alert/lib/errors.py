from __future__ import annotations


class JobAlertError(Exception):
    """Base exception for job_alert runtime failures."""


class FetchError(JobAlertError):
    """A page could not be fetched (network error or non-success status)."""

    def __init__(self, message: str, *, url: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class ParseError(JobAlertError):
    """Fetched markup could not be processed."""


class ExtractionError(JobAlertError):
    """A detail page could not be scraped; wraps FetchError/ParseError."""

    def __init__(self, message: str, *, link: str) -> None:
        super().__init__(message)
        self.link = link


class DeliveryError(JobAlertError):
    """A message could not be delivered to the messaging endpoint."""
