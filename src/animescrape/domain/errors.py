"""Scraping pipeline exceptions."""

from __future__ import annotations


class ScrapeError(Exception):
    """Base class for all pipeline errors."""


class ResolutionFailure(ScrapeError):
    """No resolver strategy produced a page for the requested title/episode."""


class ExtractionFailure(ScrapeError):
    """No stream URL could be located on the resolved page."""


class NetworkFailure(ScrapeError):
    """Timeout, connection error or error status on an upstream call."""


class PersistenceFailure(ScrapeError):
    """A store write was rejected."""


class ProtectionCheckFailure(ScrapeError):
    """The protection check could not fetch the stream page."""


class CircuitOpenError(ScrapeError):
    """The scrape gate is open after too many consecutive failures."""


class ScrapeCancelledError(ScrapeError):
    """The run was cancelled through its cancellation token."""


class JobNotFoundError(ScrapeError):
    """No scraping job exists for the given id."""


class InvalidTransitionError(ScrapeError):
    """A job or episode-log status change violates the state machine."""


class JobAlreadyRunningError(ScrapeError):
    """A background run for this job is already active."""
