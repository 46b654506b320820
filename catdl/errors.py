"""Exception hierarchy for catdl.

Every error carries the HTTP status the web layer answers with.
"""

from __future__ import annotations


class CatdlError(Exception):
    """Base exception for all catdl errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__doc__ or self.__class__.__name__)
        self.message = str(self)


# ── Input validation ───────────────────────────────────────────────────
class InputValidation(CatdlError):
    """Malformed or missing input."""

    status_code = 400


class InvalidUrl(InputValidation):
    """URL is not a 3Cat series page."""


class MissingParameter(InputValidation):
    """A required parameter is missing."""


# ── Security boundary ──────────────────────────────────────────────────
class DomainRejected(CatdlError):
    """Target host is not in the download allow-list."""

    status_code = 403


# ── Upstream ───────────────────────────────────────────────────────────
class UpstreamNotFound(CatdlError):
    """Upstream reports the resource does not exist."""

    status_code = 404


class NotFound(UpstreamNotFound):
    """Resource not found upstream."""


class NoSeasonsFound(UpstreamNotFound):
    """No seasons found for this series."""


class UpstreamTransient(CatdlError):
    """Network or parse failure against the upstream."""

    status_code = 500


class ParseError(UpstreamTransient):
    """Upstream markup could not be parsed."""


class EnumerationError(UpstreamTransient):
    """Episode listing request failed."""


class RedirectError(UpstreamTransient):
    """Redirect chain could not be resolved."""


class RedirectLimitExceeded(RedirectError):
    """Too many redirects."""


class BadRedirect(RedirectError):
    """Redirect without Location header."""


# ── Downloads ──────────────────────────────────────────────────────────
class Cancelled(CatdlError):
    """Operation cancelled by the user."""

    status_code = 499


class InvalidTransition(CatdlError):
    """Illegal download status change."""
