"""Custom exceptions for the pulsefeed data jobs.

Only MissingCredentialError is allowed to reach the entry point; the
request errors are raised inside a retried operation and converted to
a Failure value once the retry budget is spent.
"""


class PulsefeedError(Exception):
    """Base exception for all pulsefeed errors."""


class MissingCredentialError(PulsefeedError):
    """Raised at startup when a required API key is not configured."""

    def __init__(self, variable: str) -> None:
        super().__init__(f"{variable} environment variable not set")
        self.variable = variable


class RequestError(PulsefeedError):
    """A single HTTP attempt failed and may be retried."""

    def __init__(self, reason: str, status: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status = status


class RateLimitedError(RequestError):
    """The provider answered HTTP 429."""

    def __init__(self) -> None:
        super().__init__("rate limited", status=429)


class ResponseFormatError(RequestError):
    """The body was an HTML error page or otherwise not JSON."""
