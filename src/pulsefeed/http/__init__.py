"""HTTP layer -- JSON GET client with retry and failure values."""

from pulsefeed.http.client import JsonHttpClient, parse_json_body
from pulsefeed.http.retry import Failure, RetryPolicy, run_with_retry

__all__ = ["Failure", "JsonHttpClient", "RetryPolicy", "parse_json_body", "run_with_retry"]
