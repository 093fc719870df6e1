from .retry import RetryPolicy, retry_with_exponential_backoff

__all__ = [
    "RetryPolicy",
    "retry_with_exponential_backoff",
]
