"""HTTP session construction for the external API adapters."""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def build_session(
    max_retries: int = 3,
    backoff_factor: float = 0.5,
    headers: dict[str, str] | None = None,
) -> requests.Session:
    """
    Create an HTTP session with connection pooling and retry logic.

    Retries cover idempotent reads and connection errors only; a POST that
    reached the server is never replayed by the adapter.

    Args:
        max_retries: Maximum number of retries for failed requests
        backoff_factor: Backoff factor for retries (delay = backoff_factor * (2 ** retry))
        headers: Extra default headers

    Returns:
        Configured requests.Session instance
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    session.headers.update(
        {
            "Accept": "application/json",
            "User-Agent": "ytsync/0.3 (+requests)",
        }
    )
    if headers:
        session.headers.update(headers)

    return session
