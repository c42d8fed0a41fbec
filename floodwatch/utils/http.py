"""
Shared HTTP plumbing for the upstream clients.
"""

from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from .config import config
from .exceptions import UpstreamRejected, UpstreamUnavailable


def create_session(user_agent: Optional[str] = None) -> requests.Session:
    """Create a requests session with connection pooling.

    Retries are not delegated to the adapter; callers decide what is retryable.
    """
    session = requests.Session()

    adapter = HTTPAdapter(
        max_retries=0,
        pool_connections=10,
        pool_maxsize=config.max_workers
    )

    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({
        "User-Agent": user_agent or config.noaa.user_agent,
        "Accept": "application/json",
    })

    return session


def raise_for_upstream_status(response: requests.Response, source: str) -> None:
    """
    Translate a non-2xx response into the upstream error taxonomy.

    Args:
        response: Response to check
        source: Provider name used in the error message

    Raises:
        UpstreamRejected: for 4xx responses
        UpstreamUnavailable: for any other non-2xx response
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    body = _response_body(response)
    if 400 <= status < 500:
        raise UpstreamRejected(
            f"{source} request rejected by upstream (HTTP {status})",
            status=status,
            details=body,
        )
    raise UpstreamUnavailable(
        f"{source} service unavailable (HTTP {status})",
        status=status,
        details=body,
    )


def _response_body(response: requests.Response):
    try:
        return response.json()
    except ValueError:
        return response.text[:500] if response.text else None
