"""HTTP clients authenticated with a resolved bearer token."""

import httpx

from .config import DEFAULT_API_REQUEST_TIMEOUT


def bearer_headers(bearer: str) -> dict[str, str]:
    """Headers for an authenticated JSON request."""
    return {
        "Authorization": f"Bearer {bearer}",
        "Content-Type": "application/json",
    }


def new_http_client(
    base_url: str,
    bearer: str,
    timeout: float = DEFAULT_API_REQUEST_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Create an async HTTP client that sends `Authorization: Bearer <token>`.

    Pass `settings.api_request_timeout` to honour API_REQUEST_TIMEOUT. The
    caller owns the client: use it as `async with new_http_client(...)`.
    """
    return httpx.AsyncClient(
        base_url=base_url,
        headers=bearer_headers(bearer),
        timeout=timeout,
        transport=transport,
    )
