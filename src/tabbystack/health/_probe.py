"""HTTP readiness probe."""

from typing import Protocol, final

import httpx

from ._models import HealthCheckTarget


class Probe(Protocol):
    """Callable that reports whether a target is ready right now."""

    def __call__(self, target: HealthCheckTarget, /) -> bool: ...


@final
class HttpProbe:
    """Probe a health endpoint with a single GET request.

    A probe succeeds when the response status is 2xx and, if the target
    lists ``expect_json`` fields, the JSON body carries each of them with
    the expected value. Transport errors, timeouts, and undecodable bodies
    count as failures; the probe never raises for them.
    """

    __slots__ = ("_client",)

    def __init__(self, client: httpx.Client | None = None) -> None:
        """Initialize the probe.

        Args:
            client: HTTP client to use. A default client is created when None;
                tests pass one built on ``httpx.MockTransport``.
        """
        self._client = client or httpx.Client()

    def __call__(self, target: HealthCheckTarget, /) -> bool:
        try:
            response = self._client.get(target.url, timeout=target.request_timeout)
        except httpx.HTTPError:
            return False

        if not response.is_success:
            return False

        if not target.expect_json:
            return True

        try:
            body = response.json()
        except ValueError:
            return False

        if not isinstance(body, dict):
            return False

        return all(body.get(key) == value for key, value in target.expect_json.items())

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()
