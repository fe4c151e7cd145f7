"""Remote fetch of the user feed."""

import logging

import httpx

from .cache.models import User, decode_users
from .errors import FetchError, FetchErrorKind

logger = logging.getLogger(__name__)


class RemoteFetcher:
    """Fetches and decodes the remote user feed in a single GET.

    There is no retry: one attempt per call, bounded by ``timeout``.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._timeout = timeout
        self._transport = transport

    async def fetch(self) -> list[User]:
        """Download and decode the feed.

        Returns:
            The decoded users, in feed order.

        Raises:
            FetchError: On network failure, non-2xx status, or bad payload.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(self.url, headers={"Accept": "application/json"})
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Request timed out after {self._timeout}s", FetchErrorKind.NETWORK
            ) from e
        except httpx.RequestError as e:
            raise FetchError(f"Request failed: {e}", FetchErrorKind.NETWORK) from e

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code} from {self.url}",
                FetchErrorKind.BAD_STATUS,
                status_code=response.status_code,
            )

        try:
            users = decode_users(response.json())
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            raise FetchError(f"Invalid user feed: {e}", FetchErrorKind.DECODE) from e

        logger.debug("Fetched %d user(s) from %s", len(users), self.url)
        return users
