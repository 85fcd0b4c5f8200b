"""
Bearer token authentication.

The executor never owns credentials: it asks a provider for the current
access token on every attempt. Providers may be plain or async callables.
"""

import inspect
from typing import Awaitable, Callable, Optional, Union

from portfolio_sync.core import get_logger

logger = get_logger(__name__)

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class BearerAuth:
    """
    Builds the ``Authorization`` header from a token provider.

    A provider that returns nothing or raises does not block the request:
    the request goes out unauthenticated and the server decides.

    Example:
        >>> auth = BearerAuth(lambda: "abc123")
        >>> await auth.get_headers()
        {'Authorization': 'Bearer abc123'}
    """

    def __init__(self, provider: Optional[TokenProvider] = None):
        self._provider = provider

    @classmethod
    def static(cls, token: Optional[str]) -> "BearerAuth":
        """Auth with a fixed token (or none)."""
        return cls((lambda: token) if token else None)

    @property
    def has_provider(self) -> bool:
        return self._provider is not None

    async def get_token(self) -> Optional[str]:
        if self._provider is None:
            return None
        try:
            token = self._provider()
            if inspect.isawaitable(token):
                token = await token
        except Exception as e:
            logger.warning(f"Credential provider failed, proceeding without auth: {e}")
            return None
        return token or None

    async def get_headers(self) -> dict[str, str]:
        """Headers for one request attempt."""
        token = await self.get_token()
        if not token:
            if self._provider is not None:
                logger.warning("No access token available, proceeding without auth")
            return {}
        return {"Authorization": f"Bearer {token}"}
