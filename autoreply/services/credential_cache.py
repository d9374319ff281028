"""Bearer credential cache with single-flight refresh."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from autoreply.adapters.base import Authenticator
from autoreply.errors import CredentialError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialEntry:
    """A cached token and its hard expiry (epoch seconds)."""

    token: str
    expires_at: float

    def needs_refresh(self, now: float, safety_margin_seconds: float) -> bool:
        return now >= self.expires_at - safety_margin_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CredentialCache:
    """Keeps the outbound API usable without re-authenticating per call.

    Concurrent callers that find no valid token all await the same refresh
    task, so at most one authentication request is in flight. There is no
    retry loop here; callers decide whether to retry.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        app_id: str,
        app_secret: str,
        safety_margin_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            authenticator: Object exposing authenticate(app_id, app_secret)
            app_id: Application identifier
            app_secret: Application secret
            safety_margin_seconds: Refresh this long before hard expiry
            clock: Source of the current time in epoch seconds
        """
        self.authenticator = authenticator
        self.app_id = app_id
        self.app_secret = app_secret
        self.safety_margin_seconds = safety_margin_seconds
        self._clock = clock
        self._entry: CredentialEntry | None = None
        self._refresh_task: asyncio.Task[str] | None = None

    @property
    def entry(self) -> CredentialEntry | None:
        return self._entry

    async def get_token(self) -> str:
        """Return a currently valid bearer token, refreshing transparently.

        Raises:
            CredentialError: If a needed refresh fails
        """
        entry = self._entry
        if entry is not None and not entry.needs_refresh(self._clock(), self.safety_margin_seconds):
            return entry.token
        return await self.refresh()

    async def refresh(self) -> str:
        """Force a refresh, joining one already in flight if there is one."""
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh())
            self._refresh_task.add_done_callback(self._on_refresh_done)
        # Shield so one cancelled caller does not cancel the shared request
        return await asyncio.shield(self._refresh_task)

    @staticmethod
    def _on_refresh_done(task: asyncio.Task[str]) -> None:
        # Mark the outcome retrieved even when every waiter was cancelled;
        # _refresh already logged the failure
        if not task.cancelled():
            task.exception()

    def invalidate(self) -> None:
        """Drop the cached token so the next get_token refreshes."""
        self._entry = None

    async def _refresh(self) -> str:
        try:
            try:
                token, ttl = await self.authenticator.authenticate(self.app_id, self.app_secret)
            except CredentialError:
                raise
            except Exception as e:
                raise CredentialError(f"Authentication call failed: {e}") from e

            if not isinstance(token, str) or not token:
                raise CredentialError("Authentication returned an empty token")
            if not isinstance(ttl, int | float) or ttl <= 0:
                raise CredentialError(f"Authentication returned invalid ttl: {ttl!r}")

            self._entry = CredentialEntry(token=token, expires_at=self._clock() + ttl)
            logger.info(f"Access token refreshed, valid for {ttl}s")
            return token

        except CredentialError as e:
            entry = self._entry
            if entry is not None and entry.is_expired(self._clock()):
                self._entry = None
            logger.error(f"Access token refresh failed: {e}")
            raise

        finally:
            self._refresh_task = None
