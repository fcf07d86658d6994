"""
Single-flight credential renewal.

Concurrent 401s share one renewal: the first caller starts it, later callers
await the same task. A caller whose token was already replaced by a newer
credential skips renewal entirely. A failed renewal clears the credential
store once and notifies the host once, then every waiter sees the same
AuthExpiredError. Nothing is renewed once the store has been cleared, and a
renewal that finishes after a logout is discarded.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable

from storefront.auth.credentials import CredentialStore
from storefront.exceptions import AuthExpiredError
from storefront.logging import get_logger
from storefront.types import Credential

logger = get_logger(__name__)

RenewFunc = Callable[[Credential | None], Awaitable[Credential]]
AuthExpiredHook = Callable[[AuthExpiredError], Any]


def _consume_result(task: asyncio.Future[Credential]) -> None:
    # Waiters may all have been cancelled; read the outcome so it is never orphaned
    if not task.cancelled():
        task.exception()


class TokenRefresher:
    """Coordinates credential renewal for one credential store."""

    def __init__(
        self,
        credentials: CredentialStore,
        renew: RenewFunc,
        on_auth_expired: AuthExpiredHook | None = None,
    ) -> None:
        """Initialize the refresher.

        Args:
            credentials: Store whose credential is renewed.
            renew: Performs the renewal exchange, given the current credential.
            on_auth_expired: Host hook (sync or async) called once per failed
                renewal, e.g. to sign out and redirect.
        """
        self._credentials = credentials
        self._renew = renew
        self.on_auth_expired = on_auth_expired
        self._inflight: asyncio.Future[Credential] | None = None
        self.renewal_count = 0

    @property
    def in_flight(self) -> bool:
        """True while a renewal is outstanding."""
        return self._inflight is not None and not self._inflight.done()

    async def refresh(self, stale_token: str | None) -> Credential:
        """Obtain a credential newer than `stale_token`.

        Args:
            stale_token: Access token the rejected request was sent with.

        Returns:
            The renewed (or already-newer) credential.

        Raises:
            AuthExpiredError: If renewal failed.
        """
        current = self._credentials.credential
        if current is None and not self.in_flight:
            # Signed out since the request was sent; nothing to renew
            raise AuthExpiredError(
                "Session expired: no credential to renew",
                context={"reason": "signed_out"},
            )

        if (
            current is not None
            and stale_token is not None
            and current.access_token != stale_token
            and not self.in_flight
        ):
            logger.debug("Credential already renewed, skipping renewal")
            return current

        if not self.in_flight:
            self._inflight = asyncio.ensure_future(self._run())
            self._inflight.add_done_callback(_consume_result)
        else:
            logger.debug("Joining in-flight credential renewal")

        assert self._inflight is not None
        # A cancelled waiter must not cancel the renewal other callers share
        return await asyncio.shield(self._inflight)

    async def _run(self) -> Credential:
        version = self._credentials.version
        try:
            renewed = await self._renew(self._credentials.credential)
        except Exception as e:
            if self._credentials.version != version and self._credentials.credential is None:
                # Already signed out; the host was notified by whoever cleared the store
                raise AuthExpiredError(
                    "Session expired: signed out during renewal",
                    context={"reason": "signed_out", "error": str(e)},
                ) from e
            logger.warning("Credential renewal failed, clearing session", error=str(e))
            self._credentials.clear()
            error = AuthExpiredError(
                "Session expired: credential renewal failed",
                context={"error": str(e)},
            )
            await self._notify_expired(error)
            raise error from e

        if self._credentials.version != version:
            # Logout or a new login won the race; the renewed token is discarded
            logger.info("Credentials changed during renewal, discarding renewed token")
            current = self._credentials.credential
            if current is None:
                raise AuthExpiredError(
                    "Session expired: signed out during renewal",
                    context={"reason": "signed_out"},
                )
            return current

        self._credentials.replace_credential(renewed)
        self.renewal_count += 1
        logger.info("Credential renewed", renewals=self.renewal_count)
        credential = self._credentials.credential
        assert credential is not None
        return credential

    async def _notify_expired(self, error: AuthExpiredError) -> None:
        if self.on_auth_expired is None:
            return
        try:
            result = self.on_auth_expired(error)
            if inspect.isawaitable(result):
                await result
        except Exception as hook_error:
            logger.error("Auth-expired hook failed", error=str(hook_error))
