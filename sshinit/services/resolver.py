"""Credential lookup with a bounded wait.

The secret store may block (a locked keychain asking for its unlock
password, a slow D-Bus service). Every lookup runs on a worker thread and
the caller waits at most ``timeout`` seconds for the whole search.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from keyring.errors import KeyringError

from sshinit.errors import CredentialNotFound, CredentialTimeout
from sshinit.models import Credential, CredentialKind, CredentialScope
from sshinit.protocols import SecretStore

logger = logging.getLogger(__name__)

LOGIN_KINDS = (CredentialKind.PASSWORD, CredentialKind.KEY_PASSPHRASE)
ELEVATION_KINDS = (CredentialKind.PASSWORD,)


class CredentialResolver:
    """Resolves credentials for connection targets."""

    def __init__(
        self,
        store: SecretStore,
        timeout: float = 10.0,
        max_workers: int = 4,
    ) -> None:
        """Initialize resolver.

        Args:
            store: Secret store to query
            timeout: Maximum seconds a single resolve call may wait
            max_workers: Worker threads available for store lookups

        Raises:
            ValueError: If timeout is not positive
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        self.timeout = timeout
        self._store = store
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="sshinit-credentials",
        )

    def resolve(self, host: str, username: str | None) -> Credential:
        """Find the login credential for a target.

        An explicit username only matches its exact scope. Without one, the
        host's any-username scope is used.

        Raises:
            CredentialNotFound: If nothing is stored for the scope
            CredentialTimeout: If the store did not answer in time
        """
        return self._resolve(CredentialScope(host, username), LOGIN_KINDS, elevation=False)

    def resolve_elevation(self, host: str, username: str | None) -> Credential:
        """Find the elevation (sudo) secret for a target.

        Raises:
            CredentialNotFound: If nothing is stored for the scope
            CredentialTimeout: If the store did not answer in time
        """
        return self._resolve(
            CredentialScope(host, username), ELEVATION_KINDS, elevation=True
        )

    def close(self) -> None:
        """Stop the worker threads without waiting for stuck lookups."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _resolve(
        self,
        scope: CredentialScope,
        kinds: tuple[CredentialKind, ...],
        elevation: bool,
    ) -> Credential:
        future = self._executor.submit(self._search, scope, kinds, elevation)
        try:
            credential = future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "Credential lookup for %s timed out after %gs",
                scope,
                self.timeout,
            )
            raise CredentialTimeout(scope, self.timeout) from None

        if credential is None:
            logger.debug("No %s credential stored for %s", "sudo" if elevation else "login", scope)
            raise CredentialNotFound(scope)
        return credential

    def _search(
        self,
        scope: CredentialScope,
        kinds: tuple[CredentialKind, ...],
        elevation: bool,
    ) -> Credential | None:
        for kind in kinds:
            try:
                handle = self._store.lookup(scope, kind, elevation=elevation)
            except (KeyringError, OSError) as e:
                logger.warning(
                    "Secret store lookup for %s failed (%s), treating as not found",
                    scope,
                    type(e).__name__,
                )
                return None
            if handle is not None:
                logger.debug("Found %s credential for %s", kind.value, scope)
                return Credential(scope=scope, kind=kind, secret_handle=handle)
        return None
