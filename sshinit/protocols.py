"""Protocol interfaces for dependency inversion.

Defines the contracts the launch pipeline depends on, so the keyring store
and the two transports can be swapped for fakes in tests.

Usage Example:

    from sshinit.protocols import Transport

    class EchoTransport:
        async def run(self, request, on_connected):
            on_connected()
            return 0

    launcher = ConnectionLauncher(registry, EchoTransport(), runner)
"""

from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Protocol, runtime_checkable

from sshinit.models import CredentialKind, CredentialScope, LaunchRequest, SecretHandle


@runtime_checkable
class SecretStore(Protocol):
    """Protocol for the external secret store.

    Implementations hand out opaque handles and only reveal secret bytes
    inside ``acquire``.
    """

    def lookup(
        self,
        scope: CredentialScope,
        kind: CredentialKind,
        elevation: bool = False,
    ) -> SecretHandle | None:
        """Find the entry for a scope.

        Args:
            scope: Credential scope to look up
            kind: Kind of secret wanted
            elevation: Look in the elevation-specific namespace

        Returns:
            Handle to the entry, or None when nothing is stored
        """
        ...

    def acquire(self, handle: SecretHandle) -> AbstractContextManager[bytearray]:
        """Dereference a handle for the duration of a with-block.

        The yielded buffer is wiped when the block exits, on every path.

        Raises:
            KeyError: If the entry vanished since lookup
        """
        ...


@runtime_checkable
class Transport(Protocol):
    """Protocol for SSH transports.

    Example implementation:
        class MyTransport:
            async def run(self, request, on_connected):
                # connect, call on_connected() after the handshake,
                # wait for the session to end
                return exit_status
    """

    async def run(
        self,
        request: LaunchRequest,
        on_connected: Callable[[], None],
    ) -> int:
        """Run one session to completion.

        Args:
            request: Resolved launch request
            on_connected: Called once the transport handshake succeeded

        Returns:
            Exit status of the session

        Raises:
            TransportError: On handshake, authentication or I/O failure
        """
        ...
