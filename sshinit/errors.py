"""Error taxonomy for sshinit.

Messages only ever name the target (user@host:port or the credential
scope), never credential content.
"""

from sshinit.models import CredentialScope, SessionKey


class SSHInitError(Exception):
    """Base class for sshinit errors."""


class CredentialError(SSHInitError):
    """Credential lookup did not produce a credential."""

    def __init__(self, scope: CredentialScope, message: str):
        self.scope = scope
        super().__init__(message)


class CredentialNotFound(CredentialError):
    """No stored credential matches the scope."""

    def __init__(self, scope: CredentialScope):
        super().__init__(scope, f"No stored credential for {scope}")


class CredentialTimeout(CredentialError):
    """Secret store did not answer within the configured wait."""

    def __init__(self, scope: CredentialScope, timeout: float):
        self.timeout = timeout
        super().__init__(
            scope, f"Credential lookup for {scope} timed out after {timeout:g}s"
        )


class DuplicateConnection(SSHInitError):
    """A non-terminal session to the same target already exists."""

    def __init__(self, key: SessionKey):
        self.key = key
        super().__init__(f"Connection to {key} is already in progress")


class TransportError(SSHInitError):
    """The SSH transport failed."""

    reason = "transport error"

    def __init__(self, key: SessionKey, detail: str = ""):
        self.key = key
        self.detail = detail
        message = f"{self.reason} for {key}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TransportHandshakeFailed(TransportError):
    """Connection or handshake failed before authentication completed."""

    reason = "SSH handshake failed"


class TransportAuthRejected(TransportError):
    """Server rejected the injected credential."""

    reason = "SSH authentication rejected"


class TransportIOError(TransportError):
    """Transport could not be started or broke after connecting."""

    reason = "SSH transport I/O error"
