"""Services for sshinit."""

from sshinit.services.askpass import AskpassBroker
from sshinit.services.asyncssh_transport import AsyncSSHTransport
from sshinit.services.elevation import ElevationPlanner, wrap_remote_command
from sshinit.services.launcher import ConnectionLauncher, SessionHandle
from sshinit.services.openssh import OpenSSHTransport
from sshinit.services.registry import SessionRegistry
from sshinit.services.resolver import CredentialResolver
from sshinit.services.runner import BackgroundLoop
from sshinit.services.store import KeyringSecretStore

__all__ = [
    "AskpassBroker",
    "AsyncSSHTransport",
    "BackgroundLoop",
    "ConnectionLauncher",
    "CredentialResolver",
    "ElevationPlanner",
    "KeyringSecretStore",
    "OpenSSHTransport",
    "SessionHandle",
    "SessionRegistry",
    "wrap_remote_command",
]
