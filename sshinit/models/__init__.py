"""Data models for sshinit."""

from sshinit.models.credential import (
    Credential,
    CredentialKind,
    CredentialScope,
    SecretHandle,
)
from sshinit.models.elevation import (
    NO_ELEVATION,
    ElevationMethod,
    ElevationPlan,
    RemoteInvocation,
)
from sshinit.models.intent import DEFAULT_SSH_PORT, ConnectionIntent
from sshinit.models.launch import LaunchRequest
from sshinit.models.session import SessionKey, SessionRecord, SessionState

__all__ = [
    "ConnectionIntent",
    "Credential",
    "CredentialKind",
    "CredentialScope",
    "DEFAULT_SSH_PORT",
    "ElevationMethod",
    "ElevationPlan",
    "LaunchRequest",
    "NO_ELEVATION",
    "RemoteInvocation",
    "SecretHandle",
    "SessionKey",
    "SessionRecord",
    "SessionState",
]
