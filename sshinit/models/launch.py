"""Fully resolved launch request."""

from dataclasses import dataclass

from sshinit.models.credential import Credential, SecretHandle
from sshinit.models.elevation import NO_ELEVATION, ElevationPlan
from sshinit.models.intent import ConnectionIntent


@dataclass(frozen=True)
class LaunchRequest:
    """Everything the launcher needs to start a session."""

    intent: ConnectionIntent
    credential: Credential | None = None
    elevation: ElevationPlan = NO_ELEVATION

    @property
    def login_secret(self) -> SecretHandle | None:
        """Handle of the secret used to log in, if any."""
        if self.credential is None:
            return None
        return self.credential.secret_handle
