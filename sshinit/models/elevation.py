"""Privilege elevation models."""

from dataclasses import dataclass, field
from enum import Enum

from sshinit.models.credential import SecretHandle


class ElevationMethod(Enum):
    """How elevation is performed on the remote host."""

    NONE = "none"
    SUDO_INLINE = "sudo_inline"
    SU_PROMPT = "su_prompt"


@dataclass(frozen=True)
class ElevationPlan:
    """Elevation decision for a single launch."""

    required: bool = False
    method: ElevationMethod = ElevationMethod.NONE
    elevation_secret_handle: SecretHandle | None = field(default=None, repr=False)


NO_ELEVATION = ElevationPlan()


@dataclass(frozen=True)
class RemoteInvocation:
    """Remote command as it will be sent to the transport.

    command is None for an interactive login shell.
    """

    command: str | None = None
    feed_elevation_secret: bool = False
    force_tty: bool = False
