"""Application configuration.

Delegates to specialized components:
- Settings: Environment variables
- HostKeyVerifier: Manages known_hosts
"""

import logging
import os
from dataclasses import dataclass

from sshinit.config.host_keys import HostKeyVerifier
from sshinit.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Application configuration.

    Aggregates environment settings and host key policy.
    """

    settings: Settings
    host_keys: HostKeyVerifier

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment.

        Returns:
            Configured instance with all components initialized
        """
        settings = Settings.from_env()

        host_keys = HostKeyVerifier(
            known_hosts_path=os.getenv("SSHINIT_KNOWN_HOSTS"),
            strict_checking=Settings._get_bool("SSHINIT_STRICT_HOST_KEY_CHECKING", True),
        )

        logger.debug(
            "Config initialized: transport=%s, credential_timeout=%gs, "
            "host_key_verification=%s",
            settings.transport,
            settings.credential_timeout,
            "on" if host_keys.is_enabled() else "off",
        )
        return cls(settings=settings, host_keys=host_keys)
