"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

TRANSPORTS = ("openssh", "asyncssh")

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class Settings:
    """Application settings from environment.

    Handles parsing, validation, and defaults for all env vars.
    """

    # Credential lookup
    credential_timeout: float = field(default=10.0)
    keyring_service: str = field(default="sshinit")

    # Transport
    transport: str = field(default="openssh")
    ssh_binary: str = field(default="ssh")
    terminate_grace: float = field(default=2.0)

    # Elevation
    elevation_markers: tuple[str, ...] = field(default=("sudo",))
    elevation_reuses_login: bool = field(default=False)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            credential_timeout=cls._get_float("SSHINIT_CREDENTIAL_TIMEOUT", 10.0),
            keyring_service=os.getenv("SSHINIT_KEYRING_SERVICE", "sshinit"),
            transport=cls._get_transport(),
            ssh_binary=os.getenv("SSHINIT_SSH_BINARY", "ssh"),
            terminate_grace=cls._get_float("SSHINIT_TERMINATE_GRACE", 2.0),
            elevation_markers=cls._get_list("SSHINIT_ELEVATION_MARKERS", ("sudo",)),
            elevation_reuses_login=cls._get_bool("SSHINIT_ELEVATION_REUSES_LOGIN", False),
            log_level=os.getenv("SSHINIT_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("SSHINIT_LOG_COLORS", True),
        )

    @property
    def ssh_binaries(self) -> tuple[str, ...]:
        """Command names the parser accepts as the ssh client."""
        names = {"ssh", os.path.basename(self.ssh_binary)}
        return tuple(sorted(names))

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        """Get a positive number from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or invalid

        Returns:
            Float value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            result = float(value)
        except ValueError:
            logger.warning("Invalid number for %s: %s, using default %g", key, value, default)
            return default

        if result <= 0:
            logger.warning("%s must be > 0, got %s. Using default: %g", key, value, default)
            return default
        return result

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or unrecognized

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        if value.strip().lower() in TRUE_VALUES:
            return True
        if value.strip().lower() in FALSE_VALUES:
            return False
        logger.warning("Invalid boolean for %s: %s, using default %s", key, value, default)
        return default

    @staticmethod
    def _get_list(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
        """Get a comma separated list from environment."""
        value = os.getenv(key, "").strip()
        if not value:
            return default
        items = tuple(item.strip() for item in value.split(",") if item.strip())
        return items or default

    @staticmethod
    def _get_transport() -> str:
        """Get transport from environment with validation.

        Returns:
            Transport name ("openssh" or "asyncssh")
        """
        transport = os.getenv("SSHINIT_TRANSPORT", "").lower()
        if transport in TRANSPORTS:
            return transport
        if transport:
            logger.warning("Unknown SSHINIT_TRANSPORT %r, using openssh", transport)
        return "openssh"
