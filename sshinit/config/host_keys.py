"""SSH host key verification.

Manages the known_hosts file handed to both transports for MITM prevention.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class HostKeyVerifier:
    """SSH host key verification manager.

    Resolves the known_hosts file once and renders it either as OpenSSH
    ``-o`` options or as the asyncssh ``known_hosts`` argument.
    """

    def __init__(
        self,
        known_hosts_path: str | None = None,
        strict_checking: bool = True,
    ):
        """Initialize host key verifier.

        Args:
            known_hosts_path: Path to known_hosts file or 'none' to disable
            strict_checking: Reject unknown host keys

        Raises:
            FileNotFoundError: If strict mode and file missing
        """
        self.strict_checking = strict_checking
        self._known_hosts = self._resolve_known_hosts(known_hosts_path)

    def _resolve_known_hosts(self, env_value: str | None) -> str | None:
        """Resolve known_hosts path with security defaults.

        Returns:
            Path to known_hosts file or None to disable verification

        Raises:
            FileNotFoundError: If strict mode and file missing
        """
        # Explicit disable
        if env_value and env_value.lower() == "none":
            logger.critical(
                "SSH HOST KEY VERIFICATION DISABLED (SSHINIT_KNOWN_HOSTS=none). "
                "Connections are vulnerable to man-in-the-middle attacks. "
                "Only use in trusted networks for testing."
            )
            return None

        if env_value:
            path = Path(os.path.expanduser(env_value))
            hint = "unset SSHINIT_KNOWN_HOSTS to use ~/.ssh/known_hosts"
        else:
            path = Path.home() / ".ssh" / "known_hosts"
            hint = f"connect once with plain ssh to populate {path}"

        if not path.exists():
            if self.strict_checking:
                raise FileNotFoundError(
                    f"SSH host key verification required but "
                    f"known_hosts file not found: {path}\n\n"
                    f"To fix this:\n"
                    f"1. Add host keys: ssh-keyscan <hostname> >> {path}\n"
                    f"2. Or {hint}\n"
                    f"3. Or relax checking: SSHINIT_STRICT_HOST_KEY_CHECKING=false\n"
                    f"4. Or disable verification (NOT RECOMMENDED): "
                    f"SSHINIT_KNOWN_HOSTS=none"
                )
            logger.warning(
                "known_hosts not found at %s, new host keys will be accepted "
                "and recorded on first use",
                path,
            )

        return str(path)

    def get_known_hosts_path(self) -> str | None:
        """Get path to known_hosts file.

        Returns:
            Path string or None if verification disabled
        """
        return self._known_hosts

    def is_enabled(self) -> bool:
        """Check if host key verification is enabled.

        Returns:
            True if verification is enabled
        """
        return self._known_hosts is not None

    def ssh_options(self) -> list[str]:
        """Render the policy as OpenSSH ``-o`` arguments."""
        if self._known_hosts is None:
            return [
                "-o", "StrictHostKeyChecking=no",
                "-o", f"UserKnownHostsFile={os.devnull}",
            ]
        checking = "yes" if self.strict_checking else "accept-new"
        return [
            "-o", f"StrictHostKeyChecking={checking}",
            "-o", f"UserKnownHostsFile={self._known_hosts}",
        ]

    def asyncssh_known_hosts(self) -> str | None:
        """Value for asyncssh's ``known_hosts`` argument.

        Returns:
            Path when the file exists, None when verification is disabled
            or there is nothing to verify against yet
        """
        if self._known_hosts is None or not Path(self._known_hosts).exists():
            return None
        return self._known_hosts
